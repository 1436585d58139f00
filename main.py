# main.py
import argparse
import datetime
import os
import re
import sys
from typing import Mapping, Optional, Sequence, Tuple

from config import get_logger, set_log_level, RunConfig, API_KEY_ENV, WEBHOOK_URL_ENV
from notifier import SlackNotifier, format_message
from services import AbstractHolidaysClient, HolidayService
from utils import ConfigurationError, FetchError, NotifyError

logger = get_logger(__name__)

COUNTRY_CODE_RE = re.compile(r"^[A-Za-z]{2}$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_countries(raw: Optional[str]) -> Tuple[str, ...]:
    if raw is None or not raw.strip():
        raise ConfigurationError("country list is empty")
    countries = []
    for token in raw.split(","):
        code = token.strip()
        if not code:
            raise ConfigurationError(f"country list {raw!r} contains an empty entry")
        if not COUNTRY_CODE_RE.match(code):
            raise ConfigurationError(f"invalid country code {code!r} (expected 2 letters, e.g. US)")
        code = code.upper()
        if code not in countries:
            countries.append(code)
    return tuple(countries)


def parse_date(raw: Optional[str], today: Optional[datetime.date] = None) -> datetime.date:
    """Parses YYYY-MM-DD; no value means today in the local timezone."""
    if raw is None:
        return today if today is not None else datetime.date.today()
    text = raw.strip()
    try:
        if not ISO_DATE_RE.match(text):
            raise ValueError(text)
        return datetime.datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ConfigurationError(f"invalid date {raw!r} (expected YYYY-MM-DD)") from None


def require_env(name: str, environ: Mapping[str, str]) -> str:
    value = (environ.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"missing required environment variable: {name}")
    return value


def resolve_run_config(countries: Optional[str], date: Optional[str] = None,
                       environ: Optional[Mapping[str, str]] = None,
                       today: Optional[datetime.date] = None, dry_run: bool = False) -> RunConfig:
    environ = os.environ if environ is None else environ
    return RunConfig(
        countries=parse_countries(countries),
        date=parse_date(date, today=today),
        api_key=require_env(API_KEY_ENV, environ),
        webhook_url=require_env(WEBHOOK_URL_ENV, environ),
        dry_run=dry_run,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="holiday-notifier",
        description="Post today's public holidays for a set of countries to a Slack webhook.",
        epilog=f"Requires the {API_KEY_ENV} and {WEBHOOK_URL_ENV} environment variables.",
    )
    parser.add_argument(
        "countries",
        help='comma-separated list of countries in 2-letter format (ISO 3166-1 alpha-2, e.g. "US,UK,AU")',
    )
    parser.add_argument("--date", help="date to fetch in ISO8601 format, YYYY-MM-DD (defaults to current local day)")
    parser.add_argument("--dry-run", action="store_true", help="print the message instead of posting it")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper,
                        help="override LOG_LEVEL")
    return parser


def run(run_config: RunConfig, client: Optional[AbstractHolidaysClient] = None,
        notifier: Optional[SlackNotifier] = None, request_interval: Optional[float] = None) -> str:
    """
    Fetch, format, post. Returns the message that was sent (or printed on a dry run).
    Raises AllFetchesFailedError or NotifyError; the webhook is not called if every fetch failed.
    """
    log_ctx = {'date': run_config.date.isoformat(), 'countries': ",".join(run_config.countries)}
    logger.info(f"Sending holidays for {run_config.date.isoformat()}", extra={'context': log_ctx})

    client = client or AbstractHolidaysClient(run_config.api_key)
    service = HolidayService(client) if request_interval is None else HolidayService(client, request_interval)
    try:
        report = service.collect_or_abort(run_config.countries, run_config.date)
    finally:
        client.close()

    message = format_message(report.records, run_config.date, run_config.countries)
    if run_config.dry_run:
        logger.info("Dry run, webhook not called.", extra={'context': log_ctx})
        print(message)
        return message

    notifier = notifier or SlackNotifier(run_config.webhook_url)
    try:
        notifier.send(message)
    finally:
        notifier.close()
    return message


def main(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)

    try:
        run_config = resolve_run_config(args.countries, args.date, environ=environ, dry_run=args.dry_run)
    except ConfigurationError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        run(run_config)
    except FetchError as e:
        logger.error(f"Aborting, no holiday data: {e}")
        return EXIT_FAILURE
    except NotifyError as e:
        logger.error(f"Could not deliver holiday message: {e}")
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
