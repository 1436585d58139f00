# services.py
import datetime
import time
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Iterable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import (get_logger, ABSTRACT_API_URL, HTTP_TIMEOUT, API_RETRIES, API_REQUEST_INTERVAL)
from utils import FetchError, InvalidJSONPayloadError, AllFetchesFailedError, retry_on_exception

logger = get_logger(__name__)

REQUIRED_FIELDS = ("name", "date", "type")
# Abstract returns MM/DD/YYYY; ISO is accepted as well
API_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


@dataclass(frozen=True)
class HolidayRecord:
    country: str
    name: str
    date: datetime.date
    type: str
    name_local: Optional[str] = None


@dataclass
class FetchReport:
    """Result of one run's fetch stage: one slot per requested country."""

    countries: List[str]
    results: Dict[str, List[HolidayRecord]] = field(default_factory=dict)
    failures: Dict[str, FetchError] = field(default_factory=dict)

    @property
    def records(self) -> List[HolidayRecord]:
        return [record for country in self.countries for record in self.results.get(country, [])]

    @property
    def all_failed(self) -> bool:
        return bool(self.countries) and len(self.failures) == len(self.countries)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_api_date(value: Any) -> datetime.date:
    text = str(value).strip()
    for fmt in API_DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognised date {text!r}")


def parse_holidays(country: str, payload: Any) -> List[HolidayRecord]:
    """
    Maps the decoded API body to HolidayRecord values.
    Extra fields are ignored; a missing required field fails the whole country.
    """
    if not isinstance(payload, list):
        raise InvalidJSONPayloadError(country, f"expected a JSON array, got {type(payload).__name__}")

    records = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise InvalidJSONPayloadError(country, f"item {index} is not an object")
        missing = [name for name in REQUIRED_FIELDS if _optional_text(entry.get(name)) is None]
        if missing:
            raise InvalidJSONPayloadError(country, f"item {index} is missing {', '.join(missing)}")
        try:
            holiday_date = _parse_api_date(entry["date"])
        except ValueError as e:
            raise InvalidJSONPayloadError(country, f"item {index}: {e}") from e

        records.append(HolidayRecord(
            country=country,
            name=str(entry["name"]).strip(),
            date=holiday_date,
            type=str(entry["type"]).strip(),
            name_local=_optional_text(entry.get("name_local")),
        ))
    return records


def build_session(retries: int = API_RETRIES) -> requests.Session:
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class AbstractHolidaysClient:
    """Client for the Abstract holidays API (one GET per country and day)."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 base_url: str = ABSTRACT_API_URL, timeout: float = HTTP_TIMEOUT):
        self.api_key = api_key
        self.session = session if session is not None else build_session()
        self.base_url = base_url
        self.timeout = timeout

    @retry_on_exception(exceptions=(FetchError,))
    def fetch(self, country: str, target_date: datetime.date) -> List[HolidayRecord]:
        params = {
            "api_key": self.api_key,
            "country": country,
            "year": target_date.year,
            "month": target_date.month,
            "day": target_date.day,
        }
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchError(country, f"request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            # the exception text carries the request URL, api_key included
            raise FetchError(country, f"network error: {e.__class__.__name__}") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(country, "holiday API returned an error", status=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidJSONPayloadError(country, "response body is not valid JSON",
                                          status=response.status_code) from e
        return parse_holidays(country, payload)

    def close(self):
        self.session.close()


class HolidayService:
    """
    Runs the fetch stage: every requested country once, in order.
    A failing country is logged and recorded; the others still get fetched.
    """

    def __init__(self, client: AbstractHolidaysClient, request_interval: float = API_REQUEST_INTERVAL):
        self.client = client
        self.request_interval = request_interval
        self.logger = get_logger(self.__class__.__name__)

    def collect(self, countries: Iterable[str], target_date: datetime.date) -> FetchReport:
        report = FetchReport(countries=list(countries))
        for position, country in enumerate(report.countries):
            log_ctx = {'country': country, 'date': target_date.isoformat()}
            if position and self.request_interval > 0:
                # the free API tier allows roughly one request per second
                time.sleep(self.request_interval)

            self.logger.info(f"Fetching holidays for {country}...", extra={'context': log_ctx})
            try:
                records = self.client.fetch(country, target_date)
            except FetchError as e:
                self.logger.warning(f"Could not fetch holidays for {country}: {e}", extra={'context': log_ctx})
                report.failures[country] = e
                continue

            report.results[country] = records
            self.logger.info(f"Found {len(records)} holidays for {country}.", extra={'context': log_ctx})
            for record in records:
                self.logger.debug(f"{record}", extra={'context': log_ctx})

        return report

    def collect_or_abort(self, countries: Iterable[str], target_date: datetime.date) -> FetchReport:
        """Same as collect(), but raises AllFetchesFailedError when nothing could be fetched."""
        report = self.collect(countries, target_date)
        if report.all_failed:
            self.logger.error(f"Holiday fetch failed for every country ({', '.join(report.countries)}).")
            raise AllFetchesFailedError(report.failures)
        if report.failures:
            self.logger.warning(
                f"Posting partial results; failed countries: {', '.join(report.failures)}.")
        return report
