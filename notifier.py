# notifier.py
import datetime
from typing import List, Iterable, Optional, Sequence

import requests

from config import get_logger, HTTP_TIMEOUT
from messages import (HEADER_TEMPLATE, HOLIDAY_LINE_TEMPLATE, LOCAL_NAME_SUFFIX_TEMPLATE, NO_HOLIDAYS_TEMPLATE)
from services import HolidayRecord
from utils import NotifyError

logger = get_logger(__name__)


def _sort_key(record: HolidayRecord):
    return record.country, record.name, record.name_local or ""


def format_holiday_line(record: HolidayRecord) -> str:
    line = HOLIDAY_LINE_TEMPLATE.format(country=record.country, name=record.name)
    if record.name_local and record.name_local != record.name:
        line += LOCAL_NAME_SUFFIX_TEMPLATE.format(name_local=record.name_local)
    return line


def format_message(records: Iterable[HolidayRecord], target_date: datetime.date,
                   countries: Optional[Sequence[str]] = None) -> str:
    """
    Builds the chat message: a header, then one line per holiday ordered by
    country code and holiday name. Never returns an empty string.
    """
    ordered = sorted(records, key=_sort_key)
    if not ordered:
        label = ", ".join(countries) if countries else "the requested countries"
        return NO_HOLIDAYS_TEMPLATE.format(date=target_date.isoformat(), countries=label)

    lines: List[str] = [HEADER_TEMPLATE.format(date=target_date.isoformat())]
    for record in ordered:
        line = format_holiday_line(record)
        # the API may list the same holiday once per region
        if line not in lines:
            lines.append(line)
    return "\n".join(lines)


class SlackNotifier:
    """Posts a plain-text message to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, session: Optional[requests.Session] = None,
                 timeout: float = HTTP_TIMEOUT):
        self.webhook_url = webhook_url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.logger = get_logger(self.__class__.__name__)

    def send(self, text: str) -> None:
        log_ctx = {'service': 'webhook', 'chars': len(text)}
        self.logger.info("Posting holiday message to webhook...", extra={'context': log_ctx})
        try:
            response = self.session.post(self.webhook_url, json={"text": text}, timeout=self.timeout)
        except requests.Timeout as e:
            raise NotifyError(f"webhook request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise NotifyError(f"webhook request failed: {e.__class__.__name__}") from e

        if not 200 <= response.status_code < 300:
            self.logger.error(f"Webhook rejected the message: {response.text[:500]}", extra={'context': log_ctx})
            raise NotifyError("webhook rejected the message", status=response.status_code)
        self.logger.info("Holiday message delivered.", extra={'context': log_ctx})

    def close(self):
        self.session.close()
