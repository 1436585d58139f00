# config.py
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import date
from typing import Tuple

from dotenv import load_dotenv

# Values already exported in the process take priority over .env
load_dotenv(override=False)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_KEY_ENV = "ABSTRACT_API_KEY"
WEBHOOK_URL_ENV = "SLACK_WEBHOOK_URL"

ABSTRACT_API_URL = os.getenv("ABSTRACT_API_URL", "https://holidays.abstractapi.com/v1/")


class ContextFormatter(logging.Formatter):
    """Appends the `context` dict passed through `extra=` to the log line."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            message = f"{message} | context: {pairs}"
        return message


_handler = None
_level = LOG_LEVEL


def _root_handler() -> logging.Handler:
    global _handler
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(ContextFormatter(LOG_FORMAT))
    return _handler


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_root_handler())
        logger.setLevel(_level)
        logger.propagate = False
    return logger


def set_log_level(level: str) -> None:
    """Changes the level of every logger created through get_logger, now and later."""
    global _level
    _level = level.upper()
    for logger in logging.Logger.manager.loggerDict.values():
        if isinstance(logger, logging.Logger) and _handler in logger.handlers:
            logger.setLevel(_level)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        get_logger(__name__).warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default


HTTP_TIMEOUT = _env_number("HOLIDAY_HTTP_TIMEOUT", 10.0, float)
API_RETRIES = _env_number("HOLIDAY_API_RETRIES", 2, int)
API_REQUEST_INTERVAL = _env_number("HOLIDAY_API_REQUEST_INTERVAL", 1.0, float)
FETCH_ATTEMPTS = _env_number("HOLIDAY_FETCH_ATTEMPTS", 1, int)
FETCH_RETRY_DELAY = _env_number("HOLIDAY_FETCH_RETRY_DELAY", 2.0, float)


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs, resolved once from CLI arguments and environment."""

    countries: Tuple[str, ...]
    date: date
    api_key: str = field(repr=False)
    webhook_url: str = field(repr=False)
    dry_run: bool = False
