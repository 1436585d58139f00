# utils.py
import functools
import time
from typing import Callable, Dict, Optional, Tuple, Type

from config import get_logger, FETCH_ATTEMPTS, FETCH_RETRY_DELAY

logger = get_logger(__name__)


class HolidayNotifierError(Exception):
    """Base error for the notifier pipeline."""


class ConfigurationError(HolidayNotifierError):
    """Bad or missing input (CLI arguments or environment)."""


class FetchError(HolidayNotifierError):
    """Holiday data for one country could not be fetched or parsed."""

    def __init__(self, country: str, message: str, status: Optional[int] = None):
        self.country = country
        self.status = status
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.country}: {self.message} (HTTP {self.status})"
        return f"{self.country}: {self.message}"


class InvalidJSONPayloadError(FetchError):
    """The holiday API answered, but the body is not the expected JSON shape."""


class AllFetchesFailedError(FetchError):
    """Raised when no requested country could be fetched."""

    def __init__(self, failures: Dict[str, FetchError]):
        self.failures = dict(failures)
        countries = ",".join(self.failures)
        super().__init__(countries, f"all {len(self.failures)} country fetches failed")


class NotifyError(HolidayNotifierError):
    """The webhook did not accept the message."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        self.message = message
        super().__init__(message if status is None else f"{message} (HTTP {status})")


def retry_on_exception(exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                       attempts: Optional[int] = None,
                       delay: Optional[float] = None) -> Callable:
    """
    Re-invokes the wrapped callable when it raises one of `exceptions`.
    Fixed delay between attempts; the last error is re-raised.
    When `attempts`/`delay` are omitted, HOLIDAY_FETCH_ATTEMPTS and
    HOLIDAY_FETCH_RETRY_DELAY from config apply.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            max_attempts = max(1, attempts if attempts is not None else FETCH_ATTEMPTS)
            pause = delay if delay is not None else FETCH_RETRY_DELAY
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        raise
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {e}. "
                        f"Retrying in {pause}s...")
                    time.sleep(pause)

        return wrapper

    return decorator
