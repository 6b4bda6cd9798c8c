"""Error taxonomy for the Timesheet SDK.

All errors raised by the SDK derive from :class:`TimesheetError`:

- :class:`TimesheetApiError` for anything the API (or the network) reported
- :class:`TimesheetAuthError` for rejected or unrefreshable credentials
- :class:`TimesheetRateLimitError` for HTTP 429 responses
- :class:`ConfigurationError` for programmer/config mistakes, raised
  synchronously and never retried
- :class:`DiscoveryError` for OAuth metadata discovery failures
"""

import math
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimesheetError(Exception):
    """Base class for all SDK errors."""

    pass


class ConfigurationError(TimesheetError, ValueError):
    """Invalid SDK configuration (malformed key, bad PKCE verifier, ...)."""

    pass


class DiscoveryError(TimesheetError):
    """Error during OAuth metadata discovery."""

    pass


def _format_message(message: str, status_code: int | None, error_code: str | None) -> str:
    if not status_code:
        return message
    if error_code:
        return f"{message} (HTTP {status_code}, Code: {error_code})"
    return f"{message} (HTTP {status_code})"


class TimesheetApiError(TimesheetError):
    """Error reported by the Timesheet API or raised while talking to it.

    Attributes:
        message: The human-readable message, without the status suffix
        status_code: HTTP status code, if a response was received
        response_body: Raw response body, if any
        error_code: API error code from the response body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(_format_message(message, status_code, error_code))
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.error_code = error_code


class TimesheetAuthError(TimesheetApiError):
    """Authentication failed; the caller must re-authenticate."""

    ERROR_CODE = "authentication_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = 401,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, status_code, response_body, self.ERROR_CODE)


class TimesheetRateLimitError(TimesheetApiError):
    """The API rejected the request with HTTP 429.

    ``retry_after`` holds the raw ``Retry-After`` header, which may be
    epoch seconds or a date string.
    """

    ERROR_CODE = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: str | None = None) -> None:
        super().__init__(message, 429, None, self.ERROR_CODE)
        self.retry_after = retry_after

    def get_retry_after_date(self) -> datetime | None:
        """Parse ``retry_after`` as a timezone-aware datetime.

        Numeric values are treated as epoch seconds. Anything else is tried
        as an ISO-8601 string and then as an HTTP date.

        Returns:
            The retry-after instant, or None if absent or unparseable
        """
        if not self.retry_after:
            return None

        value = self.retry_after.strip()
        if not value:
            return None

        try:
            seconds = float(value)
        except ValueError:
            seconds = None

        if seconds is not None:
            if not math.isfinite(seconds):
                return None
            try:
                return _EPOCH + timedelta(seconds=seconds)
            except (OverflowError, ValueError):
                # Outside the datetime range (years 1-9999)
                return None

        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                return None

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
