"""Timestamp helpers for the Timesheet API.

The API expects timestamps as ``YYYY-MM-DDTHH:MM:SS±HH:MM``: second
precision, always with an explicit UTC offset, never a ``Z`` suffix.
"""

import re
from datetime import date, datetime

from .exceptions import ConfigurationError

TIMESTAMP_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}")

DateInput = datetime | date | str | None


def is_valid_timestamp_format(timestamp: str) -> bool:
    """Check if a string is already in the API timestamp format."""
    return isinstance(timestamp, str) and TIMESTAMP_PATTERN.fullmatch(timestamp) is not None


def parse_timestamp(timestamp: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted).

    Raises:
        ConfigurationError: If the string is not a valid ISO-8601 timestamp
    """
    try:
        return datetime.fromisoformat(timestamp.strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid timestamp: {timestamp!r}") from e


def _to_datetime(value: DateInput) -> datetime:
    if value is None:
        return datetime.now().astimezone()
    if isinstance(value, str):
        value = parse_timestamp(value)
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    # Naive values are local time
    return value.astimezone() if value.tzinfo is None else value


def format_timestamp(value: DateInput = None) -> str:
    """Format a value as an API timestamp.

    Args:
        value: A datetime, date or ISO-8601 string; defaults to now. Naive
            datetimes are interpreted in the local timezone. Strings already
            in the API format are returned unchanged.

    Returns:
        Timestamp like ``2024-03-01T09:30:00+01:00``

    Raises:
        ConfigurationError: If a string value cannot be parsed
    """
    if isinstance(value, str) and is_valid_timestamp_format(value):
        return value
    return _to_datetime(value).isoformat(timespec="seconds")


def format_date(value: DateInput = None) -> str:
    """Format a value as ``YYYY-MM-DD``; defaults to today."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return _to_datetime(value).strftime("%Y-%m-%d")


def now() -> str:
    """Current local time as an API timestamp."""
    return format_timestamp()
