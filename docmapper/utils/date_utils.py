"""
Date and Time Utility Module

This module is the date parser used by the attribute coercion layer. It turns
arbitrary date-like input into timezone-aware UTC datetimes and provides the
millisecond arithmetic the BSON date type relies on.

Version: 1.0.0
"""

from datetime import date, datetime, timedelta
import pytz  # version: 2023.3
from typing import Any, Optional, Callable
import logging

from bson.datetime_ms import DatetimeMS  # pymongo v4.3+

from docmapper.core.exceptions import DateParseException

logger = logging.getLogger(__name__)

# Global Constants
DEFAULT_TIMEZONE = pytz.UTC
EPOCH = datetime(1970, 1, 1, tzinfo=DEFAULT_TIMEZONE)
ONE_MILLISECOND = timedelta(milliseconds=1)

# Accepted string layouts besides ISO-8601, tried in order
DATE_FORMATS = (
    '%Y-%m-%d %H:%M:%S.%f',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
)


def now(tz=DEFAULT_TIMEZONE) -> datetime:
    """Returns the current instant as an aware datetime."""
    return datetime.now(tz)


def localize(value: datetime) -> datetime:
    """
    Ensures a datetime is timezone-aware and expressed in UTC.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return DEFAULT_TIMEZONE.localize(value)
    return value.astimezone(DEFAULT_TIMEZONE)


def parse_date_string(value: str) -> datetime:
    """
    Parses a date string to an aware UTC datetime.

    Args:
        value (str): ISO-8601 or 'Y-m-d[ H:M:S[.f]]' formatted string

    Returns:
        datetime: Parsed UTC datetime object

    Raises:
        DateParseException: If no supported layout matches

    Example:
        >>> parse_date_string('2023-12-01T10:30:00.123Z')
        datetime.datetime(2023, 12, 1, 10, 30, 0, 123000, tzinfo=<UTC>)
    """
    text = value.strip()
    if not text:
        raise DateParseException(value)

    # Handle timezone suffix
    iso_text = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        return localize(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for layout in DATE_FORMATS:
        try:
            return localize(datetime.strptime(text, layout))
        except ValueError:
            continue

    logger.debug(f"No supported date layout matched {value!r}")
    raise DateParseException(value)


def as_datetime(value: Any) -> datetime:
    """
    Converts arbitrary date-like input to an aware UTC datetime.

    Accepts datetimes, dates, BSON DatetimeMS values, epoch seconds (int or
    float, or a string of digits) and date strings.

    Raises:
        DateParseException: If the value cannot be interpreted
    """
    if isinstance(value, datetime):
        return localize(value)

    if isinstance(value, date):
        return DEFAULT_TIMEZONE.localize(datetime(value.year, value.month, value.day))

    if isinstance(value, DatetimeMS):
        return from_timestamp_ms(int(value))

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EPOCH + timedelta(seconds=value)

    if isinstance(value, str):
        if value.strip().lstrip('-').isdigit():
            return EPOCH + timedelta(seconds=int(value))
        return parse_date_string(value)

    raise DateParseException(value)


def to_timestamp_ms(value: datetime) -> int:
    """
    Returns the integer number of milliseconds since the epoch.

    Sub-millisecond precision is floored, so pre-epoch instants stay on the
    millisecond boundary at or before the original value.
    """
    return (localize(value) - EPOCH) // ONE_MILLISECOND


def from_timestamp_ms(milliseconds: int) -> datetime:
    """Builds an aware UTC datetime from milliseconds since the epoch."""
    return EPOCH + timedelta(milliseconds=milliseconds)


def start_of_day(value: datetime) -> datetime:
    """Truncates an aware datetime to midnight of the same day."""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def format_datetime(value: datetime, format_string: Optional[str] = None) -> str:
    """
    Formats a datetime with the given strftime layout, in UTC.

    Example:
        >>> format_datetime(datetime(2023, 12, 1, 10, 30, tzinfo=pytz.UTC))
        '2023-12-01 10:30:00'
    """
    return localize(value).strftime(format_string or '%Y-%m-%d %H:%M:%S')


# Type of the pluggable parser accepted by the coercion strategies
DateParser = Callable[[Any], datetime]
Clock = Callable[[], datetime]
