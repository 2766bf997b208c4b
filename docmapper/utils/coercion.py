"""
Type coercion between BSON native values and Python values.

Identifiers travel as 24-hex strings in Python and as ObjectId in the store,
binary blobs as bytes, and dates as aware UTC datetimes in Python and as
millisecond DatetimeMS values in the store. Every conversion here is total:
values that do not fit a conversion are passed through untouched and any
error is left to the date parser or the store.

Version: 1.0
"""

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.binary import Binary
from bson.datetime_ms import DatetimeMS

from docmapper.utils import date_utils
from docmapper.utils.date_utils import DateParser, Clock


def to_stored_identifier(value: Any) -> Any:
    """Returns an ObjectId for valid 24-hex strings, anything else unchanged."""
    if isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def from_stored_identifier(value: Any) -> Any:
    """Returns the hex string of an ObjectId or the raw bytes of a Binary."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Binary):
        return bytes(value)
    return value


class IdentityCoercionStrategy:
    """Converts identity attribute values to and from their stored form."""

    def to_stored(self, value: Any) -> Any:
        return to_stored_identifier(value)

    def from_stored(self, value: Any) -> Any:
        return from_stored_identifier(value)


class DateCoercionStrategy:
    """
    Converts date attribute values to and from DatetimeMS.

    The date parser and the clock are injected so callers can swap the
    parsing rules or freeze time without patching module globals.
    """

    def __init__(
        self,
        parser: Optional[DateParser] = None,
        clock: Optional[Clock] = None
    ):
        self.parser = parser or date_utils.as_datetime
        self.clock = clock or date_utils.now

    def to_stored(self, value: Any) -> DatetimeMS:
        """
        Encodes a date-like value as milliseconds since the epoch.

        DatetimeMS values are returned as they are. Anything else goes through
        the date parser first, so unparseable input raises DateParseException.
        """
        if isinstance(value, DatetimeMS):
            return value

        if not isinstance(value, datetime):
            value = self.parser(value)

        return DatetimeMS(date_utils.to_timestamp_ms(value))

    def from_stored(self, value: Any) -> datetime:
        """Decodes a DatetimeMS value, or parses any other date-like value."""
        if isinstance(value, DatetimeMS):
            seconds, milliseconds = divmod(int(value), 1000)
            # Sign lives in the seconds part; the remainder is always 0..999
            timestamp_ms = seconds * 1000 + abs(milliseconds)
            return date_utils.from_timestamp_ms(timestamp_ms)

        return self.parser(value)

    def fresh_timestamp(self) -> DatetimeMS:
        """Returns the current instant in stored form."""
        return DatetimeMS(date_utils.to_timestamp_ms(self.clock()))


_default_dates = DateCoercionStrategy()


def to_stored_timestamp(value: Any) -> DatetimeMS:
    return _default_dates.to_stored(value)


def from_stored_timestamp(value: Any) -> datetime:
    return _default_dates.from_stored(value)


__all__ = [
    "to_stored_identifier",
    "from_stored_identifier",
    "to_stored_timestamp",
    "from_stored_timestamp",
    "IdentityCoercionStrategy",
    "DateCoercionStrategy",
]
