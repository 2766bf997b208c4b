"""
Test suite for BSON type coercion.

Version: 1.0
"""

# External imports with versions
import pytest  # pytest v7.3+
from freezegun import freeze_time  # freezegun v1.2+
from datetime import datetime, timedelta
import pytz
from bson import ObjectId
from bson.binary import Binary
from bson.datetime_ms import DatetimeMS

# Internal imports
from docmapper.core.exceptions import DateParseException
from docmapper.utils.coercion import (
    DateCoercionStrategy,
    from_stored_identifier,
    from_stored_timestamp,
    to_stored_identifier,
    to_stored_timestamp,
)

VALID_IDS = [
    "507f1f77bcf86cd799439011",
    "000000000000000000000000",
    "ffffffffffffffffffffffff",
    "5F2B3C4D5E6F708192A3B4C5",
]


class TestIdentifierCoercion:

    @pytest.mark.parametrize("value", VALID_IDS)
    def test_round_trip(self, value):
        stored = to_stored_identifier(value)
        assert isinstance(stored, ObjectId)
        assert from_stored_identifier(stored) == value.lower()

    @pytest.mark.parametrize("value", [
        "not-an-id",
        "507f1f77bcf86cd79943901",
        "507f1f77bcf86cd799439011a",
        "zzzzzzzzzzzzzzzzzzzzzzzz",
        "",
        12,
        None,
    ])
    def test_invalid_values_pass_through(self, value):
        assert to_stored_identifier(value) == value

    def test_binary_reads_as_raw_bytes(self):
        value = from_stored_identifier(Binary(b"\x01\x02abc"))
        assert value == b"\x01\x02abc"
        assert type(value) is bytes

    def test_other_values_unchanged(self):
        assert from_stored_identifier("plain") == "plain"
        assert from_stored_identifier(42) == 42


class TestTimestampCoercion:

    @pytest.mark.parametrize("value", [
        datetime(2021, 3, 4, 5, 6, 7, 123000, tzinfo=pytz.UTC),
        datetime(1970, 1, 1, tzinfo=pytz.UTC),
        datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=pytz.UTC),
        datetime(1950, 6, 15, 12, 0, 0, 1000, tzinfo=pytz.UTC),
        datetime(1900, 1, 1, 0, 0, 0, 999000, tzinfo=pytz.UTC),
    ])
    def test_round_trip_keeps_milliseconds(self, value):
        assert from_stored_timestamp(to_stored_timestamp(value)) == value

    def test_pre_epoch_value_is_not_corrupted(self):
        # 1.5 seconds before the epoch
        value = datetime(1969, 12, 31, 23, 59, 58, 500000, tzinfo=pytz.UTC)
        stored = to_stored_timestamp(value)
        assert int(stored) == -1500
        assert from_stored_timestamp(stored) == value

    def test_stored_value_is_idempotent(self):
        stored = DatetimeMS(1614834367123)
        assert to_stored_timestamp(stored) is stored

    def test_sub_millisecond_precision_is_floored(self):
        value = datetime(2021, 3, 4, 5, 6, 7, 123999, tzinfo=pytz.UTC)
        stored = to_stored_timestamp(value)
        assert from_stored_timestamp(stored) == value.replace(microsecond=123000)

    def test_naive_datetimes_are_utc(self):
        stored = to_stored_timestamp(datetime(2020, 1, 1))
        assert int(stored) == 1577836800000

    def test_other_timezones_are_converted(self):
        eastern = pytz.timezone("US/Eastern").localize(datetime(2020, 1, 1, 7, 0))
        assert from_stored_timestamp(to_stored_timestamp(eastern)) == eastern

    def test_strings_are_parsed(self):
        stored = to_stored_timestamp("2020-01-01T00:00:00.250Z")
        assert int(stored) == 1577836800250

    def test_unparseable_values_raise(self):
        with pytest.raises(DateParseException):
            to_stored_timestamp("next tuesday-ish")

    def test_from_stored_delegates_to_parser(self):
        assert from_stored_timestamp("2020-01-01") == datetime(2020, 1, 1, tzinfo=pytz.UTC)


class TestDateCoercionStrategy:

    def test_custom_parser_is_used(self):
        calls = []

        def parser(value):
            calls.append(value)
            return datetime(2000, 1, 1, tzinfo=pytz.UTC)

        strategy = DateCoercionStrategy(parser=parser)
        stored = strategy.to_stored("anything")
        assert calls == ["anything"]
        assert int(stored) == 946684800000

    def test_parser_errors_propagate(self):
        def parser(value):
            raise DateParseException(value)

        strategy = DateCoercionStrategy(parser=parser)
        with pytest.raises(DateParseException):
            strategy.to_stored("bad")

    @freeze_time("2023-12-01 10:30:00.123456")
    def test_fresh_timestamp_uses_clock(self):
        strategy = DateCoercionStrategy()
        stored = strategy.fresh_timestamp()
        assert strategy.from_stored(stored) == datetime(2023, 12, 1, 10, 30, 0, 123000, tzinfo=pytz.UTC)

    def test_injected_clock(self):
        moment = datetime(2022, 2, 2, tzinfo=pytz.UTC) + timedelta(milliseconds=7)
        strategy = DateCoercionStrategy(clock=lambda: moment)
        assert strategy.from_stored(strategy.fresh_timestamp()) == moment
