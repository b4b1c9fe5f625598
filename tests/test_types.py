"""Tests for date and timestamp helpers and enum parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from graphnote.errors import InvalidDate, ValidationError
from graphnote.types import (
    MAX_TITLE_LENGTH,
    ObjectType,
    RelationType,
    day_of,
    format_date_string,
    format_timestamp,
    parse_object_type,
    parse_relation_type,
    parse_utc_timestamp,
    validate_date_string,
    validate_title,
)


class TestValidateDateString:

    @pytest.mark.parametrize("value", ["2025-01-15", "2024-02-29", "1999-12-31"])
    def test_accepts_calendar_days(self, value):
        assert validate_date_string(value) == value

    @pytest.mark.parametrize("value", [
        "2025-13-01", "2025-02-30", "2023-02-29", "not-a-date",
        "2025-1-5", "2025-01-15T00:00:00", "", " 2025-01-15",
    ])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidDate) as exc_info:
            validate_date_string(value)
        assert exc_info.value.value == value
        assert repr(value) in str(exc_info.value)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidDate):
            validate_date_string(20250115)

    def test_invalid_date_is_validation_error(self):
        with pytest.raises(ValidationError):
            validate_date_string("2025-02-30")


class TestTimestamps:

    def test_format_is_fixed_width_utc(self):
        ts = format_timestamp(datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc))
        assert ts == "2025-01-15T10:00:00.000000"

    def test_aware_datetime_converted_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        ts = format_timestamp(datetime(2025, 1, 15, 23, 30, tzinfo=eastern))
        assert ts == "2025-01-16T04:30:00.000000"
        assert day_of(ts) == "2025-01-16"

    def test_naive_datetime_taken_as_utc(self):
        assert format_timestamp(datetime(2025, 1, 15, 10, 0)) == "2025-01-15T10:00:00.000000"

    def test_string_order_is_time_order(self):
        earlier = format_timestamp(datetime(2025, 1, 9, 23, 59, 59, 999999))
        later = format_timestamp(datetime(2025, 1, 10, 0, 0))
        assert earlier < later

    def test_parse_round_trip(self):
        dt = datetime(2025, 6, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)
        assert parse_utc_timestamp(format_timestamp(dt)) == dt

    def test_parse_accepts_z_suffix(self):
        assert parse_utc_timestamp("2025-01-15T10:00:00Z") == datetime(
            2025, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_format_date_string(self):
        eastern = timezone(timedelta(hours=-5))
        assert format_date_string(datetime(2025, 1, 15, 20, 0, tzinfo=eastern)) == "2025-01-16"


class TestParsing:

    def test_object_type_from_string(self):
        assert parse_object_type("daily-note") is ObjectType.DAILY_NOTE
        assert parse_object_type(ObjectType.TASK) is ObjectType.TASK

    def test_unknown_object_type(self):
        with pytest.raises(ValidationError, match="Unknown object type"):
            parse_object_type("widget")

    def test_relation_type(self):
        assert parse_relation_type("created_on") is RelationType.CREATED_ON
        with pytest.raises(ValidationError):
            parse_relation_type("likes")

    def test_title_bounds(self):
        assert validate_title("x" * MAX_TITLE_LENGTH)
        with pytest.raises(ValidationError):
            validate_title("x" * (MAX_TITLE_LENGTH + 1))
        with pytest.raises(ValidationError):
            validate_title("   ")
