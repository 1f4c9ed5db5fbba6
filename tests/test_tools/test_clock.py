"""
Tests for the Clock utility
Clock-string parsing, tolerance windows and day buckets
"""

import pytest
from datetime import datetime, date, time

from errors import MalformedScheduleError
from models import TimeOfDay
from tools.clock import (
    at_clock_time,
    day_bounds,
    day_bucket_of,
    describe_time_until,
    format_clock_time,
    is_past_tolerance,
    is_within_tolerance,
    minutes_of_day,
    parse_clock_time,
    weekday_name,
)


# =============================================================================
# Parsing
# =============================================================================

class TestParseClockTime:
    """Tests for HH:MM parsing"""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,expected", [
        ("08:00", time(8, 0)),
        ("8:05", time(8, 5)),
        (" 23:59 ", time(23, 59)),
        ("00:00", time(0, 0)),
    ])
    def test_valid_times(self, raw, expected):
        assert parse_clock_time(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["24:00", "12:60", "noon", "8", "08:5", "", "08:00:00", None, 800])
    def test_malformed_times_raise(self, raw):
        with pytest.raises(MalformedScheduleError):
            parse_clock_time(raw)

    @pytest.mark.unit
    def test_error_carries_medicine_id(self):
        with pytest.raises(MalformedScheduleError) as exc_info:
            parse_clock_time("25:00", "med_9")
        assert exc_info.value.medicine_id == "med_9"
        assert exc_info.value.raw_time == "25:00"

    @pytest.mark.unit
    def test_time_objects_drop_seconds(self):
        assert parse_clock_time(time(7, 30, 45)) == time(7, 30)

    @pytest.mark.unit
    def test_format_and_minutes(self):
        assert format_clock_time(time(7, 5)) == "07:05"
        assert minutes_of_day("01:30") == 90


# =============================================================================
# Windows
# =============================================================================

class TestToleranceWindow:
    """Tests for the inclusive dose window"""

    @pytest.mark.unit
    def test_bounds_are_inclusive(self):
        scheduled = datetime(2024, 3, 6, 8, 0)
        assert is_within_tolerance(datetime(2024, 3, 6, 7, 30), scheduled)
        assert is_within_tolerance(datetime(2024, 3, 6, 8, 30), scheduled)
        assert not is_within_tolerance(datetime(2024, 3, 6, 8, 31), scheduled)
        assert not is_within_tolerance(datetime(2024, 3, 6, 7, 29), scheduled)

    @pytest.mark.unit
    def test_past_tolerance_is_strict(self):
        scheduled = datetime(2024, 3, 6, 8, 0)
        assert not is_past_tolerance(datetime(2024, 3, 6, 8, 30), scheduled)
        assert is_past_tolerance(datetime(2024, 3, 6, 8, 30, 1), scheduled)

    @pytest.mark.unit
    def test_custom_widths(self):
        scheduled = datetime(2024, 3, 6, 8, 0)
        assert is_within_tolerance(datetime(2024, 3, 6, 8, 50), scheduled, 10, 60)
        assert not is_within_tolerance(datetime(2024, 3, 6, 7, 45), scheduled, 10, 60)

    @pytest.mark.unit
    def test_day_bounds(self):
        start, end = day_bounds(date(2024, 3, 6))
        assert start == datetime(2024, 3, 6)
        assert end == datetime(2024, 3, 7)
        assert at_clock_time(date(2024, 3, 6), "20:15") == datetime(2024, 3, 6, 20, 15)


# =============================================================================
# Labels and buckets
# =============================================================================

class TestBuckets:

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,bucket", [
        ("06:00", TimeOfDay.MORNING),
        ("11:59", TimeOfDay.MORNING),
        ("12:00", TimeOfDay.AFTERNOON),
        ("17:00", TimeOfDay.EVENING),
        ("21:00", TimeOfDay.NIGHT),
        ("23:30", TimeOfDay.NIGHT),
    ])
    def test_day_bucket(self, raw, bucket):
        assert day_bucket_of(raw) == bucket

    @pytest.mark.unit
    def test_weekday_name_starts_monday(self):
        assert weekday_name(date(2024, 3, 4)) == "Monday"
        assert weekday_name(datetime(2024, 3, 10, 9, 0)) == "Sunday"

    @pytest.mark.unit
    def test_describe_time_until(self):
        now = datetime(2024, 3, 6, 8, 10)
        assert describe_time_until(now, datetime(2024, 3, 6, 8, 55)) == "in 45 minutes"
        assert describe_time_until(now, datetime(2024, 3, 6, 20, 0)) == "at 20:00"
