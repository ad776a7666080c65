"""Tests for time-of-day arithmetic."""

from datetime import datetime, time

import pytest

from salon_booking.scheduling.clock import (
    add_minutes,
    ceil_to_step,
    format_time,
    from_minutes,
    is_step_aligned,
    minute_of_day,
    parse_time,
    to_minutes,
)


class TestParseTime:
    def test_hh_mm(self):
        assert parse_time("09:30") == time(9, 30)

    def test_hh_mm_ss_drops_seconds(self):
        assert parse_time("09:30:45") == time(9, 30)

    def test_surrounding_whitespace(self):
        assert parse_time(" 18:00 ") == time(18, 0)

    def test_time_object_passes_through(self):
        assert parse_time(time(14, 5, 12)) == time(14, 5)

    @pytest.mark.parametrize("bad", ["", "9h30", "25:00", "12:60", "noon"])
    def test_malformed_raises(self, bad):
        with pytest.raises(ValueError):
            parse_time(bad)


class TestMinuteConversion:
    def test_to_minutes(self):
        assert to_minutes("00:00") == 0
        assert to_minutes("09:30") == 570
        assert to_minutes("23:59:59") == 1439

    def test_from_minutes(self):
        assert from_minutes(570) == time(9, 30)
        assert from_minutes(0) == time(0, 0)

    def test_from_minutes_out_of_range(self):
        with pytest.raises(ValueError):
            from_minutes(1440)
        with pytest.raises(ValueError):
            from_minutes(-1)

    def test_add_minutes(self):
        assert add_minutes("09:30", 45) == time(10, 15)
        assert add_minutes(time(17, 0), -30) == time(16, 30)

    def test_add_minutes_past_midnight_raises(self):
        with pytest.raises(ValueError):
            add_minutes("23:30", 45)

    def test_format_time(self):
        assert format_time(time(9, 5)) == "09:05"
        assert format_time("14:00:00") == "14:00"


class TestStepHelpers:
    def test_ceil_to_step(self):
        assert ceil_to_step(675, 30) == 690   # 11:15 -> 11:30
        assert ceil_to_step(690, 30) == 690
        assert ceil_to_step(691, 30) == 720

    def test_is_step_aligned(self):
        assert is_step_aligned(630, 30)
        assert not is_step_aligned(795, 30)

    def test_minute_of_day(self):
        assert minute_of_day(datetime(2030, 3, 18, 11, 15, 59)) == 675
