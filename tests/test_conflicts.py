"""Tests for the overlap predicate and conflict lookup."""

import pytest

from salon_booking.errors import InvalidIntervalError
from salon_booking.scheduling.conflicts import (
    conflicting,
    first_conflict,
    interval_for_duration,
    make_interval,
    overlaps,
)
from salon_booking.schemas.booking_schema import AppointmentStatus
from tests.conftest import interval, make_appointment


class TestOverlaps:
    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(interval("09:00", "10:00"), interval("10:00", "11:00"))
        assert not overlaps(interval("10:00", "11:00"), interval("09:00", "10:00"))

    def test_partial_overlap(self):
        assert overlaps(interval("09:00", "10:15"), interval("10:00", "11:00"))

    def test_containment(self):
        assert overlaps(interval("09:00", "12:00"), interval("10:00", "10:30"))
        assert overlaps(interval("10:00", "10:30"), interval("09:00", "12:00"))

    def test_identical(self):
        assert overlaps(interval("10:00", "10:30"), interval("10:00", "10:30"))

    def test_disjoint(self):
        assert not overlaps(interval("08:00", "09:00"), interval("13:00", "14:00"))


class TestFirstConflict:
    def test_reports_earliest_starting(self):
        existing = [
            make_appointment("11:00", "12:00", appointment_id="late"),
            make_appointment("09:30", "10:30", appointment_id="early"),
        ]
        clash = first_conflict(interval("10:00", "11:30"), existing)
        assert clash.id == "early"

    def test_no_conflict_returns_none(self):
        existing = [make_appointment("09:00", "10:00", appointment_id="a")]
        assert first_conflict(interval("10:00", "10:30"), existing) is None

    def test_cancelled_appointments_never_conflict(self):
        existing = [
            make_appointment("10:00", "11:00", status=AppointmentStatus.CANCELLED, appointment_id="c"),
        ]
        assert first_conflict(interval("10:00", "10:30"), existing) is None

    def test_excluded_appointment_is_skipped(self):
        existing = [make_appointment("10:00", "11:00", appointment_id="self")]
        assert first_conflict(interval("10:30", "11:30"), existing, exclude_id="self") is None

    def test_conflicting_sorted_by_start(self):
        existing = [
            make_appointment("12:00", "13:00", appointment_id="c"),
            make_appointment("10:00", "11:00", appointment_id="a"),
            make_appointment("11:00", "12:00", appointment_id="b"),
        ]
        hits = conflicting(interval("09:00", "18:00"), existing)
        assert [apt.id for apt in hits] == ["a", "b", "c"]


class TestMakeInterval:
    def test_valid(self):
        built = make_interval("10:00", "10:45", min_minutes=15)
        assert built.duration_minutes == 45

    def test_end_before_start(self):
        with pytest.raises(InvalidIntervalError):
            make_interval("11:00", "10:00")

    def test_zero_length(self):
        with pytest.raises(InvalidIntervalError):
            make_interval("11:00", "11:00")

    def test_below_minimum(self):
        with pytest.raises(InvalidIntervalError, match="15-minute minimum"):
            make_interval("11:00", "11:10", min_minutes=15)

    def test_malformed_time(self):
        with pytest.raises(InvalidIntervalError):
            make_interval("11h", "12:00")

    def test_invalid_interval_is_a_value_error(self):
        with pytest.raises(ValueError):
            make_interval("12:00", "11:00")


class TestIntervalForDuration:
    def test_end_from_duration(self):
        built = interval_for_duration("10:30", 45)
        assert str(built) == "10:30-11:15"

    def test_running_past_midnight_raises(self):
        with pytest.raises(InvalidIntervalError, match="midnight"):
            interval_for_duration("23:30", 60)
