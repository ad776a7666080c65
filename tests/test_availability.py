"""Tests for free-range, grid and start-option computation."""

from datetime import time, timedelta

from salon_booking.scheduling.availability import (
    fixed_grid_slots,
    free_blocks_across_days,
    free_ranges,
    past_cutoff,
    service_start_options,
    without_blocked_starts,
)
from salon_booking.scheduling.clock import is_step_aligned, to_minutes
from salon_booking.schemas.booking_schema import AppointmentStatus
from salon_booking.schemas.calendar_schema import WorkingHours
from tests.conftest import MONDAY, TUESDAY, at, interval, make_appointment

OPEN = WorkingHours(start="09:00", end="18:00")
BUSY = [interval("10:00", "10:30"), interval("14:00", "15:00")]


def as_text(ranges):
    return [str(r) for r in ranges]


class TestFreeRanges:
    def test_gaps_between_appointments(self):
        assert as_text(free_ranges(OPEN, BUSY)) == ["09:00-10:00", "10:30-14:00", "15:00-18:00"]

    def test_unsorted_input(self):
        assert as_text(free_ranges(OPEN, list(reversed(BUSY)))) == [
            "09:00-10:00", "10:30-14:00", "15:00-18:00",
        ]

    def test_overlapping_occupied_intervals_merge(self):
        busy = [interval("10:00", "11:00"), interval("10:30", "12:00")]
        assert as_text(free_ranges(OPEN, busy)) == ["09:00-10:00", "12:00-18:00"]

    def test_short_gaps_dropped(self):
        busy = [interval("10:00", "10:30"), interval("10:50", "12:00")]
        assert "10:30-10:50" not in as_text(free_ranges(OPEN, busy))

    def test_custom_minimum(self):
        busy = [interval("10:00", "10:30"), interval("10:50", "12:00")]
        assert "10:30-10:50" in as_text(free_ranges(OPEN, busy, min_minutes=15))

    def test_closed_day(self):
        assert free_ranges(WorkingHours.closed_day(), []) == []

    def test_no_appointments(self):
        assert as_text(free_ranges(OPEN, [])) == ["09:00-18:00"]

    def test_fully_booked(self):
        assert free_ranges(OPEN, [interval("08:00", "19:00")]) == []

    def test_appointment_touching_opening(self):
        busy = [interval("09:00", "09:30")]
        assert as_text(free_ranges(OPEN, busy)) == ["09:30-18:00"]


class TestTodaySuppression:
    def test_nothing_before_next_boundary(self):
        now = at(MONDAY, "11:15")
        ranges = free_ranges(OPEN, BUSY, now=now, day=MONDAY)
        assert as_text(ranges) == ["11:30-14:00", "15:00-18:00"]
        assert all(r.start_minutes >= to_minutes("11:30") for r in ranges)

    def test_day_defaults_to_now(self):
        now = at(MONDAY, "11:15")
        assert as_text(free_ranges(OPEN, BUSY, now=now)) == ["11:30-14:00", "15:00-18:00"]

    def test_exact_boundary_is_not_offered(self):
        now = at(MONDAY, "11:30")
        ranges = free_ranges(OPEN, BUSY, now=now, day=MONDAY)
        assert ranges[0].start == time(12, 0)

    def test_future_day_unaffected(self):
        now = at(MONDAY, "11:15")
        ranges = free_ranges(OPEN, BUSY, now=now, day=TUESDAY)
        assert as_text(ranges) == ["09:00-10:00", "10:30-14:00", "15:00-18:00"]

    def test_past_day_has_nothing(self):
        now = at(TUESDAY, "08:00")
        assert free_ranges(OPEN, BUSY, now=now, day=MONDAY) == []

    def test_after_closing(self):
        now = at(MONDAY, "17:45")
        assert free_ranges(OPEN, [], now=now, day=MONDAY) == []

    def test_cutoff_values(self):
        assert past_cutoff(MONDAY, None) is None
        assert past_cutoff(TUESDAY, at(MONDAY, "11:15")) is None
        assert past_cutoff(MONDAY, at(MONDAY, "11:15")) == to_minutes("11:30")
        assert past_cutoff(MONDAY, at(MONDAY, "11:15"), step=15) == to_minutes("11:30")
        assert past_cutoff(MONDAY, at(MONDAY, "11:14"), step=15) == to_minutes("11:15")


class TestFixedGridSlots:
    def test_marks_covering_appointment_once(self):
        hours = WorkingHours(start="09:00", end="12:00")
        apt = make_appointment("10:00", "11:00", appointment_id="a")
        slots = fixed_grid_slots(hours, [apt])

        assert [s.time for s in slots] == [
            time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
        ]
        by_time = {s.time: s for s in slots}
        assert by_time[time(10, 0)].appointment.id == "a"
        assert by_time[time(10, 0)].is_appointment_start
        assert by_time[time(10, 30)].appointment.id == "a"
        assert not by_time[time(10, 30)].is_appointment_start
        assert by_time[time(11, 0)].is_free
        assert by_time[time(9, 30)].is_free

    def test_off_grid_appointment_start(self):
        hours = WorkingHours(start="09:00", end="12:00")
        apt = make_appointment("10:15", "10:45", appointment_id="b")
        by_time = {s.time: s for s in fixed_grid_slots(hours, [apt])}
        assert by_time[time(10, 0)].is_free
        assert by_time[time(10, 30)].appointment.id == "b"
        assert by_time[time(10, 30)].is_appointment_start

    def test_cancelled_not_shown(self):
        hours = WorkingHours(start="09:00", end="11:00")
        apt = make_appointment("09:00", "10:00", status=AppointmentStatus.CANCELLED)
        assert all(s.is_free for s in fixed_grid_slots(hours, [apt]))

    def test_past_flags(self):
        hours = WorkingHours(start="09:00", end="13:00")
        slots = fixed_grid_slots(hours, [], now=at(MONDAY, "11:15"), day=MONDAY)
        past = [s.time for s in slots if s.is_past]
        assert past == [time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0)]

    def test_off_grid_opening_uses_day_grid(self):
        hours = WorkingHours(start="09:15", end="11:00")
        slots = fixed_grid_slots(hours, [])
        assert [s.time for s in slots] == [time(9, 30), time(10, 0), time(10, 30)]
        assert [s.time for s in slots] == service_start_options(interval("09:15", "11:00"), 30)

    def test_appointment_started_before_opening_drawn_once(self):
        hours = WorkingHours(start="09:00", end="11:00")
        apt = make_appointment("08:30", "09:30", appointment_id="early")
        by_time = {s.time: s for s in fixed_grid_slots(hours, [apt])}
        assert by_time[time(9, 0)].appointment.id == "early"
        assert by_time[time(9, 0)].is_appointment_start
        assert by_time[time(9, 30)].is_free

    def test_long_appointment_flagged_only_on_first_cell(self):
        hours = WorkingHours(start="09:00", end="11:00")
        apt = make_appointment("08:00", "10:30", appointment_id="long")
        flags = [s.is_appointment_start for s in fixed_grid_slots(hours, [apt])]
        assert flags == [True, False, False, False]

    def test_closed_day(self):
        assert fixed_grid_slots(WorkingHours.closed_day(), []) == []


class TestServiceStartOptions:
    def test_step_aligned_starts_that_fit(self):
        options = service_start_options(interval("10:30", "14:00"), 45)
        assert options == [
            time(10, 30), time(11, 0), time(11, 30), time(12, 0), time(12, 30), time(13, 0),
        ]
        assert time(13, 15) not in options
        assert all(is_step_aligned(to_minutes(t), 30) for t in options)

    def test_off_grid_range_aligns_to_day_grid(self):
        options = service_start_options(interval("10:15", "12:00"), 30)
        assert options == [time(10, 30), time(11, 0), time(11, 30)]

    def test_range_shorter_than_service(self):
        assert service_start_options(interval("10:00", "10:30"), 45) == []

    def test_exact_fit(self):
        assert service_start_options(interval("10:00", "11:30"), 90) == [time(10, 0)]


class TestWithoutBlockedStarts:
    def test_drops_starts_overlapping_a_held_slot(self):
        starts = [time(9, 0), time(9, 30), time(10, 0), time(10, 30)]
        held = [interval("10:00", "10:30")]
        assert without_blocked_starts(starts, 30, held) == [time(9, 0), time(9, 30), time(10, 30)]

    def test_longer_service_running_into_held_slot(self):
        starts = [time(9, 0), time(9, 30), time(10, 30)]
        held = [interval("10:00", "10:30")]
        assert without_blocked_starts(starts, 60, held) == [time(10, 30)]

    def test_touching_is_not_blocked(self):
        assert without_blocked_starts([time(9, 30)], 30, [interval("10:00", "10:30")]) == [time(9, 30)]

    def test_nothing_held(self):
        assert without_blocked_starts([time(9, 0)], 45, []) == [time(9, 0)]


class TestFreeBlocksAcrossDays:
    def test_limit_across_days(self):
        days = [
            (MONDAY, OPEN, BUSY),
            (TUESDAY, OPEN, []),
            (TUESDAY + timedelta(days=1), OPEN, []),
        ]
        blocks = free_blocks_across_days(days, limit=4)
        assert len(blocks) == 4
        assert [b.date for b in blocks] == [MONDAY, MONDAY, MONDAY, TUESDAY]

    def test_closed_days_skipped(self):
        days = [(MONDAY, WorkingHours.closed_day(), []), (TUESDAY, OPEN, [])]
        blocks = free_blocks_across_days(days)
        assert [(b.date, str(b.interval)) for b in blocks] == [(TUESDAY, "09:00-18:00")]

    def test_today_suppressed(self):
        days = [(MONDAY, OPEN, BUSY)]
        blocks = free_blocks_across_days(days, now=at(MONDAY, "15:10"))
        assert [str(b.interval) for b in blocks] == ["15:30-18:00"]
