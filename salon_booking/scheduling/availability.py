"""
Bookable-window computation for a single day.

Turns the day's working hours and its occupied intervals into:
- free ranges (gaps long enough to book),
- a fixed-step grid for the calendar view,
- the step-aligned start times a service of a given length fits into,
  optionally minus slots held by pending requests.

Past time is suppressed when the queried date is "today": nothing is
offered at or before the current minute, so the earliest offer is the
first step boundary strictly after now.

Usage:
    hours = WorkingHours(start="09:00", end="18:00")
    busy = [TimeInterval(start="10:00", end="10:30")]
    free_ranges(hours, busy)   # -> [09:00-10:00, 10:30-18:00]
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time
from typing import Optional

from salon_booking.scheduling.clock import ceil_to_step, from_minutes, minute_of_day, to_minutes
from salon_booking.scheduling.conflicts import conflicting, overlaps
from salon_booking.schemas.booking_schema import Appointment, GridSlot
from salon_booking.schemas.calendar_schema import FreeBlock, TimeInterval, WorkingHours

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 30
MIN_BOOKABLE_MINUTES = 30

# Sentinel cutoff meaning "the whole day is in the past".
_END_OF_DAY = 24 * 60


def past_cutoff(
    day: Optional[date], now: Optional[datetime], step: int = DEFAULT_STEP_MINUTES
) -> Optional[int]:
    """First minute of ``day`` that may still be offered, or None if nothing is past.

    ``day`` defaults to ``now``'s date, i.e. the query is about today.
    """
    if now is None:
        return None
    day = day or now.date()
    today = now.date()
    if day > today:
        return None
    if day < today:
        return _END_OF_DAY
    return ceil_to_step(minute_of_day(now) + 1, step)


def free_ranges(
    working_hours: WorkingHours,
    occupied: Iterable[TimeInterval],
    now: Optional[datetime] = None,
    day: Optional[date] = None,
    step: int = DEFAULT_STEP_MINUTES,
    min_minutes: int = MIN_BOOKABLE_MINUTES,
) -> list[TimeInterval]:
    """Ordered gaps between occupied intervals inside working hours.

    Gaps shorter than ``min_minutes`` are dropped. A closed day yields
    nothing.
    """
    if working_hours.closed:
        return []

    hours = working_hours.interval
    cursor = hours.start_minutes
    cutoff = past_cutoff(day, now, step)
    if cutoff is not None:
        cursor = max(cursor, cutoff)

    gaps: list[tuple[int, int]] = []
    for busy in sorted(occupied, key=lambda i: (i.start_minutes, i.end_minutes)):
        if busy.start_minutes > cursor:
            gaps.append((cursor, min(busy.start_minutes, hours.end_minutes)))
        cursor = max(cursor, busy.end_minutes)
        if cursor >= hours.end_minutes:
            break
    if cursor < hours.end_minutes:
        gaps.append((cursor, hours.end_minutes))

    return [
        TimeInterval.from_minutes(start, end)
        for start, end in gaps
        if end - start >= min_minutes
    ]


def fixed_grid_slots(
    working_hours: WorkingHours,
    appointments: Iterable[Appointment],
    now: Optional[datetime] = None,
    day: Optional[date] = None,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[GridSlot]:
    """Every step-aligned instant in ``[start, end)`` with its covering appointment.

    Cells sit on the same midnight-anchored grid as
    :func:`service_start_options`, so a 09:15 opening gives 09:30, 10:00, ...
    ``is_appointment_start`` is set only on the first cell an appointment
    covers, so the view renders each appointment once. That includes an
    appointment that began before the first cell.
    """
    if working_hours.closed:
        return []

    hours = working_hours.interval
    active = [apt for apt in appointments if apt.is_active]
    cutoff = past_cutoff(day, now, step)
    first = ceil_to_step(hours.start_minutes, step)

    slots: list[GridSlot] = []
    for minute in range(first, hours.end_minutes, step):
        cell = TimeInterval.from_minutes(minute, minute + 1)
        covering = conflicting(cell, active)
        if len(covering) > 1:
            logger.warning(
                "Overlapping appointments at %s: %s",
                cell.start, [apt.id for apt in covering],
            )
        appointment = covering[0] if covering else None
        slots.append(
            GridSlot(
                time=from_minutes(minute),
                appointment=appointment,
                is_appointment_start=(
                    appointment is not None
                    and appointment.interval.start_minutes <= minute
                    and (minute == first or minute - step < appointment.interval.start_minutes)
                ),
                is_past=cutoff is not None and minute < cutoff,
            )
        )
    return slots


def service_start_options(
    free_range: TimeInterval,
    service_duration: int,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[time]:
    """Step-aligned start times ``t`` in the range with ``t + duration <= end``.

    Alignment is to the day grid (multiples of ``step`` from midnight),
    not to the range's own start.
    """
    options: list[time] = []
    minute = ceil_to_step(free_range.start_minutes, step)
    while minute + service_duration <= free_range.end_minutes:
        options.append(from_minutes(minute))
        minute += step
    return options


def without_blocked_starts(
    starts: Iterable[time],
    service_duration: int,
    blocked: Iterable[TimeInterval],
) -> list[time]:
    """Drop starts whose ``[t, t + duration)`` overlaps a blocked interval.

    Blocked intervals are the slots held by requests still waiting for an
    operator.
    """
    blocked = list(blocked)
    kept: list[time] = []
    for start in starts:
        begin = to_minutes(start)
        candidate = TimeInterval.from_minutes(begin, begin + service_duration)
        if not any(overlaps(candidate, held) for held in blocked):
            kept.append(start)
    return kept


def free_blocks_across_days(
    days: Iterable[tuple[date, WorkingHours, list[TimeInterval]]],
    now: Optional[datetime] = None,
    limit: int = 10,
    step: int = DEFAULT_STEP_MINUTES,
    min_minutes: int = MIN_BOOKABLE_MINUTES,
) -> list[FreeBlock]:
    """Collect the first ``limit`` free ranges over consecutive days."""
    blocks: list[FreeBlock] = []
    for day, hours, occupied in days:
        for interval in free_ranges(hours, occupied, now=now, day=day, step=step,
                                    min_minutes=min_minutes):
            blocks.append(FreeBlock(date=day, interval=interval))
            if len(blocks) >= limit:
                return blocks
    return blocks
