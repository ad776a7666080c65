"""
Single overlap predicate for every interval comparison in the system.

Half-open semantics: an appointment ending at 10:00 does not conflict
with one starting at 10:00. Appointment-vs-appointment,
request-vs-appointment and edit-vs-calendar checks all go through
:func:`overlaps`.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from salon_booking.errors import InvalidIntervalError
from salon_booking.scheduling.clock import TimeLike, from_minutes, to_minutes
from salon_booking.schemas.booking_schema import Appointment
from salon_booking.schemas.calendar_schema import TimeInterval

logger = logging.getLogger(__name__)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start_minutes < b.end_minutes and b.start_minutes < a.end_minutes


def conflicting(
    candidate: TimeInterval,
    existing: Iterable[Appointment],
    exclude_id: Optional[str] = None,
) -> list[Appointment]:
    """All active appointments overlapping ``candidate``, earliest start first.

    Cancelled appointments never conflict. ``exclude_id`` skips the
    appointment being edited so it is not compared against itself.
    """
    hits = [
        apt
        for apt in existing
        if apt.is_active and apt.id != exclude_id and overlaps(candidate, apt.interval)
    ]
    hits.sort(key=lambda apt: (apt.interval.start_minutes, apt.interval.end_minutes, apt.id or ""))
    return hits


def first_conflict(
    candidate: TimeInterval,
    existing: Iterable[Appointment],
    exclude_id: Optional[str] = None,
) -> Optional[Appointment]:
    """The earliest-starting conflicting appointment, or None."""
    hits = conflicting(candidate, existing, exclude_id)
    if hits:
        logger.debug(
            "Interval %s conflicts with %d appointment(s); first is %s at %s",
            candidate, len(hits), hits[0].id, hits[0].interval,
        )
        return hits[0]
    return None


def make_interval(start: TimeLike, end: TimeLike, min_minutes: int = 1) -> TimeInterval:
    """Build a validated interval, raising the typed error before any store access.

    Raises:
        InvalidIntervalError: If ``end <= start`` or the duration is
            shorter than ``min_minutes``.
    """
    try:
        start_min, end_min = to_minutes(start), to_minutes(end)
    except ValueError as exc:
        raise InvalidIntervalError(str(exc)) from None
    if end_min <= start_min:
        raise InvalidIntervalError(f"Interval end {end} must be after start {start}")
    if end_min - start_min < min_minutes:
        raise InvalidIntervalError(
            f"Interval {start}-{end} is shorter than the {min_minutes}-minute minimum"
        )
    return TimeInterval(start=from_minutes(start_min), end=from_minutes(end_min))


def interval_for_duration(start: TimeLike, duration_minutes: int, min_minutes: int = 1) -> TimeInterval:
    """Interval starting at ``start`` and lasting ``duration_minutes``."""
    try:
        start_min = to_minutes(start)
    except ValueError as exc:
        raise InvalidIntervalError(str(exc)) from None
    end_min = start_min + duration_minutes
    if end_min >= 24 * 60:
        raise InvalidIntervalError(f"Interval starting {start} runs past midnight")
    return make_interval(from_minutes(start_min), from_minutes(end_min), min_minutes)
