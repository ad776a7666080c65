"""
Pure time-of-day helpers working at minute granularity.

Times travel through the system either as ``datetime.time`` objects or as
``"HH:MM"`` / ``"HH:MM:SS"`` strings (the hosted database returns the
latter). All arithmetic stays within one day: the salon never operates
past midnight, so callers never need day rollover.

Usage:
    to_minutes("09:30")            # -> 570
    from_minutes(570)              # -> time(9, 30)
    add_minutes("09:30", 45)       # -> time(10, 15)
"""

import math
from datetime import datetime, time
from typing import Union

MINUTES_PER_DAY = 24 * 60

TimeLike = Union[str, time]


def parse_time(value: TimeLike) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS``. Seconds are dropped.

    Raises:
        ValueError: If the value is not a valid time of day.
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    text = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValueError(f"Expected 'HH:MM' or 'HH:MM:SS', got {value!r}")


def to_minutes(value: TimeLike) -> int:
    """Minutes since midnight."""
    parsed = parse_time(value)
    return parsed.hour * 60 + parsed.minute


def from_minutes(minutes: int) -> time:
    """Inverse of :func:`to_minutes`.

    Raises:
        ValueError: If ``minutes`` falls outside a single day.
    """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range 0-{MINUTES_PER_DAY - 1}: {minutes}")
    return time(minutes // 60, minutes % 60)


def add_minutes(value: TimeLike, delta: int) -> time:
    return from_minutes(to_minutes(value) + delta)


def format_time(value: TimeLike) -> str:
    """Render as ``HH:MM``."""
    return parse_time(value).strftime("%H:%M")


def ceil_to_step(minutes: int, step: int) -> int:
    """Round up to the next multiple of ``step`` (unchanged if already aligned)."""
    return int(math.ceil(minutes / step)) * step


def is_step_aligned(minutes: int, step: int) -> bool:
    return minutes % step == 0


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute
