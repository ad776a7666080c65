"""Working hours and time interval models."""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from salon_booking.scheduling.clock import format_time, from_minutes, to_minutes


class TimeInterval(BaseModel):
    """Half-open ``[start, end)`` range within one day, minute granularity."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self) -> "TimeInterval":
        if to_minutes(self.end) <= to_minutes(self.start):
            raise ValueError(f"interval end {self.end} must be after start {self.start}")
        return self

    @classmethod
    def from_minutes(cls, start: int, end: int) -> "TimeInterval":
        return cls(start=from_minutes(start), end=from_minutes(end))

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def __str__(self) -> str:
        return f"{format_time(self.start)}-{format_time(self.end)}"


class WorkingHours(BaseModel):
    """Opening hours for one weekday. ``start``/``end`` are ignored when closed."""

    model_config = ConfigDict(frozen=True)

    start: Optional[time] = None
    end: Optional[time] = None
    closed: bool = False

    @model_validator(mode="after")
    def _check_open_hours(self) -> "WorkingHours":
        if self.closed:
            return self
        if self.start is None or self.end is None:
            raise ValueError("open working hours need both start and end")
        if to_minutes(self.end) <= to_minutes(self.start):
            raise ValueError(f"working hours end {self.end} must be after start {self.start}")
        return self

    @classmethod
    def closed_day(cls) -> "WorkingHours":
        return cls(closed=True)

    @property
    def interval(self) -> Optional[TimeInterval]:
        if self.closed:
            return None
        return TimeInterval(start=self.start, end=self.end)


class FreeBlock(BaseModel):
    """A free range on a specific date, as returned by the multi-day search."""

    model_config = ConfigDict(frozen=True)

    date: date
    interval: TimeInterval
