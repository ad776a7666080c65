"""Appointment, request and catalog data models."""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from salon_booking.scheduling.clock import add_minutes
from salon_booking.schemas.calendar_schema import TimeInterval, WorkingHours


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------------------------- #
# Tagged references: exactly one variant is ever present
# --------------------------------------------------------------------- #

class RegisteredClient(BaseModel):
    """Client with an account (a profile in the hosted auth system)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["registered"] = "registered"
    id: str


class UnregisteredClient(BaseModel):
    """Walk-in or phone client entered by the operator, without an account."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unregistered"] = "unregistered"
    id: str


ClientRef = Annotated[Union[RegisteredClient, UnregisteredClient], Field(discriminator="kind")]


class ServiceRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["service"] = "service"
    id: str


class PromotionRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["promotion"] = "promotion"
    id: str


OfferingRef = Annotated[Union[ServiceRef, PromotionRef], Field(discriminator="kind")]


class Offering(BaseModel):
    """Catalog entry for a service or a promotion."""

    ref: OfferingRef
    name: str
    duration_minutes: int = Field(gt=0)
    price: float = Field(ge=0)


# --------------------------------------------------------------------- #
# Appointments
# --------------------------------------------------------------------- #

class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Appointment(BaseModel):
    """Durable booking on the shared calendar. ``id`` is assigned by the store."""

    id: Optional[str] = None
    date: date
    interval: TimeInterval
    client: ClientRef
    offering: OfferingRef
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status != AppointmentStatus.CANCELLED


# --------------------------------------------------------------------- #
# Requests
# --------------------------------------------------------------------- #

class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGED = "changed"


class SuggestedTime(BaseModel):
    """Operator counter-offer attached to a request in ``CHANGED`` status."""

    model_config = ConfigDict(frozen=True)

    date: date
    interval: TimeInterval


class AppointmentRequest(BaseModel):
    """A client's booking intent awaiting operator resolution."""

    id: Optional[str] = None
    client_id: str
    offering: OfferingRef
    requested_date: date
    requested_start: time
    message: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    suggested: Optional[SuggestedTime] = None
    hidden_by_client: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_live(self) -> bool:
        return self.status != RequestStatus.REJECTED and not self.hidden_by_client

    def requested_interval(self, duration_minutes: int) -> TimeInterval:
        """The requested slot; the end comes from the offering's duration."""
        return TimeInterval(
            start=self.requested_start,
            end=add_minutes(self.requested_start, duration_minutes),
        )


class GridSlot(BaseModel):
    """One fixed-step cell of the day grid."""

    time: time
    appointment: Optional[Appointment] = None
    is_appointment_start: bool = False
    is_past: bool = False

    @property
    def is_free(self) -> bool:
        return self.appointment is None


class DayView(BaseModel):
    """Everything the calendar screen needs for one date."""

    date: date
    working_hours: WorkingHours
    appointments: list[Appointment] = Field(default_factory=list)
    slots: list[GridSlot] = Field(default_factory=list)
    free_ranges: list[TimeInterval] = Field(default_factory=list)
