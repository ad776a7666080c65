"""
Typed error taxonomy for the scheduling core.

Every failure a caller can act on has its own class so UI handlers can
branch on type (offer another slot, re-propose, refresh) instead of
parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from salon_booking.schemas.booking_schema import Appointment, AppointmentRequest


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class InvalidIntervalError(SchedulingError, ValueError):
    """End is not after start, or the duration is below the minimum."""


class DuplicateRequestError(SchedulingError):
    """A live request already exists for the same client, date and time."""

    def __init__(self, existing: AppointmentRequest) -> None:
        self.existing = existing
        super().__init__(
            f"Client {existing.client_id} already requested "
            f"{existing.requested_date.isoformat()} at {existing.requested_start.strftime('%H:%M')} "
            f"(request {existing.id})"
        )


class SlotConflictError(SchedulingError):
    """The candidate interval overlaps a confirmed appointment."""

    def __init__(self, conflicting: Appointment, message: Optional[str] = None) -> None:
        self.conflicting = conflicting
        super().__init__(
            message
            or (
                f"Slot overlaps appointment {conflicting.id} on "
                f"{conflicting.date.isoformat()} {conflicting.interval}"
            )
        )


class SlotNoLongerAvailableError(SlotConflictError):
    """A previously suggested alternative was taken before the client accepted it."""


class NotFoundError(SchedulingError):
    """A referenced request, appointment, client or offering does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id!r} not found")


class InvalidTransitionError(SchedulingError):
    """The request's current status does not allow the requested operation."""


class NotificationFailure(SchedulingError):
    """Delivering a side-channel notification failed. Never fatal to a booking."""
