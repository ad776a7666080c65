"""Notification events delivered to the counterpart party."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    NEW_BOOKING_REQUEST = "new_booking_request"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    TIME_SUGGESTED = "time_suggested"
    SUGGESTION_ACCEPTED = "suggestion_accepted"
    SUGGESTION_REJECTED = "suggestion_rejected"
    REQUEST_CANCELLED = "request_cancelled"
    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_UPDATED = "appointment_updated"
    APPOINTMENT_CANCELLED = "appointment_cancelled"


class NotificationPayload(BaseModel):
    """Human-readable text plus structured data for deep links."""

    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)


class Notification(BaseModel):
    """A single delivered event, as recorded by a sink."""

    recipient_id: str
    kind: NotificationKind
    payload: NotificationPayload
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
