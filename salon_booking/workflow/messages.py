"""Notification text for each negotiation and calendar event."""

from datetime import date
from typing import Any, Optional

from salon_booking.schemas.booking_schema import Appointment, AppointmentRequest
from salon_booking.schemas.calendar_schema import TimeInterval
from salon_booking.schemas.notification_schema import NotificationPayload
from salon_booking.scheduling.clock import format_time


def _when(day: date, interval: TimeInterval) -> str:
    return f"{day.strftime('%d.%m.%Y')} {interval}"


def _with_reason(body: str, reason: Optional[str]) -> str:
    return f"{body} Reason: {reason}" if reason else body


def request_data(request: AppointmentRequest, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "request_id": request.id,
        "date": request.requested_date.isoformat(),
        "start": format_time(request.requested_start),
        "offering_kind": request.offering.kind,
        "offering_id": request.offering.id,
    }
    data.update({k: v for k, v in extra.items() if v is not None})
    return data


def appointment_data(appointment: Appointment, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "appointment_id": appointment.id,
        "date": appointment.date.isoformat(),
        "start": format_time(appointment.interval.start),
        "end": format_time(appointment.interval.end),
        "offering_kind": appointment.offering.kind,
        "offering_id": appointment.offering.id,
    }
    data.update({k: v for k, v in extra.items() if v is not None})
    return data


def build_new_request(request: AppointmentRequest, client_name: str, service_name: str) -> NotificationPayload:
    body = (
        f"{client_name} requested {service_name} on "
        f"{request.requested_date.strftime('%d.%m.%Y')} at {format_time(request.requested_start)}."
    )
    if request.message:
        body += f' Message: "{request.message}"'
    return NotificationPayload(
        title="New booking request",
        body=body,
        data=request_data(request, client_name=client_name, service_name=service_name),
    )


def build_approved(appointment: Appointment, request_id: str, service_name: str) -> NotificationPayload:
    return NotificationPayload(
        title="Booking approved",
        body=f"Your {service_name} on {_when(appointment.date, appointment.interval)} is confirmed.",
        data=appointment_data(appointment, request_id=request_id, service_name=service_name),
    )


def build_rejected(request: AppointmentRequest, reason: Optional[str]) -> NotificationPayload:
    return NotificationPayload(
        title="Booking request declined",
        body=_with_reason(
            f"Your request for {request.requested_date.strftime('%d.%m.%Y')} at "
            f"{format_time(request.requested_start)} could not be accepted.",
            reason,
        ),
        data=request_data(request, reason=reason),
    )


def build_time_suggested(
    request: AppointmentRequest, suggested_date: date, interval: TimeInterval
) -> NotificationPayload:
    return NotificationPayload(
        title="New time suggested",
        body=(
            f"The salon suggests {_when(suggested_date, interval)} instead of "
            f"{format_time(request.requested_start)}. Accept or decline in the app."
        ),
        data=request_data(
            request,
            suggested_date=suggested_date.isoformat(),
            suggested_start=format_time(interval.start),
            suggested_end=format_time(interval.end),
        ),
    )


def build_suggestion_accepted(appointment: Appointment, request_id: str, client_name: str) -> NotificationPayload:
    return NotificationPayload(
        title="Suggested time accepted",
        body=f"{client_name} accepted {_when(appointment.date, appointment.interval)}.",
        data=appointment_data(appointment, request_id=request_id, client_name=client_name),
    )


def build_suggestion_rejected(
    request: AppointmentRequest, client_name: str, reason: Optional[str]
) -> NotificationPayload:
    return NotificationPayload(
        title="Suggested time declined",
        body=_with_reason(f"{client_name} declined the suggested time.", reason),
        data=request_data(request, client_name=client_name, reason=reason),
    )


def build_request_cancelled(
    request: AppointmentRequest, client_name: str, reason: Optional[str]
) -> NotificationPayload:
    return NotificationPayload(
        title="Booking request cancelled",
        body=_with_reason(
            f"{client_name} cancelled the request for "
            f"{request.requested_date.strftime('%d.%m.%Y')} at {format_time(request.requested_start)}.",
            reason,
        ),
        data=request_data(request, client_name=client_name, reason=reason),
    )


def build_appointment_event(
    appointment: Appointment, title: str, verb: str, service_name: str
) -> NotificationPayload:
    """Created/updated/cancelled messages share one shape."""
    return NotificationPayload(
        title=title,
        body=f"Your {service_name} on {_when(appointment.date, appointment.interval)} {verb}.",
        data=appointment_data(appointment, service_name=service_name),
    )
