"""
Hosted Postgres backend through the Supabase async client.

Reads use plain table queries. Every write that can place an appointment
on the calendar goes through a Postgres function defined in
``migrations/001_appointments_no_overlap.sql``; the functions run in one
transaction and the ``appointments_no_overlap`` exclusion constraint
rejects overlapping rows, so there is no read-then-write gap in Python.

Error mapping:
    23P01 (exclusion_violation) -> SlotConflictError
    23505 (unique_violation)    -> DuplicateRequestError
    P0002 (no_data_found)       -> NotFoundError
    P0001 (raise_exception)     -> InvalidTransitionError
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client

from salon_booking.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    NotificationFailure,
    SlotConflictError,
)
from salon_booking.scheduling.clock import format_time
from salon_booking.scheduling.conflicts import first_conflict
from salon_booking.schemas.booking_schema import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    ClientRef,
    Offering,
    OfferingRef,
    PromotionRef,
    RegisteredClient,
    RequestStatus,
    ServiceRef,
    SuggestedTime,
    UnregisteredClient,
)
from salon_booking.schemas.calendar_schema import TimeInterval, WorkingHours
from salon_booking.schemas.customer_schema import ClientContact
from salon_booking.schemas.notification_schema import NotificationKind, NotificationPayload
from salon_booking.tools.customer import ClientDirectory
from salon_booking.tools.notifications import NotificationSink
from salon_booking.tools.services import ServiceCatalog
from salon_booking.tools.store import AppointmentStore

logger = logging.getLogger(__name__)

EXCLUSION_VIOLATION = "23P01"
UNIQUE_VIOLATION = "23505"
NO_DATA_FOUND = "P0002"
RAISE_EXCEPTION = "P0001"

APPOINTMENT_COLUMNS = (
    "id, appointment_date, start_time::text, end_time::text, client_id, "
    "unregistered_client_id, service_id, promotion_id, status, notes, created_at"
)
REQUEST_COLUMNS = (
    "id, client_id, service_id, promotion_id, requested_date, requested_time::text, "
    "message, status, suggested_date, suggested_start_time::text, "
    "suggested_end_time::text, hidden_by_client, created_at"
)


async def connect(url: str, key: str) -> AsyncClient:
    """Create the async client. Raises ValueError when credentials are missing."""
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must both be set")
    client = await create_async_client(url, key)
    logger.info("Supabase async client initialized")
    return client


# --------------------------------------------------------------------- #
# Row <-> model conversion
# --------------------------------------------------------------------- #

def _client_from_row(row: dict[str, Any]) -> ClientRef:
    if row.get("client_id"):
        return RegisteredClient(id=str(row["client_id"]))
    if row.get("unregistered_client_id"):
        return UnregisteredClient(id=str(row["unregistered_client_id"]))
    raise ValueError(f"Row {row.get('id')} references no client")


def _offering_from_row(row: dict[str, Any]) -> OfferingRef:
    if row.get("service_id"):
        return ServiceRef(id=str(row["service_id"]))
    if row.get("promotion_id"):
        return PromotionRef(id=str(row["promotion_id"]))
    raise ValueError(f"Row {row.get('id')} references no service or promotion")


def _offering_columns(ref: OfferingRef) -> dict[str, Optional[str]]:
    return {
        "service_id": ref.id if ref.kind == "service" else None,
        "promotion_id": ref.id if ref.kind == "promotion" else None,
    }


def appointment_from_row(row: dict[str, Any]) -> Appointment:
    return Appointment(
        id=str(row["id"]),
        date=row["appointment_date"],
        interval=TimeInterval(start=row["start_time"][:5], end=row["end_time"][:5]),
        client=_client_from_row(row),
        offering=_offering_from_row(row),
        status=row.get("status") or AppointmentStatus.CONFIRMED,
        notes=row.get("notes"),
        **({"created_at": row["created_at"]} if row.get("created_at") else {}),
    )


def appointment_to_row(appointment: Appointment) -> dict[str, Any]:
    client = appointment.client
    return {
        "appointment_date": appointment.date.isoformat(),
        "start_time": format_time(appointment.interval.start),
        "end_time": format_time(appointment.interval.end),
        "client_id": client.id if client.kind == "registered" else None,
        "unregistered_client_id": client.id if client.kind == "unregistered" else None,
        **_offering_columns(appointment.offering),
        "status": appointment.status.value,
        "notes": appointment.notes,
    }


def request_from_row(row: dict[str, Any]) -> AppointmentRequest:
    suggested = None
    if row.get("suggested_date") and row.get("suggested_start_time") and row.get("suggested_end_time"):
        suggested = SuggestedTime(
            date=row["suggested_date"],
            interval=TimeInterval(
                start=row["suggested_start_time"][:5], end=row["suggested_end_time"][:5]
            ),
        )
    return AppointmentRequest(
        id=str(row["id"]),
        client_id=str(row["client_id"]),
        offering=_offering_from_row(row),
        requested_date=row["requested_date"],
        requested_start=row["requested_time"][:5],
        message=row.get("message"),
        status=row.get("status") or RequestStatus.PENDING,
        suggested=suggested,
        hidden_by_client=bool(row.get("hidden_by_client")),
        **({"created_at": row["created_at"]} if row.get("created_at") else {}),
    )


def request_to_row(request: AppointmentRequest) -> dict[str, Any]:
    return {
        "client_id": request.client_id,
        **_offering_columns(request.offering),
        "requested_date": request.requested_date.isoformat(),
        "requested_time": format_time(request.requested_start),
        "message": request.message,
        "status": request.status.value,
        "hidden_by_client": request.hidden_by_client,
    }


def _suggested_columns(suggested: Optional[SuggestedTime]) -> dict[str, Optional[str]]:
    if suggested is None:
        return {"suggested_date": None, "suggested_start_time": None, "suggested_end_time": None}
    return {
        "suggested_date": suggested.date.isoformat(),
        "suggested_start_time": format_time(suggested.interval.start),
        "suggested_end_time": format_time(suggested.interval.end),
    }


# --------------------------------------------------------------------- #
# Store
# --------------------------------------------------------------------- #

class SupabaseAppointmentStore(AppointmentStore):
    """AppointmentStore over the salon's Supabase project."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def get_working_hours(self, weekday: str) -> WorkingHours:
        response = await self._client.table("salon_info").select("working_hours_json").limit(1).execute()
        if not response.data:
            return WorkingHours.closed_day()
        day = (response.data[0].get("working_hours_json") or {}).get(weekday.lower())
        if not day or day.get("closed"):
            return WorkingHours.closed_day()
        return WorkingHours(start=day.get("start", "09:00"), end=day.get("end", "18:00"))

    async def list_appointments(
        self, day: date, include_cancelled: bool = False
    ) -> list[Appointment]:
        query = (
            self._client.table("appointments")
            .select(APPOINTMENT_COLUMNS)
            .eq("appointment_date", day.isoformat())
        )
        if not include_cancelled:
            query = query.neq("status", AppointmentStatus.CANCELLED.value)
        response = await query.order("start_time").execute()
        return [appointment_from_row(row) for row in response.data or []]

    async def get_appointment(self, appointment_id: str) -> Appointment:
        response = await (
            self._client.table("appointments")
            .select(APPOINTMENT_COLUMNS)
            .eq("id", appointment_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("appointment", appointment_id)
        return appointment_from_row(response.data[0])

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        row = await self._rpc_appointment(
            "book_appointment", {"p_row": appointment_to_row(appointment)}, appointment
        )
        logger.info("Appointment %s booked on %s %s", row.id, row.date, row.interval)
        return row

    async def replace_appointment(
        self, appointment_id: str, replacement: Appointment
    ) -> Appointment:
        return await self._rpc_appointment(
            "replace_appointment",
            {"p_id": appointment_id, "p_row": appointment_to_row(replacement)},
            replacement,
            exclude_id=appointment_id,
            entity_id=appointment_id,
        )

    async def set_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> Appointment:
        response = await (
            self._client.table("appointments")
            .update({"status": status.value})
            .eq("id", appointment_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("appointment", appointment_id)
        return await self.get_appointment(appointment_id)

    async def delete_appointment(self, appointment_id: str) -> None:
        response = await self._client.table("appointments").delete().eq("id", appointment_id).execute()
        if not response.data:
            raise NotFoundError("appointment", appointment_id)

    async def list_requests(
        self,
        client_id: Optional[str] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
    ) -> list[AppointmentRequest]:
        query = self._client.table("appointment_requests").select(REQUEST_COLUMNS)
        if client_id is not None:
            query = query.eq("client_id", client_id)
        if statuses is not None:
            query = query.in_("status", [s.value for s in statuses])
        response = await query.order("created_at").execute()
        return [request_from_row(row) for row in response.data or []]

    async def get_request(self, request_id: str) -> AppointmentRequest:
        response = await (
            self._client.table("appointment_requests")
            .select(REQUEST_COLUMNS)
            .eq("id", request_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("request", request_id)
        return request_from_row(response.data[0])

    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        try:
            response = await (
                self._client.table("appointment_requests")
                .insert(request_to_row(request))
                .execute()
            )
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise DuplicateRequestError(await self._live_duplicate(request)) from exc
            raise
        return await self.get_request(str(response.data[0]["id"]))

    async def update_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        suggested: Optional[SuggestedTime] = None,
        expected: Optional[Iterable[RequestStatus]] = None,
    ) -> AppointmentRequest:
        query = (
            self._client.table("appointment_requests")
            .update({"status": status.value, **_suggested_columns(suggested)})
            .eq("id", request_id)
        )
        if expected is not None:
            expected = list(expected)
            query = query.in_("status", [s.value for s in expected])
        response = await query.execute()
        if not response.data:
            await self._explain_missing(request_id, expected)
        return request_from_row(response.data[0])

    async def set_request_hidden(self, request_id: str, hidden: bool) -> AppointmentRequest:
        response = await (
            self._client.table("appointment_requests")
            .update({"hidden_by_client": hidden})
            .eq("id", request_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("request", request_id)
        return request_from_row(response.data[0])

    async def delete_request(
        self, request_id: str, expected: Optional[Iterable[RequestStatus]] = None
    ) -> AppointmentRequest:
        query = self._client.table("appointment_requests").delete().eq("id", request_id)
        if expected is not None:
            expected = list(expected)
            query = query.in_("status", [s.value for s in expected])
        response = await query.execute()
        if not response.data:
            await self._explain_missing(request_id, expected)
        return request_from_row(response.data[0])

    async def commit_request(
        self,
        request_id: str,
        appointment: Appointment,
        expected: Iterable[RequestStatus],
    ) -> Appointment:
        return await self._rpc_appointment(
            "commit_appointment_request",
            {
                "p_request_id": request_id,
                "p_expected": [s.value for s in expected],
                "p_row": appointment_to_row(appointment),
            },
            appointment,
            entity="request",
            entity_id=request_id,
        )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _rpc_appointment(
        self,
        function: str,
        params: dict[str, Any],
        candidate: Appointment,
        exclude_id: Optional[str] = None,
        entity: str = "appointment",
        entity_id: Optional[str] = None,
    ) -> Appointment:
        try:
            response = await self._client.rpc(function, params).execute()
        except APIError as exc:
            if exc.code == EXCLUSION_VIOLATION:
                clash = first_conflict(
                    candidate.interval, await self.list_appointments(candidate.date), exclude_id
                )
                if clash is None:
                    # The conflicting row disappeared after the constraint fired.
                    raise SlotConflictError(candidate, message=str(exc.message)) from exc
                raise SlotConflictError(clash) from exc
            if exc.code == NO_DATA_FOUND:
                raise NotFoundError(entity, entity_id) from exc
            if exc.code == RAISE_EXCEPTION:
                raise InvalidTransitionError(str(exc.message)) from exc
            raise
        data = response.data
        row = data[0] if isinstance(data, list) else data
        return appointment_from_row(row)

    async def _live_duplicate(self, request: AppointmentRequest) -> AppointmentRequest:
        response = await (
            self._client.table("appointment_requests")
            .select(REQUEST_COLUMNS)
            .eq("client_id", request.client_id)
            .eq("requested_date", request.requested_date.isoformat())
            .eq("requested_time", format_time(request.requested_start))
            .neq("status", RequestStatus.REJECTED.value)
            .eq("hidden_by_client", False)
            .limit(1)
            .execute()
        )
        if not response.data:
            return request
        return request_from_row(response.data[0])

    async def _explain_missing(
        self, request_id: str, expected: Optional[list[RequestStatus]]
    ) -> None:
        current = await self.get_request(request_id)
        raise InvalidTransitionError(
            f"Request {request_id} is '{current.status.value}', "
            f"expected one of {sorted(s.value for s in expected or [])}"
        )


# --------------------------------------------------------------------- #
# Catalog, directory and notifications
# --------------------------------------------------------------------- #

class SupabaseServiceCatalog(ServiceCatalog):
    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def get_offering(self, ref: OfferingRef) -> Offering:
        table = "services" if ref.kind == "service" else "promotions"
        response = await (
            self._client.table(table)
            .select("id, name, duration_minutes, price")
            .eq("id", ref.id)
            .execute()
        )
        if not response.data:
            raise NotFoundError(ref.kind, ref.id)
        row = response.data[0]
        return Offering(
            ref=ref,
            name=row["name"],
            duration_minutes=row["duration_minutes"],
            price=row.get("price") or 0,
        )


class SupabaseClientDirectory(ClientDirectory):
    """Registered clients live in ``profiles``; walk-ins in ``unregistered_clients``."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def resolve_client(self, ref: ClientRef) -> ClientContact:
        table = "profiles" if ref.kind == "registered" else "unregistered_clients"
        response = await self._client.table(table).select("full_name, phone").eq("id", ref.id).execute()
        if not response.data:
            raise NotFoundError(f"{ref.kind} client", ref.id)
        row = response.data[0]
        return ClientContact(display_name=row.get("full_name") or "", phone=row.get("phone"))

    async def operator_ids(self) -> list[str]:
        response = await self._client.table("profiles").select("id").eq("role", "admin").execute()
        return [str(row["id"]) for row in response.data or []]


class SupabaseNotificationSink(NotificationSink):
    """Inserts rows into ``notifications``; the app's realtime channel delivers them."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def notify(
        self, recipient_id: str, kind: NotificationKind, payload: NotificationPayload
    ) -> None:
        try:
            await self._client.table("notifications").insert({
                "user_id": recipient_id,
                "type": kind.value,
                "title": payload.title,
                "body": payload.body,
                "data": payload.data,
            }).execute()
        except APIError as exc:
            raise NotificationFailure(f"{kind.value} to {recipient_id}: {exc.message}") from exc
