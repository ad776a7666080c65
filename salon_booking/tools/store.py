"""
Appointment and request persistence.

The store owns the no-double-booking invariant: every mutation that can
place an appointment on the calendar performs its conflict check and
its write as one atomic unit. Application code may pre-check for nicer
messages, but only the store's answer is authoritative.

In production this is backed by the hosted Postgres database (see
``supabase_backend.py``); the in-memory implementation below is used by
tests and local development.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable
from contextlib import AsyncExitStack
from datetime import date
from typing import Optional

from salon_booking.config import parse_hours_entry
from salon_booking.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    SlotConflictError,
)
from salon_booking.scheduling.conflicts import first_conflict
from salon_booking.schemas.booking_schema import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    RequestStatus,
    SuggestedTime,
)
from salon_booking.schemas.calendar_schema import WorkingHours

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


class AppointmentStore(ABC):
    """Persistence contract consumed by the workflow."""

    # ------------------------------------------------------------------ #
    # Calendar
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_working_hours(self, weekday: str) -> WorkingHours:
        """Working hours for a lowercase weekday name (``"monday"``)."""

    @abstractmethod
    async def list_appointments(
        self, day: date, include_cancelled: bool = False
    ) -> list[Appointment]:
        """Appointments on ``day`` ordered by start time."""

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Appointment:
        """Raises NotFoundError if missing."""

    @abstractmethod
    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """Atomically check for overlap and insert.

        Raises:
            SlotConflictError: With the earliest conflicting appointment.
        """

    @abstractmethod
    async def replace_appointment(
        self, appointment_id: str, replacement: Appointment
    ) -> Appointment:
        """Atomically swap an appointment for a new record.

        The replacement is checked against every other appointment before
        the original is touched; on conflict the original stays as it was.

        Raises:
            NotFoundError: If the original does not exist.
            SlotConflictError: If the replacement overlaps another appointment.
        """

    @abstractmethod
    async def set_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> Appointment:
        """Raises NotFoundError if missing."""

    @abstractmethod
    async def delete_appointment(self, appointment_id: str) -> None:
        """Raises NotFoundError if missing."""

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def list_requests(
        self,
        client_id: Optional[str] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
    ) -> list[AppointmentRequest]:
        """Requests for one client (or all when None), oldest first."""

    @abstractmethod
    async def get_request(self, request_id: str) -> AppointmentRequest:
        """Raises NotFoundError if missing."""

    @abstractmethod
    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        """Insert unless a live request exists for the same client, date and start.

        Raises:
            DuplicateRequestError: With the existing live request.
        """

    @abstractmethod
    async def update_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        suggested: Optional[SuggestedTime] = None,
        expected: Optional[Iterable[RequestStatus]] = None,
    ) -> AppointmentRequest:
        """Compare-and-set the status (and counter-offer) of a request.

        Raises:
            NotFoundError: If the request does not exist.
            InvalidTransitionError: If its status is not in ``expected``.
        """

    @abstractmethod
    async def set_request_hidden(self, request_id: str, hidden: bool) -> AppointmentRequest:
        """Raises NotFoundError if missing."""

    @abstractmethod
    async def delete_request(
        self, request_id: str, expected: Optional[Iterable[RequestStatus]] = None
    ) -> AppointmentRequest:
        """Delete and return the request.

        Raises:
            NotFoundError: If it was already deleted.
            InvalidTransitionError: If its status is not in ``expected``.
        """

    @abstractmethod
    async def commit_request(
        self,
        request_id: str,
        appointment: Appointment,
        expected: Iterable[RequestStatus],
    ) -> Appointment:
        """Turn a request into an appointment in one atomic unit.

        Inserts ``appointment`` (conflict-checked) and deletes the request.
        A request can be committed at most once.

        Raises:
            NotFoundError: If the request no longer exists.
            InvalidTransitionError: If its status is not in ``expected``.
            SlotConflictError: If the appointment overlaps another one.
        """


class InMemoryAppointmentStore(AppointmentStore):
    """
    Dict-backed store with asyncio locks standing in for transactions.

    Locks are acquired in a fixed order (date locks sorted by date, then
    the request lock) so concurrent operations cannot deadlock.
    """

    def __init__(self, working_hours: Optional[dict[str, WorkingHours]] = None) -> None:
        self._working_hours = dict(working_hours or {})
        self._appointments: dict[str, Appointment] = {}
        self._requests: dict[str, AppointmentRequest] = {}
        self._date_locks: defaultdict[date, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._request_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, hours_by_day: dict[str, str]) -> "InMemoryAppointmentStore":
        """Seed working hours from ``{"monday": "09:00-18:00", "sunday": "closed"}``."""
        hours: dict[str, WorkingHours] = {}
        for day, entry in hours_by_day.items():
            parsed = parse_hours_entry(entry)
            hours[day] = (
                WorkingHours.closed_day() if parsed is None
                else WorkingHours(start=parsed[0], end=parsed[1])
            )
        return cls(working_hours=hours)

    # ------------------------------------------------------------------ #
    # Calendar
    # ------------------------------------------------------------------ #

    async def get_working_hours(self, weekday: str) -> WorkingHours:
        return self._working_hours.get(weekday.lower(), WorkingHours.closed_day())

    def set_working_hours(self, weekday: str, hours: WorkingHours) -> None:
        self._working_hours[weekday.lower()] = hours

    async def list_appointments(
        self, day: date, include_cancelled: bool = False
    ) -> list[Appointment]:
        return self._appointments_on(day, include_cancelled)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        return self._require_appointment(appointment_id).model_copy(deep=True)

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        async with self._date_locks[appointment.date]:
            return await self._checked_insert(appointment)

    async def replace_appointment(
        self, appointment_id: str, replacement: Appointment
    ) -> Appointment:
        original = self._require_appointment(appointment_id)
        async with AsyncExitStack() as stack:
            for day in sorted({original.date, replacement.date}):
                await stack.enter_async_context(self._date_locks[day])
            self._require_appointment(appointment_id)
            stored = await self._checked_insert(replacement, exclude_id=appointment_id)
            del self._appointments[appointment_id]
            logger.info("Appointment %s replaced by %s", appointment_id, stored.id)
            return stored

    async def set_appointment_status(
        self, appointment_id: str, status: AppointmentStatus
    ) -> Appointment:
        current = self._require_appointment(appointment_id)
        async with self._date_locks[current.date]:
            current = self._require_appointment(appointment_id)
            updated = current.model_copy(update={"status": status})
            self._appointments[appointment_id] = updated
            return updated.model_copy(deep=True)

    async def delete_appointment(self, appointment_id: str) -> None:
        current = self._require_appointment(appointment_id)
        async with self._date_locks[current.date]:
            self._require_appointment(appointment_id)
            del self._appointments[appointment_id]

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def list_requests(
        self,
        client_id: Optional[str] = None,
        statuses: Optional[Iterable[RequestStatus]] = None,
    ) -> list[AppointmentRequest]:
        wanted = set(statuses) if statuses is not None else None
        found = [
            r for r in self._requests.values()
            if (client_id is None or r.client_id == client_id)
            and (wanted is None or r.status in wanted)
        ]
        found.sort(key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in found]

    async def get_request(self, request_id: str) -> AppointmentRequest:
        return self._require_request(request_id).model_copy(deep=True)

    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        async with self._request_lock:
            for existing in self._requests.values():
                if (
                    existing.is_live
                    and existing.client_id == request.client_id
                    and existing.requested_date == request.requested_date
                    and existing.requested_start == request.requested_start
                ):
                    raise DuplicateRequestError(existing.model_copy(deep=True))
            await asyncio.sleep(0)
            stored = request.model_copy(update={"id": request.id or _new_id("REQ")})
            self._requests[stored.id] = stored
            return stored.model_copy(deep=True)

    async def update_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        suggested: Optional[SuggestedTime] = None,
        expected: Optional[Iterable[RequestStatus]] = None,
    ) -> AppointmentRequest:
        async with self._request_lock:
            current = self._require_request(request_id, expected)
            updated = current.model_copy(update={"status": status, "suggested": suggested})
            self._requests[request_id] = updated
            return updated.model_copy(deep=True)

    async def set_request_hidden(self, request_id: str, hidden: bool) -> AppointmentRequest:
        async with self._request_lock:
            current = self._require_request(request_id)
            updated = current.model_copy(update={"hidden_by_client": hidden})
            self._requests[request_id] = updated
            return updated.model_copy(deep=True)

    async def delete_request(
        self, request_id: str, expected: Optional[Iterable[RequestStatus]] = None
    ) -> AppointmentRequest:
        async with self._request_lock:
            current = self._require_request(request_id, expected)
            del self._requests[request_id]
            return current.model_copy(deep=True)

    async def commit_request(
        self,
        request_id: str,
        appointment: Appointment,
        expected: Iterable[RequestStatus],
    ) -> Appointment:
        async with self._date_locks[appointment.date], self._request_lock:
            self._require_request(request_id, expected)
            stored = await self._checked_insert(appointment)
            del self._requests[request_id]
            return stored

    # ------------------------------------------------------------------ #
    # Internals (callers hold the relevant locks)
    # ------------------------------------------------------------------ #

    def _appointments_on(self, day: date, include_cancelled: bool = False) -> list[Appointment]:
        found = [
            apt for apt in self._appointments.values()
            if apt.date == day and (include_cancelled or apt.is_active)
        ]
        found.sort(key=lambda apt: apt.interval.start_minutes)
        return [apt.model_copy(deep=True) for apt in found]

    async def _checked_insert(
        self, appointment: Appointment, exclude_id: Optional[str] = None
    ) -> Appointment:
        if appointment.is_active:
            clash = first_conflict(
                appointment.interval, self._appointments_on(appointment.date), exclude_id
            )
            if clash is not None:
                logger.warning(
                    "Insert refused: %s %s overlaps %s",
                    appointment.date, appointment.interval, clash.id,
                )
                raise SlotConflictError(clash)
        # Yield between check and write; the date lock keeps this atomic.
        await asyncio.sleep(0)
        stored = appointment.model_copy(update={"id": _new_id("APT")})
        self._appointments[stored.id] = stored
        return stored.model_copy(deep=True)

    def _require_appointment(self, appointment_id: str) -> Appointment:
        current = self._appointments.get(appointment_id)
        if current is None:
            raise NotFoundError("appointment", appointment_id)
        return current

    def _require_request(
        self, request_id: str, expected: Optional[Iterable[RequestStatus]] = None
    ) -> AppointmentRequest:
        current = self._requests.get(request_id)
        if current is None:
            raise NotFoundError("request", request_id)
        if expected is not None:
            allowed = set(expected)
            if current.status not in allowed:
                raise InvalidTransitionError(
                    f"Request {request_id} is '{current.status.value}', "
                    f"expected one of {sorted(s.value for s in allowed)}"
                )
        return current
