"""
Booking-request negotiation between a client and the salon.

Each operation loads the request, checks the transition against
:mod:`request_state_machine`, mutates the store with a compare-and-set
guard derived from the same table, and only then notifies the
counterpart. The store is the authority on conflicts: the pre-check
against live appointments exists for a clear error message, the
store's atomic ``commit_request`` is what actually prevents two
approvals from landing on the same slot.

Notifications are fire-and-forget. A failed notification is logged and
never undoes the committed state change.
"""

import asyncio
from collections.abc import Awaitable
from datetime import date, time
from typing import Optional, TypeVar

from salon_booking.config import AppConfig, settings
from salon_booking.errors import (
    InvalidTransitionError,
    NotFoundError,
    NotificationFailure,
    SlotConflictError,
    SlotNoLongerAvailableError,
)
from salon_booking.logging_context import get_request_logger, set_request_id
from salon_booking.scheduling.conflicts import first_conflict, interval_for_duration, make_interval
from salon_booking.schemas.booking_schema import (
    Appointment,
    AppointmentRequest,
    OfferingRef,
    RegisteredClient,
    RequestStatus,
    SuggestedTime,
)
from salon_booking.schemas.calendar_schema import TimeInterval
from salon_booking.schemas.notification_schema import NotificationKind, NotificationPayload
from salon_booking.tools.customer import ClientDirectory
from salon_booking.tools.notifications import NotificationSink, deliver
from salon_booking.tools.services import ServiceCatalog
from salon_booking.tools.store import AppointmentStore
from salon_booking.workflow import messages
from salon_booking.workflow.request_state_machine import (
    RequestStateMachine,
    RequestTrigger,
    expected_statuses,
)

logger = get_request_logger(__name__)

T = TypeVar("T")

LIVE_STATUSES = (RequestStatus.PENDING, RequestStatus.CHANGED)


class BookingRequestWorkflow:
    """Drives an AppointmentRequest from submission to resolution."""

    def __init__(
        self,
        store: AppointmentStore,
        catalog: ServiceCatalog,
        directory: ClientDirectory,
        sink: NotificationSink,
        config: AppConfig = settings,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._directory = directory
        self._sink = sink
        self._config = config

    # ------------------------------------------------------------------ #
    # Client-invoked
    # ------------------------------------------------------------------ #

    async def submit(
        self,
        client_id: str,
        offering: OfferingRef,
        requested_date: date,
        requested_start: time,
        message: Optional[str] = None,
    ) -> AppointmentRequest:
        """Create a ``PENDING`` request and notify every operator.

        Raises:
            NotFoundError: If the service or promotion does not exist.
            InvalidIntervalError: If the service would not fit in the day.
            DuplicateRequestError: If a live request exists for the same
                client, date and start time.
        """
        item = await self._bounded(self._catalog.get_offering(offering))
        interval_for_duration(
            requested_start, item.duration_minutes, self._config.salon.min_appointment_minutes
        )
        request = AppointmentRequest(
            client_id=client_id,
            offering=offering,
            requested_date=requested_date,
            requested_start=requested_start,
            message=message.strip() if message and message.strip() else None,
        )
        stored = await self._bounded(self._store.insert_request(request))
        set_request_id(stored.id)
        logger.info(
            "Request %s submitted by %s for %s %s",
            stored.id, client_id, requested_date, requested_start.strftime("%H:%M"),
        )

        client_name = await self._client_name(client_id)
        await self._notify_operators(
            NotificationKind.NEW_BOOKING_REQUEST,
            messages.build_new_request(stored, client_name, item.name),
        )
        return stored

    async def accept_alternative(self, request_id: str, client_id: str) -> Appointment:
        """Book the operator's counter-offer.

        Raises:
            SlotNoLongerAvailableError: If the suggested slot was taken in
                the meantime. The request stays ``CHANGED`` so the
                operator can re-propose.
        """
        request = await self._load(request_id, client_id)
        self._check(request, RequestTrigger.ACCEPT_ALTERNATIVE)
        if request.suggested is None:
            raise InvalidTransitionError(f"Request {request_id} carries no suggested time")

        appointment = Appointment(
            date=request.suggested.date,
            interval=request.suggested.interval,
            client=RegisteredClient(id=request.client_id),
            offering=request.offering,
        )
        live = await self._bounded(self._store.list_appointments(appointment.date))
        clash = first_conflict(appointment.interval, live)
        if clash is not None:
            logger.warning("Suggested slot for %s already taken by %s", request_id, clash.id)
            raise SlotNoLongerAvailableError(clash)
        try:
            stored = await self._bounded(self._store.commit_request(
                request_id, appointment, expected_statuses(RequestTrigger.ACCEPT_ALTERNATIVE)
            ))
        except SlotConflictError as exc:
            logger.warning("Suggested slot for %s lost the race to %s", request_id, exc.conflicting.id)
            raise SlotNoLongerAvailableError(exc.conflicting) from exc

        logger.info("Request %s accepted as appointment %s", request_id, stored.id)
        client_name = await self._client_name(client_id)
        await self._notify_operators(
            NotificationKind.SUGGESTION_ACCEPTED,
            messages.build_suggestion_accepted(stored, request_id, client_name),
        )
        return stored

    async def reject_alternative(
        self, request_id: str, client_id: str, reason: Optional[str] = None
    ) -> AppointmentRequest:
        """Decline the counter-offer. The request is deleted."""
        request = await self._load(request_id, client_id)
        self._check(request, RequestTrigger.REJECT_ALTERNATIVE)
        removed = await self._bounded(self._store.delete_request(
            request_id, expected_statuses(RequestTrigger.REJECT_ALTERNATIVE)
        ))
        logger.info("Request %s: client declined the suggested time", request_id)

        client_name = await self._client_name(client_id)
        await self._notify_operators(
            NotificationKind.SUGGESTION_REJECTED,
            messages.build_suggestion_rejected(removed, client_name, reason),
        )
        return removed

    async def cancel(
        self, request_id: str, client_id: str, reason: Optional[str] = None
    ) -> AppointmentRequest:
        """Withdraw a request that the operator has not answered yet."""
        request = await self._load(request_id, client_id)
        self._check(request, RequestTrigger.CANCEL)
        removed = await self._bounded(self._store.delete_request(
            request_id, expected_statuses(RequestTrigger.CANCEL)
        ))
        logger.info("Request %s cancelled by client", request_id)

        client_name = await self._client_name(client_id)
        await self._notify_operators(
            NotificationKind.REQUEST_CANCELLED,
            messages.build_request_cancelled(removed, client_name, reason),
        )
        return removed

    async def hide_request(self, request_id: str, client_id: str) -> AppointmentRequest:
        """Remove a request from the client's own list. Hidden requests are not live."""
        await self._load(request_id, client_id)
        hidden = await self._bounded(self._store.set_request_hidden(request_id, True))
        logger.info("Request %s hidden by client", request_id)
        return hidden

    async def list_requests(self, client_id: Optional[str] = None) -> list[AppointmentRequest]:
        """Open requests, oldest first.

        With ``client_id`` this is the client's own view and omits what the
        client has hidden. Without it this is the operator's inbox.
        """
        requests = await self._bounded(self._store.list_requests(client_id, LIVE_STATUSES))
        if client_id is not None:
            requests = [r for r in requests if not r.hidden_by_client]
        return requests

    # ------------------------------------------------------------------ #
    # Operator-invoked
    # ------------------------------------------------------------------ #

    async def approve(self, request_id: str) -> Appointment:
        """Turn a pending request into a confirmed appointment.

        The requested slot is re-checked against the live calendar. Approval
        never creates an overlapping appointment; on conflict the operator
        has to propose an alternative or reject.

        Raises:
            SlotConflictError: With the earliest conflicting appointment.
            NotFoundError: If the request was already resolved.
        """
        request = await self._load(request_id)
        self._check(request, RequestTrigger.APPROVE)
        item = await self._bounded(self._catalog.get_offering(request.offering))

        appointment = Appointment(
            date=request.requested_date,
            interval=request.requested_interval(item.duration_minutes),
            client=RegisteredClient(id=request.client_id),
            offering=request.offering,
            notes=request.message,
        )
        live = await self._bounded(self._store.list_appointments(appointment.date))
        clash = first_conflict(appointment.interval, live)
        if clash is not None:
            logger.warning(
                "Approval of %s refused: %s overlaps %s", request_id, appointment.interval, clash.id
            )
            raise SlotConflictError(clash)
        stored = await self._bounded(self._store.commit_request(
            request_id, appointment, expected_statuses(RequestTrigger.APPROVE)
        ))

        logger.info("Request %s approved as appointment %s", request_id, stored.id)
        await self._notify(
            request.client_id,
            NotificationKind.BOOKING_APPROVED,
            messages.build_approved(stored, request_id, item.name),
        )
        return stored

    async def reject(self, request_id: str, reason: Optional[str] = None) -> AppointmentRequest:
        """Decline a request. The request is deleted, so a second call raises NotFoundError."""
        request = await self._load(request_id)
        self._check(request, RequestTrigger.REJECT)
        removed = await self._bounded(self._store.delete_request(
            request_id, expected_statuses(RequestTrigger.REJECT)
        ))
        logger.info("Request %s rejected", request_id)

        await self._notify(
            removed.client_id,
            NotificationKind.BOOKING_REJECTED,
            messages.build_rejected(removed, reason),
        )
        return removed

    async def propose_alternative(
        self, request_id: str, suggested_date: date, suggested_interval: TimeInterval
    ) -> AppointmentRequest:
        """Attach a counter-offer. The calendar is not touched.

        Raises:
            InvalidIntervalError: If the interval is shorter than the
                minimum appointment length.
            SlotConflictError: If the suggested slot is already booked.
        """
        interval = make_interval(
            suggested_interval.start,
            suggested_interval.end,
            self._config.salon.min_appointment_minutes,
        )
        request = await self._load(request_id)
        self._check(request, RequestTrigger.PROPOSE_ALTERNATIVE)

        live = await self._bounded(self._store.list_appointments(suggested_date))
        clash = first_conflict(interval, live)
        if clash is not None:
            logger.warning("Suggested %s %s for %s overlaps %s",
                           suggested_date, interval, request_id, clash.id)
            raise SlotConflictError(clash)

        updated = await self._bounded(self._store.update_request_status(
            request_id,
            RequestStatus.CHANGED,
            suggested=SuggestedTime(date=suggested_date, interval=interval),
            expected=expected_statuses(RequestTrigger.PROPOSE_ALTERNATIVE),
        ))
        logger.info("Request %s: suggested %s %s", request_id, suggested_date, interval)

        await self._notify(
            updated.client_id,
            NotificationKind.TIME_SUGGESTED,
            messages.build_time_suggested(updated, suggested_date, interval),
        )
        return updated

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self._config.timeouts.store_timeout_sec)

    async def _load(self, request_id: str, client_id: Optional[str] = None) -> AppointmentRequest:
        """Fetch a request, hiding other clients' requests behind NotFoundError."""
        set_request_id(request_id)
        request = await self._bounded(self._store.get_request(request_id))
        if client_id is not None and request.client_id != client_id:
            logger.warning("Client %s tried to act on request %s of another client",
                           client_id, request_id)
            raise NotFoundError("request", request_id)
        return request

    def _check(self, request: AppointmentRequest, trigger: RequestTrigger) -> None:
        try:
            RequestStateMachine.for_request(request).transition(trigger)
        except InvalidTransitionError:
            logger.warning("Refused %s on request %s in status %s",
                           trigger.value, request.id, request.status.value)
            raise

    async def _client_name(self, client_id: str) -> str:
        try:
            contact = await self._bounded(
                self._directory.resolve_client(RegisteredClient(id=client_id))
            )
        except (NotFoundError, asyncio.TimeoutError):
            return client_id
        except Exception as exc:
            logger.warning("Notification text degraded: %s",
                           NotificationFailure(f"client lookup for {client_id} failed: {exc}"))
            return client_id
        return contact.display_name or client_id

    async def _notify(
        self, recipient_id: str, kind: NotificationKind, payload: NotificationPayload
    ) -> bool:
        return await deliver(
            self._sink, recipient_id, kind, payload, self._config.timeouts.notify_timeout_sec
        )

    async def _notify_operators(self, kind: NotificationKind, payload: NotificationPayload) -> int:
        """Fan out to every operator. Returns how many deliveries succeeded."""
        try:
            operator_ids = await self._bounded(self._directory.operator_ids())
        except asyncio.TimeoutError:
            logger.warning("Operator lookup timed out; %s not delivered", kind.value)
            return 0
        except Exception as exc:
            logger.warning("Notification not delivered: %s",
                           NotificationFailure(f"operator lookup for {kind.value} failed: {exc}"))
            return 0
        if not operator_ids:
            logger.warning("No operators to notify about %s", kind.value)
            return 0
        results = await asyncio.gather(
            *(self._notify(operator_id, kind, payload) for operator_id in operator_ids)
        )
        return sum(results)
