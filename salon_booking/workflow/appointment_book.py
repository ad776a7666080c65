"""
Operator-side calendar operations and read models.

Direct bookings, edits and cancellations of confirmed appointments, plus
the day view and free-time searches the calendar screens are built on.
"""

import asyncio
from collections.abc import Awaitable
from datetime import date, datetime, time, timedelta
from typing import Optional, TypeVar

from salon_booking.config import WEEKDAYS, AppConfig, settings
from salon_booking.errors import NotFoundError, NotificationFailure, SlotConflictError
from salon_booking.logging_context import get_request_logger, set_request_id
from salon_booking.scheduling.availability import (
    fixed_grid_slots,
    free_blocks_across_days,
    free_ranges,
    service_start_options,
    without_blocked_starts,
)
from salon_booking.scheduling.clock import TimeLike
from salon_booking.scheduling.conflicts import first_conflict, interval_for_duration, make_interval
from salon_booking.schemas.booking_schema import (
    Appointment,
    AppointmentStatus,
    ClientRef,
    DayView,
    OfferingRef,
    RequestStatus,
)
from salon_booking.schemas.calendar_schema import FreeBlock, TimeInterval, WorkingHours
from salon_booking.schemas.notification_schema import NotificationKind
from salon_booking.tools.notifications import NotificationSink, deliver
from salon_booking.tools.services import ServiceCatalog
from salon_booking.tools.store import AppointmentStore
from salon_booking.workflow import messages

logger = get_request_logger(__name__)

T = TypeVar("T")


class AppointmentBook:
    """The salon's single shared calendar."""

    def __init__(
        self,
        store: AppointmentStore,
        catalog: ServiceCatalog,
        sink: NotificationSink,
        config: AppConfig = settings,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._sink = sink
        self._config = config

    @property
    def step(self) -> int:
        return self._config.salon.slot_step_minutes

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def book(
        self,
        day: date,
        start: TimeLike,
        client: ClientRef,
        offering: OfferingRef,
        end: Optional[TimeLike] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Operator books a confirmed appointment directly.

        The end defaults to start plus the offering's duration.

        Raises:
            InvalidIntervalError: Before any store access.
            SlotConflictError: With the earliest conflicting appointment.
        """
        interval = await self._interval(start, end, offering)
        appointment = Appointment(
            date=day, interval=interval, client=client, offering=offering, notes=notes
        )
        clash = first_conflict(interval, await self._bounded(self._store.list_appointments(day)))
        if clash is not None:
            logger.warning("Booking %s %s refused: overlaps %s", day, interval, clash.id)
            raise SlotConflictError(clash)

        stored = await self._bounded(self._store.insert_appointment(appointment))
        set_request_id(stored.id)
        logger.info("Appointment %s booked on %s %s", stored.id, day, interval)
        await self._notify_client(
            stored, NotificationKind.APPOINTMENT_CREATED, "Appointment booked", "is booked"
        )
        return stored

    async def edit(
        self,
        appointment_id: str,
        day: Optional[date] = None,
        start: Optional[TimeLike] = None,
        end: Optional[TimeLike] = None,
        client: Optional[ClientRef] = None,
        offering: Optional[OfferingRef] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Replace an appointment with an edited copy under a new id.

        The replacement is validated against every other appointment before
        the original is removed; a conflicting edit leaves the original
        untouched. When the start or the offering changes without an
        explicit end, the end is recomputed from the offering's duration.

        Raises:
            NotFoundError: If the appointment does not exist.
            InvalidIntervalError: Before any store mutation.
            SlotConflictError: If the new slot overlaps another appointment.
        """
        set_request_id(appointment_id)
        original = await self._bounded(self._store.get_appointment(appointment_id))
        new_offering = offering or original.offering

        if end is not None or start is not None or offering is not None:
            interval = await self._interval(
                start if start is not None else original.interval.start,
                end,
                new_offering,
            )
        else:
            interval = original.interval

        replacement = Appointment(
            date=day or original.date,
            interval=interval,
            client=client or original.client,
            offering=new_offering,
            status=original.status,
            notes=notes if notes is not None else original.notes,
        )
        live = await self._bounded(self._store.list_appointments(replacement.date))
        clash = first_conflict(interval, live, exclude_id=appointment_id)
        if clash is not None:
            logger.warning("Edit of %s refused: %s %s overlaps %s",
                           appointment_id, replacement.date, interval, clash.id)
            raise SlotConflictError(clash)

        stored = await self._bounded(self._store.replace_appointment(appointment_id, replacement))
        logger.info("Appointment %s edited; now %s on %s %s",
                    appointment_id, stored.id, stored.date, stored.interval)
        await self._notify_client(
            stored, NotificationKind.APPOINTMENT_UPDATED, "Appointment changed", "has been changed"
        )
        return stored

    async def cancel(self, appointment_id: str) -> Appointment:
        """Mark an appointment cancelled. Its slot becomes free immediately."""
        set_request_id(appointment_id)
        cancelled = await self._bounded(
            self._store.set_appointment_status(appointment_id, AppointmentStatus.CANCELLED)
        )
        logger.info("Appointment %s cancelled", appointment_id)
        await self._notify_client(
            cancelled, NotificationKind.APPOINTMENT_CANCELLED,
            "Appointment cancelled", "has been cancelled",
        )
        return cancelled

    # ------------------------------------------------------------------ #
    # Read models
    # ------------------------------------------------------------------ #

    async def working_hours(self, day: date) -> WorkingHours:
        return await self._bounded(self._store.get_working_hours(WEEKDAYS[day.weekday()]))

    async def day_view(self, day: date, now: Optional[datetime] = None) -> DayView:
        now = now or self._now()
        hours, appointments = await asyncio.gather(
            self.working_hours(day),
            self._bounded(self._store.list_appointments(day)),
        )
        return DayView(
            date=day,
            working_hours=hours,
            appointments=appointments,
            slots=fixed_grid_slots(hours, appointments, now=now, day=day, step=self.step),
            free_ranges=self._free(day, hours, appointments, now),
        )

    async def free_ranges_for(self, day: date, now: Optional[datetime] = None) -> list[TimeInterval]:
        hours, appointments = await asyncio.gather(
            self.working_hours(day),
            self._bounded(self._store.list_appointments(day)),
        )
        return self._free(day, hours, appointments, now or self._now())

    async def start_options(
        self, day: date, offering: OfferingRef, now: Optional[datetime] = None
    ) -> list[time]:
        """Every step-aligned start on ``day`` where ``offering`` fits.

        Starts that would overlap a pending request for the same day are
        left out, the same as those overlapping a confirmed appointment.
        """
        duration = await self._bounded(self._catalog.get_duration(offering))
        options: list[time] = []
        for free_range in await self.free_ranges_for(day, now):
            options.extend(service_start_options(free_range, duration, self.step))
        return without_blocked_starts(options, duration, await self._pending_intervals(day))

    async def next_free_blocks(self, now: Optional[datetime] = None) -> list[FreeBlock]:
        """The first free ranges from today on, across the lookahead window."""
        now = now or self._now()
        salon = self._config.salon
        days = [now.date() + timedelta(days=offset) for offset in range(salon.lookahead_days)]
        hours = await asyncio.gather(*(self.working_hours(day) for day in days))
        open_days = [(day, h) for day, h in zip(days, hours) if not h.closed]
        booked = await asyncio.gather(
            *(self._bounded(self._store.list_appointments(day)) for day, _ in open_days)
        )
        blocks = free_blocks_across_days(
            (
                (day, h, [apt.interval for apt in appointments])
                for (day, h), appointments in zip(open_days, booked)
            ),
            now=now,
            limit=salon.max_free_blocks,
            step=self.step,
            min_minutes=salon.min_bookable_minutes,
        )
        logger.debug("Found %d free block(s) in the next %d days", len(blocks), salon.lookahead_days)
        return blocks

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _now(self) -> datetime:
        return datetime.now(self._config.salon.tz)

    def _free(
        self, day: date, hours: WorkingHours, appointments: list[Appointment], now: datetime
    ) -> list[TimeInterval]:
        return free_ranges(
            hours,
            [apt.interval for apt in appointments if apt.is_active],
            now=now,
            day=day,
            step=self.step,
            min_minutes=self._config.salon.min_bookable_minutes,
        )

    async def _pending_intervals(self, day: date) -> list[TimeInterval]:
        pending = [
            r for r in await self._bounded(self._store.list_requests(None, [RequestStatus.PENDING]))
            if r.requested_date == day and r.is_live
        ]
        held: list[TimeInterval] = []
        for request in pending:
            try:
                duration = await self._bounded(self._catalog.get_duration(request.offering))
                held.append(request.requested_interval(duration))
            except (NotFoundError, ValueError):
                logger.warning("Pending request %s has no usable slot; not blocking", request.id)
        return held

    async def _interval(
        self, start: TimeLike, end: Optional[TimeLike], offering: OfferingRef
    ) -> TimeInterval:
        minimum = self._config.salon.min_appointment_minutes
        if end is not None:
            return make_interval(start, end, minimum)
        duration = await self._bounded(self._catalog.get_duration(offering))
        return interval_for_duration(start, duration, minimum)

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self._config.timeouts.store_timeout_sec)

    async def _notify_client(
        self, appointment: Appointment, kind: NotificationKind, title: str, verb: str
    ) -> bool:
        """Only registered clients have an inbox."""
        if appointment.client.kind != "registered":
            return False
        try:
            name = (await self._bounded(self._catalog.get_offering(appointment.offering))).name
        except (NotFoundError, asyncio.TimeoutError):
            logger.warning("Offering lookup failed for %s", appointment.id)
            name = "appointment"
        except Exception as exc:
            logger.warning("Notification text degraded: %s",
                           NotificationFailure(f"offering lookup for {appointment.id} failed: {exc}"))
            name = "appointment"
        return await deliver(
            self._sink,
            appointment.client.id,
            kind,
            messages.build_appointment_event(appointment, title, verb, name),
            self._config.timeouts.notify_timeout_sec,
        )
