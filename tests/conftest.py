"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Optional

import pytest

from salon_booking.config import AppConfig
from salon_booking.schemas.booking_schema import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    ClientRef,
    OfferingRef,
    RegisteredClient,
    RequestStatus,
    ServiceRef,
)
from salon_booking.schemas.calendar_schema import TimeInterval
from salon_booking.tools.customer import InMemoryClientDirectory
from salon_booking.tools.notifications import InMemoryNotificationSink
from salon_booking.tools.services import InMemoryServiceCatalog
from salon_booking.tools.store import InMemoryAppointmentStore
from salon_booking.workflow.appointment_book import AppointmentBook
from salon_booking.workflow.booking_workflow import BookingRequestWorkflow

MONDAY = date(2030, 3, 18)
TUESDAY = date(2030, 3, 19)
SATURDAY = date(2030, 3, 23)
SUNDAY = date(2030, 3, 24)

HAIRCUT = ServiceRef(id="haircut")      # 30 min
MANICURE = ServiceRef(id="manicure")    # 45 min
COLORING = ServiceRef(id="coloring")    # 90 min

WEEKLY_HOURS = {
    "monday": "09:00-18:00",
    "tuesday": "09:00-18:00",
    "wednesday": "09:00-18:00",
    "thursday": "09:00-18:00",
    "friday": "09:00-18:00",
    "saturday": "10:00-14:00",
    "sunday": "closed",
}


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def store():
    return InMemoryAppointmentStore.from_config(WEEKLY_HOURS)


@pytest.fixture
def catalog():
    return InMemoryServiceCatalog()


@pytest.fixture
def directory():
    directory = InMemoryClientDirectory(operators=["admin-1", "admin-2"])
    directory.add_client(RegisteredClient(id="client-1"), "Maria Ivanova", "0888 123 456")
    directory.add_client(RegisteredClient(id="client-2"), "Georgi Petrov", "+359 88 765 4321")
    return directory


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def workflow(store, catalog, directory, sink, config):
    return BookingRequestWorkflow(store, catalog, directory, sink, config)


@pytest.fixture
def book(store, catalog, sink, config):
    return AppointmentBook(store, catalog, sink, config)


def interval(start: str, end: str) -> TimeInterval:
    """Helper to create a TimeInterval from ``HH:MM`` strings."""
    return TimeInterval(start=start, end=end)


def at(day: date, hhmm: str) -> datetime:
    """Naive wall-clock moment on ``day``."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime(day.year, day.month, day.day, hour, minute)


def make_appointment(
    start: str,
    end: str,
    day: date = MONDAY,
    client: Optional[ClientRef] = None,
    offering: Optional[OfferingRef] = None,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    appointment_id: Optional[str] = None,
) -> Appointment:
    """Helper to create an Appointment with sensible defaults."""
    return Appointment(
        id=appointment_id,
        date=day,
        interval=interval(start, end),
        client=client or RegisteredClient(id="client-1"),
        offering=offering or HAIRCUT,
        status=status,
    )


def make_request(
    start: str = "10:00",
    day: date = MONDAY,
    client_id: str = "client-1",
    offering: Optional[OfferingRef] = None,
    status: RequestStatus = RequestStatus.PENDING,
    hidden_by_client: bool = False,
) -> AppointmentRequest:
    """Helper to create an AppointmentRequest with sensible defaults."""
    return AppointmentRequest(
        client_id=client_id,
        offering=offering or HAIRCUT,
        requested_date=day,
        requested_start=start,
        status=status,
        hidden_by_client=hidden_by_client,
    )
