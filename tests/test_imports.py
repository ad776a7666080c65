"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_calendar_schema(self):
        from salon_booking.schemas.calendar_schema import FreeBlock, TimeInterval, WorkingHours
        assert WorkingHours.closed_day().interval is None

    def test_import_booking_schema(self):
        from salon_booking.schemas.booking_schema import Appointment, AppointmentRequest, DayView
        assert Appointment is not None

    def test_import_notification_schema(self):
        from salon_booking.schemas.notification_schema import NotificationKind
        assert NotificationKind.BOOKING_APPROVED == "booking_approved"
        assert len(NotificationKind) == 10


class TestSchedulingImports:
    def test_import_clock(self):
        from salon_booking.scheduling.clock import to_minutes
        assert to_minutes("01:00") == 60

    def test_import_availability(self):
        from salon_booking.scheduling.availability import free_ranges, service_start_options
        assert callable(free_ranges)


class TestToolImports:
    def test_import_default_catalog(self):
        from salon_booking.tools.services import DEFAULT_CATALOG
        assert len(DEFAULT_CATALOG) >= 6

    def test_import_supabase_backend(self):
        from salon_booking.tools.supabase_backend import SupabaseAppointmentStore
        from salon_booking.tools.store import AppointmentStore
        assert issubclass(SupabaseAppointmentStore, AppointmentStore)


class TestWorkflowImports:
    def test_import_workflow_package(self):
        from salon_booking.workflow import (
            AppointmentBook,
            BookingRequestWorkflow,
            RequestState,
            RequestStateMachine,
        )
        assert RequestStateMachine().current_state == RequestState.PENDING


class TestConfigImport:
    def test_import_config(self):
        from salon_booking.config import settings
        assert settings.salon.name
        assert settings.salon.slot_step_minutes >= 5
        assert settings.timeouts.store_timeout_sec > 0

    def test_version(self):
        import salon_booking
        assert salon_booking.__version__ == "0.1.0"
