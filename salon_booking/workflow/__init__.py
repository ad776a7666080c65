from salon_booking.workflow.appointment_book import AppointmentBook
from salon_booking.workflow.booking_workflow import BookingRequestWorkflow
from salon_booking.workflow.request_state_machine import (
    RequestState,
    RequestStateMachine,
    RequestTrigger,
)

__all__ = [
    "AppointmentBook",
    "BookingRequestWorkflow",
    "RequestStateMachine",
    "RequestState",
    "RequestTrigger",
]
