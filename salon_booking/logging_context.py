"""Correlation ID logging context for tracing a booking request across modules.

Provides a request-id-aware logger that attaches the id of the booking
request (or appointment) being processed to every log message, making it
easy to follow one negotiation through the workflow, the store and the
notification sink.

Usage:
    from salon_booking.logging_context import get_request_logger, set_request_id

    set_request_id("REQ-1a2b3c")
    logger = get_request_logger(__name__)
    logger.info("Approving")  # record.request_id == "REQ-1a2b3c"
"""

import logging
from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def set_request_id(request_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _request_id.set(request_id)


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
