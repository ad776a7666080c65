"""
Fire-and-forget notification delivery.

A failed or timed-out notification never rolls back the state change
that triggered it: :func:`deliver` logs the failure and reports it as a
boolean instead of raising.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from salon_booking.errors import NotificationFailure
from salon_booking.schemas.notification_schema import (
    Notification,
    NotificationKind,
    NotificationPayload,
)

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    async def notify(
        self, recipient_id: str, kind: NotificationKind, payload: NotificationPayload
    ) -> None:
        """Deliver one notification.

        Raises:
            NotificationFailure: If delivery failed.
        """


class InMemoryNotificationSink(NotificationSink):
    """Records every notification. Used by tests and local development."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(
        self, recipient_id: str, kind: NotificationKind, payload: NotificationPayload
    ) -> None:
        self.sent.append(Notification(recipient_id=recipient_id, kind=kind, payload=payload))
        logger.debug("Notification queued for %s: %s", recipient_id, kind.value)

    def for_recipient(self, recipient_id: str) -> list[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]

    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.sent]

    def reset(self) -> None:
        self.sent.clear()


async def deliver(
    sink: NotificationSink,
    recipient_id: str,
    kind: NotificationKind,
    payload: NotificationPayload,
    timeout: float,
) -> bool:
    """Send one notification with a bounded wait. Returns False on failure."""
    try:
        await asyncio.wait_for(sink.notify(recipient_id, kind, payload), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        failure = NotificationFailure(f"{kind.value} to {recipient_id} timed out after {timeout}s")
    except NotificationFailure as exc:
        failure = exc
    except Exception as exc:
        failure = NotificationFailure(f"{kind.value} to {recipient_id} failed: {exc}")
    logger.warning("Notification not delivered: %s", failure)
    return False
