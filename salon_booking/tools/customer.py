"""
Client directory lookups.

Used only to build human-readable notification text and to find the
operators who receive request-side notifications. Never consulted for
authorization decisions inside the scheduling core.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from salon_booking.errors import NotFoundError
from salon_booking.schemas.booking_schema import ClientRef
from salon_booking.schemas.customer_schema import ClientContact

logger = logging.getLogger(__name__)


class ClientDirectory(ABC):
    @abstractmethod
    async def resolve_client(self, ref: ClientRef) -> ClientContact:
        """Display name and phone of a registered or unregistered client.

        Raises:
            NotFoundError: If the client does not exist.
        """

    @abstractmethod
    async def operator_ids(self) -> list[str]:
        """Recipient ids of every salon operator."""


class InMemoryClientDirectory(ClientDirectory):
    """Directory held in dicts."""

    def __init__(self, operators: Optional[list[str]] = None) -> None:
        self._clients: dict[tuple[str, str], ClientContact] = {}
        self._operators: list[str] = list(operators or [])

    def add_client(self, ref: ClientRef, display_name: str, phone: Optional[str] = None) -> ClientContact:
        contact = ClientContact(display_name=display_name, phone=phone)
        self._clients[(ref.kind, ref.id)] = contact
        logger.debug("Client registered in directory: %s %s", ref.kind, ref.id)
        return contact

    async def resolve_client(self, ref: ClientRef) -> ClientContact:
        contact = self._clients.get((ref.kind, ref.id))
        if contact is None:
            raise NotFoundError(f"{ref.kind} client", ref.id)
        return contact

    async def operator_ids(self) -> list[str]:
        return list(self._operators)
