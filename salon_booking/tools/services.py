"""Service and promotion catalog with durations and prices."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from salon_booking.errors import NotFoundError
from salon_booking.schemas.booking_schema import Offering, OfferingRef, PromotionRef, ServiceRef

logger = logging.getLogger(__name__)

DEFAULT_CATALOG: list[Offering] = [
    Offering(ref=ServiceRef(id="haircut"), name="Haircut", duration_minutes=30, price=25.0),
    Offering(ref=ServiceRef(id="haircut-styling"), name="Haircut and styling",
             duration_minutes=60, price=45.0),
    Offering(ref=ServiceRef(id="coloring"), name="Hair coloring", duration_minutes=90, price=80.0),
    Offering(ref=ServiceRef(id="manicure"), name="Manicure", duration_minutes=45, price=30.0),
    Offering(ref=ServiceRef(id="pedicure"), name="Pedicure", duration_minutes=60, price=35.0),
    Offering(ref=PromotionRef(id="spring-color"), name="Spring color and cut",
             duration_minutes=120, price=95.0),
]


def _key(ref: OfferingRef) -> tuple[str, str]:
    return ref.kind, ref.id


class ServiceCatalog(ABC):
    """Read-only lookup of offerings. Duration drives slot-length filtering."""

    @abstractmethod
    async def get_offering(self, ref: OfferingRef) -> Offering:
        """Return the offering.

        Raises:
            NotFoundError: If the service or promotion does not exist.
        """

    async def get_duration(self, ref: OfferingRef) -> int:
        return (await self.get_offering(ref)).duration_minutes

    async def get_price(self, ref: OfferingRef) -> float:
        return (await self.get_offering(ref)).price


class InMemoryServiceCatalog(ServiceCatalog):
    """Catalog held in a dict, seeded with the default salon menu."""

    def __init__(self, offerings: Optional[list[Offering]] = None) -> None:
        self._offerings = {_key(o.ref): o for o in (offerings or DEFAULT_CATALOG)}

    async def get_offering(self, ref: OfferingRef) -> Offering:
        offering = self._offerings.get(_key(ref))
        if offering is None:
            raise NotFoundError(ref.kind, ref.id)
        return offering
