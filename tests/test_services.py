"""Tests for the service and promotion catalog."""

import pytest

from salon_booking.errors import NotFoundError
from salon_booking.schemas.booking_schema import Offering, PromotionRef, ServiceRef
from salon_booking.tools.services import InMemoryServiceCatalog
from tests.conftest import COLORING, HAIRCUT


class TestDefaultCatalog:
    @pytest.mark.asyncio
    async def test_duration(self, catalog):
        assert await catalog.get_duration(COLORING) == 90

    @pytest.mark.asyncio
    async def test_price(self, catalog):
        assert await catalog.get_price(HAIRCUT) == 25.0

    @pytest.mark.asyncio
    async def test_promotion(self, catalog):
        ref = PromotionRef(id="spring-color")
        assert await catalog.get_duration(ref) == 120
        assert await catalog.get_price(ref) == 95.0

    @pytest.mark.asyncio
    async def test_service_and_promotion_ids_are_separate(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.get_price(ServiceRef(id="spring-color"))


class TestCustomCatalog:
    @pytest.mark.asyncio
    async def test_replaces_defaults(self):
        catalog = InMemoryServiceCatalog([
            Offering(ref=ServiceRef(id="beard"), name="Beard trim", duration_minutes=15, price=12.5),
        ])
        assert await catalog.get_price(ServiceRef(id="beard")) == 12.5
        with pytest.raises(NotFoundError):
            await catalog.get_offering(HAIRCUT)
