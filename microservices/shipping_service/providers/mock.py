"""Mock shipping provider for development and tests."""

import random
import time
from datetime import datetime, timedelta

from ..models import (
    ConnectionType,
    CreateShipmentRequest,
    RateQuote,
    ShipmentCreated,
    ShipmentStatus,
    ShippingMode,
    ShippingRate,
)
from ..validators import estimate_distance_category
from .base import ShippingProviderAdapter

# (base cost, per-kg cost, days) by distance category
_TARIFF = {
    "local": (40.0, 15.0, 2),
    "regional": (60.0, 25.0, 4),
    "national": (80.0, 35.0, 6),
}


class MockShippingProvider(ShippingProviderAdapter):
    code = "mock"
    name = "Mock Courier"
    connection_type = ConnectionType.API_KEY

    async def quote_rates(self, origin_pincode, destination_pincode, weight, cod) -> RateQuote:
        category = estimate_distance_category(origin_pincode, destination_pincode)
        base, per_kg, days = _TARIFF[category]
        surface_cost = round(base + per_kg * weight + (30.0 if cod else 0.0), 2)

        rates = [
            ShippingRate(
                provider_id=self.provider_id,
                provider_name=self.name,
                courier_name="Mock Surface",
                courier_code="mock-surface",
                mode=ShippingMode.SURFACE,
                cost=surface_cost,
                estimated_days=days,
                recommended=True,
                cod_available=True,
            ),
            ShippingRate(
                provider_id=self.provider_id,
                provider_name=self.name,
                courier_name="Mock Air",
                courier_code="mock-air",
                mode=ShippingMode.AIR,
                cost=round(surface_cost * 1.6, 2),
                estimated_days=max(1, days - 2),
                cod_available=True,
            ),
        ]
        return RateQuote(serviceable=True, rates=rates, recommended_courier_code="mock-surface")

    async def create_shipment(self, request: CreateShipmentRequest, package_weight: float) -> ShipmentCreated:
        awb = f"MOCK-AWB-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"
        return ShipmentCreated(
            provider_id=self.provider_id,
            tracking_number=awb,
            courier_name="Mock Surface",
            tracking_url=f"https://example.com/track/{awb}",
            package_weight=package_weight,
            estimated_delivery=datetime.utcnow() + timedelta(days=5),
            status=ShipmentStatus.CREATED,
        )
