"""
Shipping Service - Shipment Booking Component Tests
"""

import pytest

from core.config import ShippingConfig
from core.errors import ProviderError, ValidationError
from microservices.shipping_service.encryption import CredentialCipher
from microservices.shipping_service.models import (
    Address,
    CreateShipmentRequest,
    Dimensions,
    PackageItem,
    ShipmentStatus,
)
from microservices.shipping_service.protocols import ProviderDisabledError, ProviderNotFoundError
from microservices.shipping_service.providers import ProviderRegistry
from microservices.shipping_service.shipping_service import ShippingService
from tests.fixtures import make_provider

from .mocks import MockShippingRepository, retryable_failure, scripted_adapter

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


def make_request(provider_id="prov_courier", **kwargs) -> CreateShipmentRequest:
    return CreateShipmentRequest(
        order_id="ord_1",
        order_code="BB-1001",
        shipment_code="BB-1001-SH1",
        provider_id=provider_id,
        items=[PackageItem(product_id="p1", name="Kurta", quantity=2, category="clothing")],
        origin=Address(pincode="110001"),
        destination=Address(pincode="400001", name="Asha"),
        **kwargs,
    )


def make_service(adapter, no_wait_retry, enabled=True, config=None):
    repository = MockShippingRepository([
        make_provider(code=adapter.code, provider_id="prov_courier", is_enabled=enabled, encrypted_credentials=None),
    ])
    return ShippingService(
        repository,
        ProviderRegistry({adapter.code: adapter}),
        CredentialCipher("component-test-secret"),
        retry_policy=no_wait_retry,
        config=config,
    )


class TestCreateShipment:

    async def test_books_with_provider(self, no_wait_retry):
        adapter = scripted_adapter("courier")
        service = make_service(adapter, no_wait_retry)

        created = await service.create_shipment(make_request())

        assert created.tracking_number == "AWB-BB-1001-SH1"
        assert created.status == ShipmentStatus.CREATED
        # 2 x clothing default 0.3 kg
        assert adapter.calls[0]["weight"] == 0.6
        assert adapter.closed == 1

    async def test_retries_transient_failures(self, no_wait_retry):
        adapter = scripted_adapter("courier", shipment_failures=[retryable_failure(), retryable_failure()])
        service = make_service(adapter, no_wait_retry)

        created = await service.create_shipment(make_request())

        assert created.tracking_number == "AWB-BB-1001-SH1"
        assert len([c for c in adapter.calls if c["method"] == "create_shipment"]) == 3

    async def test_gives_up_after_max_retries(self, no_wait_retry):
        adapter = scripted_adapter("courier", shipment_failures=[retryable_failure() for _ in range(5)])
        service = make_service(adapter, no_wait_retry)

        with pytest.raises(ProviderError):
            await service.create_shipment(make_request())
        assert len(adapter.calls) == no_wait_retry.max_retries + 1

    async def test_non_retryable_failure_surfaces_at_once(self, no_wait_retry):
        rejected = ProviderError("Invalid pincode", retryable=False)
        adapter = scripted_adapter("courier", shipment_failures=[rejected])
        service = make_service(adapter, no_wait_retry)

        with pytest.raises(ProviderError, match="Invalid pincode"):
            await service.create_shipment(make_request())
        assert len(adapter.calls) == 1

    async def test_disabled_provider(self, no_wait_retry):
        service = make_service(scripted_adapter("courier"), no_wait_retry, enabled=False)
        with pytest.raises(ProviderDisabledError):
            await service.create_shipment(make_request())

    async def test_unknown_provider(self, no_wait_retry):
        service = make_service(scripted_adapter("courier"), no_wait_retry)
        with pytest.raises(ProviderNotFoundError):
            await service.create_shipment(make_request(provider_id="prov_gone"))

    async def test_provider_required(self, no_wait_retry):
        service = make_service(scripted_adapter("courier"), no_wait_retry)
        with pytest.raises(ValidationError, match="provider_id"):
            await service.create_shipment(make_request(provider_id=None))

    async def test_box_limit_from_config(self, no_wait_retry):
        box = Dimensions(length=80, width=10, height=10)
        strict = make_service(scripted_adapter("courier"), no_wait_retry, config=ShippingConfig(max_single_edge_cm=60))
        with pytest.raises(ValidationError, match="60cm"):
            await strict.create_shipment(make_request(dimensions=box))

        relaxed = make_service(scripted_adapter("courier"), no_wait_retry)
        created = await relaxed.create_shipment(make_request(dimensions=box))
        assert created.tracking_number

    async def test_weights_from_config(self, no_wait_retry):
        adapter = scripted_adapter("courier")
        config = ShippingConfig(volumetric_divisor=4000, category_weights={"clothing": 1.0, "default": 0.5})
        service = make_service(adapter, no_wait_retry, config=config)

        await service.create_shipment(make_request(dimensions=Dimensions(length=40, width=20, height=20)))

        # actual 2 x 1.0 kg, volumetric 16000 / 4000
        assert adapter.calls[0]["weight"] == 4.0

    async def test_normalize_status(self, no_wait_retry):
        service = make_service(scripted_adapter("courier"), no_wait_retry)
        assert service.normalize_status("shiprocket", "in_transit") == ShipmentStatus.IN_TRANSIT
