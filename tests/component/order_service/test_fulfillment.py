"""
Order Fulfillment & Tracking - Component Tests

One shipment per seller group, partial failure without rollback, rerun
of unbooked groups only, concurrent runs, booking retries, re-quotes and
carrier tracking.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from core.config import ShippingConfig
from core.errors import NotFoundError, ProviderError
from microservices.order_service.models import (
    FulfillmentState,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    QuotedRate,
    Shipment,
    ShipmentState,
    TrackingUpdateRequest,
)
from microservices.order_service.order_service import BOOKING_LEASE, OrderService
from microservices.order_service.protocols import InvalidOrderStateError
from tests.fixtures import make_cart_item, make_order

from .mocks import MockOrderRepository, MockShippingClient

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest.fixture
def repository():
    return MockOrderRepository()


def paid_order(items=None, status=OrderStatus.PROCESSING, **kwargs):
    items = items or [make_cart_item(seller_id="seller_a"), make_cart_item(seller_id="seller_b")]
    return make_order(items=items, status=status, payment_status=PaymentStatus.PAID, **kwargs)


def build(repository, shipping_client, retry_policy):
    return OrderService(repository, shipping_client, retry_policy=retry_policy, shipping_config=ShippingConfig())


class TestFulfillmentPreconditions:

    async def test_unpaid(self, repository, no_wait_retry):
        order = repository.add(make_order(status=OrderStatus.PROCESSING))
        service = build(repository, MockShippingClient(), no_wait_retry)

        with pytest.raises(InvalidOrderStateError, match="Payment not confirmed"):
            await service.fulfill_order(order.id)
        assert repository.shipments == {}

    async def test_unpaid_cod(self, repository, no_wait_retry):
        order = repository.add(make_order(status=OrderStatus.PROCESSING, payment_method=PaymentMethod.COD))
        service = build(repository, MockShippingClient(), no_wait_retry)

        with pytest.raises(InvalidOrderStateError, match="Payment not confirmed"):
            await service.fulfill_order(order.id)

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.SHIPPED, OrderStatus.CANCELLED])
    async def test_wrong_status(self, repository, no_wait_retry, status):
        order = repository.add(paid_order(status=status))
        service = build(repository, MockShippingClient(), no_wait_retry)

        with pytest.raises(InvalidOrderStateError, match=f"in status {status.value}"):
            await service.fulfill_order(order.id)


class TestFulfillment:

    async def test_one_shipment_per_seller(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient()
        service = build(repository, shipping, no_wait_retry)

        result = await service.fulfill_order(order.id)

        assert result.state == FulfillmentState.FULFILLED
        assert result.successful == ["BB-1001-SH1", "BB-1001-SH2"]
        assert result.failed == []
        shipments = repository.shipments_for(order.id)
        assert [s.seller_id for s in shipments] == ["seller_a", "seller_b"]
        assert all(s.status == ShipmentState.CONFIRMED for s in shipments)
        assert [s.tracking_number for s in shipments] == ["AWB000001", "AWB000002"]
        assert repository.orders[order.id].fulfillment_state == FulfillmentState.FULFILLED

    async def test_same_seller_shares_package(self, repository, no_wait_retry):
        items = [make_cart_item(seller_id="seller_a"), make_cart_item(seller_id="seller_a", quantity=2)]
        order = repository.add(paid_order(items=items))
        shipping = MockShippingClient()

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.successful == ["BB-1001-SH1"]
        assert len(shipping.bookings[0]["items"]) == 2

    async def test_items_without_seller_grouped_together(self, repository, no_wait_retry):
        items = [make_cart_item(seller_id=None), make_cart_item(seller_id=None)]
        order = repository.add(paid_order(items=items))

        await build(repository, MockShippingClient(), no_wait_retry).fulfill_order(order.id)

        assert [s.seller_id for s in repository.shipments_for(order.id)] == ["default"]

    async def test_checkout_provider_used_without_requote(self, repository, no_wait_retry):
        items = [make_cart_item(seller_id="seller_a", shipping_provider_id="prov_pick", courier_code="dl")]
        order = repository.add(paid_order(items=items))
        shipping = MockShippingClient()

        await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert shipping.rate_requests == []
        assert shipping.bookings[0]["provider_id"] == "prov_pick"
        assert shipping.bookings[0]["courier_code"] == "dl"

    async def test_requote_when_no_provider_chosen(self, repository, no_wait_retry):
        items = [make_cart_item(seller_id="seller_a", origin_pincode="560001")]
        order = repository.add(paid_order(items=items, payment_method=PaymentMethod.COD))
        shipping = MockShippingClient()

        await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert shipping.rate_requests[0]["from_pincode"] == "560001"
        assert shipping.rate_requests[0]["to_pincode"] == "400001"
        assert shipping.rate_requests[0]["cod"] is True
        assert shipping.bookings[0]["provider_id"] == "prov_quoted"
        assert shipping.bookings[0]["origin"] == {"pincode": "560001"}
        assert shipping.bookings[0]["payment_method"] == "cod"

    async def test_default_origin(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item()]))
        shipping = MockShippingClient()

        await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert shipping.bookings[0]["origin"] == {"pincode": "110001"}
        assert repository.shipments_for(order.id)[0].package_weight > 0

    async def test_packed_order_can_be_fulfilled(self, repository, no_wait_retry):
        order = repository.add(paid_order(status=OrderStatus.PACKED))
        result = await build(repository, MockShippingClient(), no_wait_retry).fulfill_order(order.id)
        assert result.state == FulfillmentState.FULFILLED


class TestPartialFailure:

    async def test_one_group_fails(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient(
            failures={"BB-1001-SH2": [ProviderError("Carrier rejected pincode", retryable=False)]}
        )

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.state == FulfillmentState.PARTIALLY_FULFILLED
        assert result.successful == ["BB-1001-SH1"]
        assert result.failed[0].shipment_code == "BB-1001-SH2"
        assert result.failed[0].seller_id == "seller_b"
        assert result.failed[0].error == "Carrier rejected pincode"

        first, second = repository.shipments_for(order.id)
        assert first.status == ShipmentState.CONFIRMED
        assert second.status == ShipmentState.FAILED
        assert second.error == "Carrier rejected pincode"
        assert second.meta["requiresManualIntervention"] is True
        assert second.meta["fulfillmentError"] == "Carrier rejected pincode"
        assert "failedAt" in second.meta
        assert repository.orders[order.id].fulfillment_state == FulfillmentState.PARTIALLY_FULFILLED

    async def test_rerun_retries_only_failed(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient(
            failures={"BB-1001-SH2": [ProviderError("Carrier rejected pincode", retryable=False)]}
        )
        service = build(repository, shipping, no_wait_retry)

        await service.fulfill_order(order.id)
        result = await service.fulfill_order(order.id)

        assert result.skipped == ["BB-1001-SH1"]
        assert result.successful == ["BB-1001-SH2"]
        assert result.state == FulfillmentState.FULFILLED
        assert len(repository.shipments) == 2
        assert [b["shipment_code"] for b in shipping.bookings] == ["BB-1001-SH1", "BB-1001-SH2"]
        assert repository.shipments_for(order.id)[1].error is None

    async def test_rerun_of_fulfilled_order_books_nothing(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient()
        service = build(repository, shipping, no_wait_retry)

        await service.fulfill_order(order.id)
        result = await service.fulfill_order(order.id)

        assert result.successful == []
        assert result.skipped == ["BB-1001-SH1", "BB-1001-SH2"]
        assert result.state == FulfillmentState.FULFILLED
        assert len(shipping.bookings) == 2

    async def test_all_groups_fail(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient(serviceable=False)

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.state == FulfillmentState.FULFILLMENT_FAILED
        assert [f.error for f in result.failed] == ["No shipping options available for 400001"] * 2
        assert repository.orders[order.id].fulfillment_state == FulfillmentState.FULFILLMENT_FAILED

    async def test_no_shipping_client(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item()]))
        result = await build(repository, None, no_wait_retry).fulfill_order(order.id)
        assert result.failed[0].error == "Shipping service is not configured"


class TestBookingRetries:

    async def test_transient_failures_retried(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item()]))
        shipping = MockShippingClient(
            failures={"BB-1001-SH1": [ProviderError("Carrier timeout"), ProviderError("Carrier timeout")]}
        )

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.successful == ["BB-1001-SH1"]
        assert len(shipping.attempts) == 3

    async def test_retries_exhausted(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item()]))
        shipping = MockShippingClient(failures={"BB-1001-SH1": [ProviderError("Carrier timeout")] * 5})

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.state == FulfillmentState.FULFILLMENT_FAILED
        assert len(shipping.attempts) == no_wait_retry.max_retries + 1

    async def test_permanent_failure_not_retried(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item()]))
        shipping = MockShippingClient(
            failures={"BB-1001-SH1": [ProviderError("Invalid address", retryable=False)]}
        )

        await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert len(shipping.attempts) == 1

    async def test_disabled_provider_requoted(self, repository, no_wait_retry):
        items = [make_cart_item(shipping_provider_id="prov_gone", courier_code="old")]
        order = repository.add(paid_order(items=items))
        shipping = MockShippingClient(
            unavailable_providers=["prov_gone"],
            default_rate=QuotedRate(provider_id="prov_new", courier_code="new"),
        )

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.successful == ["BB-1001-SH1"]
        assert [a["provider_id"] for a in shipping.attempts] == ["prov_gone", "prov_new"]
        shipment = repository.shipments_for(order.id)[0]
        assert shipment.provider_id == "prov_new"
        assert shipment.courier_code == "new"


def add_shipment(repository, order, index, tracking_number, status=ShipmentState.CONFIRMED):
    return repository.shipments.setdefault(
        f"shp_{index}",
        Shipment(
            id=f"shp_{index}",
            order_id=order.id,
            code=f"{order.code}-SH{index}",
            items=order.items,
            seller_id=f"seller_{index}",
            tracking_number=tracking_number,
            status=status,
        ),
    )


class TestConcurrentFulfillment:

    async def test_parallel_runs_book_each_seller_once(self, repository, no_wait_retry):
        order = repository.add(paid_order())
        shipping = MockShippingClient(delay=0.01)
        service = build(repository, shipping, no_wait_retry)

        first, second = await asyncio.gather(service.fulfill_order(order.id), service.fulfill_order(order.id))

        assert len(repository.shipments_for(order.id)) == 2
        assert sorted(b["shipment_code"] for b in shipping.bookings) == ["BB-1001-SH1", "BB-1001-SH2"]
        assert sorted(first.successful + second.successful) == ["BB-1001-SH1", "BB-1001-SH2"]
        assert FulfillmentState.FULFILLED in (first.state, second.state)
        assert all(s.status == ShipmentState.CONFIRMED for s in repository.shipments_for(order.id))
        assert repository.orders[order.id].fulfillment_state == FulfillmentState.FULFILLED

    async def test_lost_insert_uses_existing_row(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item(seller_id="seller_1")]))
        service = build(repository, MockShippingClient(), no_wait_retry)
        add_shipment(repository, order, 1, None, status=ShipmentState.PENDING)
        # Concurrent insert landed after this run listed the order's shipments
        original_list = repository.list_shipments
        lists = []

        async def list_after_first(order_id):
            lists.append(order_id)
            return [] if len(lists) == 1 else await original_list(order_id)

        repository.list_shipments = list_after_first

        result = await service.fulfill_order(order.id)

        assert result.successful == ["BB-1001-SH1"]
        assert list(repository.shipments) == ["shp_1"]

    async def test_pending_shipment_without_awb_is_booked(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item(seller_id="seller_1")]))
        add_shipment(repository, order, 1, None, status=ShipmentState.PENDING)
        shipping = MockShippingClient()

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.skipped == []
        assert result.successful == ["BB-1001-SH1"]
        assert result.state == FulfillmentState.FULFILLED
        assert repository.shipments["shp_1"].tracking_number == "AWB000001"
        assert repository.shipments["shp_1"].status == ShipmentState.CONFIRMED

    async def test_booked_shipment_is_skipped(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item(seller_id="seller_1")]))
        add_shipment(repository, order, 1, "AWB1")
        shipping = MockShippingClient()

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.skipped == ["BB-1001-SH1"]
        assert shipping.attempts == []

    async def test_fresh_claim_is_left_alone(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item(seller_id="seller_1")]))
        shipment = add_shipment(repository, order, 1, None, status=ShipmentState.BOOKING)
        repository.shipments["shp_1"] = shipment.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        shipping = MockShippingClient()

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.state == FulfillmentState.IN_PROGRESS
        assert result.in_progress == ["BB-1001-SH1"]
        assert result.successful == []
        assert shipping.attempts == []
        assert repository.orders[order.id].fulfillment_state is None

    async def test_stale_claim_is_taken_over(self, repository, no_wait_retry):
        order = repository.add(paid_order(items=[make_cart_item(seller_id="seller_1")]))
        shipment = add_shipment(repository, order, 1, None, status=ShipmentState.BOOKING)
        abandoned = datetime.now(timezone.utc) - BOOKING_LEASE - timedelta(minutes=1)
        repository.shipments["shp_1"] = shipment.model_copy(update={"updated_at": abandoned})
        shipping = MockShippingClient()

        result = await build(repository, shipping, no_wait_retry).fulfill_order(order.id)

        assert result.successful == ["BB-1001-SH1"]
        assert result.state == FulfillmentState.FULFILLED
        assert len(shipping.bookings) == 1


class TestTracking:

    @pytest.fixture
    def shipping(self):
        return MockShippingClient(statuses={
            "Delivered": "delivered",
            "Out for delivery": "out_for_delivery",
            "Manifested": "pending",
            "RTO Initiated": "returned",
        })

    @pytest.fixture
    def service(self, repository, shipping, no_wait_retry):
        return build(repository, shipping, no_wait_retry)

    async def test_status_applied(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.SHIPPED))
        add_shipment(repository, order, 1, "AWB1")

        shipment = await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB1", provider_code="delhivery", provider_status="Out for delivery")
        )

        assert shipment.status == ShipmentState.OUT_FOR_DELIVERY
        assert repository.orders[order.id].status == OrderStatus.SHIPPED

    async def test_pending_keeps_confirmed(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.SHIPPED))
        add_shipment(repository, order, 1, "AWB1")

        shipment = await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB1", provider_code="delhivery", provider_status="Manifested")
        )

        assert shipment.status == ShipmentState.CONFIRMED

    async def test_unrecognized_status_in_transit(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.SHIPPED))
        add_shipment(repository, order, 1, "AWB1")

        shipment = await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB1", provider_code="delhivery", provider_status="Bagged at hub")
        )

        assert shipment.status == ShipmentState.IN_TRANSIT

    async def test_estimated_delivery(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.SHIPPED))
        add_shipment(repository, order, 1, "AWB1")
        eta = datetime(2026, 1, 5, tzinfo=timezone.utc)

        shipment = await service.update_shipment_tracking(
            TrackingUpdateRequest(
                tracking_number="AWB1", provider_code="delhivery", provider_status="In transit", estimated_delivery=eta
            )
        )

        assert shipment.estimated_delivery == eta

    async def test_order_delivered_when_all_shipments_delivered(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.SHIPPED))
        add_shipment(repository, order, 1, "AWB1")
        add_shipment(repository, order, 2, "AWB2")

        await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB1", provider_code="delhivery", provider_status="Delivered")
        )
        assert repository.orders[order.id].status == OrderStatus.SHIPPED

        await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB2", provider_code="delhivery", provider_status="Delivered")
        )
        assert repository.orders[order.id].status == OrderStatus.DELIVERED

    async def test_unshipped_order_not_advanced(self, service, repository):
        order = repository.add(paid_order(status=OrderStatus.PACKED))
        add_shipment(repository, order, 1, "AWB1")

        await service.update_shipment_tracking(
            TrackingUpdateRequest(tracking_number="AWB1", provider_code="delhivery", provider_status="Delivered")
        )

        assert repository.orders[order.id].status == OrderStatus.PACKED

    async def test_unknown_tracking_number(self, service):
        with pytest.raises(NotFoundError, match="Shipment not found"):
            await service.update_shipment_tracking(
                TrackingUpdateRequest(tracking_number="AWB404", provider_code="delhivery", provider_status="Delivered")
            )
