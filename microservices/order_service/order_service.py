"""
Order Service - Business logic layer for order operations

Order lifecycle, payment outcomes, seller-by-seller fulfillment and
purchase confirmations.
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from core.config import ShippingConfig
from core.errors import AuthorizationError, CommerceError, ConflictError, NotFoundError, ValidationError
from core.retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_async

from .cart import billable_weight, cart_subtotal, group_items_by_seller
from .models import (
    CartItem,
    FulfillmentFailure,
    FulfillmentResult,
    FulfillmentState,
    Order,
    OrderCreateRequest,
    OrderFilter,
    OrderStatus,
    OrderTotals,
    OrderUpdateRequest,
    PaymentMethod,
    PaymentStatus,
    Shipment,
    ShipmentState,
    TrackingUpdateRequest,
)
from .protocols import (
    InvalidOrderStateError,
    NoShippingOptionsError,
    NotificationQueueProtocol,
    OrderAccessDeniedError,
    OrderImmutableError,
    OrderNotFoundError,
    OrderRepositoryProtocol,
    ProviderUnavailableError,
    ShippingClientProtocol,
)
from .state_machine import FULFILLABLE_STATUSES, fulfillment_state, validate_transition

logger = logging.getLogger(__name__)

ORDER_CODE_PREFIX = "BB-"
FIRST_ORDER_NUMBER = 1001
_ORDER_CODE_PATTERN = re.compile(r"BB-(\d+)")

# A booking claim older than this belongs to a run that died mid-call
BOOKING_LEASE = timedelta(minutes=10)

# Normalized carrier status -> shipment state; "pending"/"created" keep a booked shipment confirmed
_CARRIER_STATUS_TO_SHIPMENT = {
    "pending": ShipmentState.CONFIRMED,
    "created": ShipmentState.CONFIRMED,
    "picked_up": ShipmentState.PICKED_UP,
    "in_transit": ShipmentState.IN_TRANSIT,
    "out_for_delivery": ShipmentState.OUT_FOR_DELIVERY,
    "delivered": ShipmentState.DELIVERED,
    "cancelled": ShipmentState.CANCELLED,
    "returned": ShipmentState.RETURNED,
    "failed": ShipmentState.FAILED,
}


def next_order_code(latest_code: Optional[str]) -> str:
    """BB-1001, BB-1002, ... following the latest code on record"""
    number = FIRST_ORDER_NUMBER
    if latest_code:
        match = _ORDER_CODE_PATTERN.match(latest_code)
        if match:
            number = int(match.group(1)) + 1
    return f"{ORDER_CODE_PREFIX}{number}"


class OrderService:
    """
    Order business logic

    Args:
        repository: orders and shipments
        shipping_client: shipping_service (re-quotes and bookings)
        notification_queue: optional; purchase confirmations
        retry_policy: retry for booking calls
        shipping_config: default origin pincode
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        shipping_client: Optional[ShippingClientProtocol] = None,
        notification_queue: Optional[NotificationQueueProtocol] = None,
        retry_policy: Optional[RetryPolicy] = None,
        shipping_config: Optional[ShippingConfig] = None,
    ):
        self.repository = repository
        self.shipping_client = shipping_client
        self.notification_queue = notification_queue
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self.shipping_config = shipping_config or ShippingConfig()

    # ==================== Queries ====================

    async def get_order(self, order_id: str, user_id: Optional[str] = None) -> Order:
        """
        Fetch an order, checking ownership when ``user_id`` is given

        Guest orders (no user id) are readable by anyone holding the id.
        """
        order = await self.repository.get_order(order_id)
        if not order:
            raise OrderNotFoundError()
        if user_id and order.user_id and order.user_id != user_id:
            raise OrderAccessDeniedError()
        return order

    async def list_orders(self, filters: OrderFilter) -> List[Order]:
        return await self.repository.list_orders(filters)

    async def get_shipments(self, order_id: str, user_id: Optional[str] = None) -> List[Shipment]:
        order = await self.get_order(order_id, user_id)
        return await self.repository.list_shipments(order.id)

    async def generate_order_code(self) -> str:
        return next_order_code(await self.repository.get_latest_order_code())

    # ==================== Commands ====================

    async def create_order(self, request: OrderCreateRequest, user_id: Optional[str] = None) -> Order:
        """Place a pending, unpaid order"""
        subtotal = cart_subtotal(request.items)
        if abs(subtotal - request.totals.subtotal) > 0.01:
            raise ValidationError(f"Subtotal {request.totals.subtotal} does not match items ({subtotal})")

        now = datetime.now(timezone.utc)
        for _ in range(3):
            order = Order(
                id=f"ord_{uuid.uuid4().hex[:16]}",
                code=await self.generate_order_code(),
                user_id=user_id,
                items=request.items,
                totals=request.totals,
                address=request.address,
                payment_method=request.payment_method,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            created = await self.repository.create_order(order)
            if created:
                logger.info(f"Order {created.code} created ({len(created.items)} items)")
                return created
            logger.warning(f"Order code {order.code} taken, generating another")

        raise InvalidOrderStateError("Could not allocate an order code, please retry")

    async def update_order(
        self,
        order_id: str,
        update: OrderUpdateRequest,
        user_id: Optional[str] = None,
    ) -> Order:
        """
        Apply a partial update

        ``user_id`` is None for trusted callers. Only they may set the payment
        fields; customers pay through payment_service.

        Raises:
            AuthorizationError: a customer tried to set payment fields (403)
            OrderImmutableError: items or address edited on a paid order
        """
        if user_id is not None and (update.payment_status is not None or update.payment_id is not None):
            logger.warning(f"User {user_id} tried to set payment fields on order {order_id}")
            raise AuthorizationError("Payment status is set by the payment service", forbidden=True)

        order = await self.get_order(order_id, user_id)

        if (update.items is not None or update.address is not None) and order.payment_status == PaymentStatus.PAID:
            raise OrderImmutableError()

        changes = update.model_dump(exclude_unset=True, exclude_none=True, exclude={"payment_status", "payment_id"})
        if update.items is not None:
            if not update.items:
                raise ValidationError("Order must contain at least one item")
            changes["items"] = update.items
            if update.totals is None:
                changes["totals"] = OrderTotals(
                    subtotal=cart_subtotal(update.items),
                    discount=order.totals.discount,
                    shipping_total=order.totals.shipping_total,
                )
        if update.totals is not None:
            changes["totals"] = update.totals
        if update.address is not None:
            changes["address"] = update.address

        updated = order
        becomes_paid = update.payment_status == PaymentStatus.PAID and order.payment_status != PaymentStatus.PAID
        if becomes_paid:
            paid = await self.repository.mark_paid(order.id, update.payment_id)
            if paid is None:
                # Lost the race to another payment notification
                becomes_paid = False
            else:
                updated = paid
        elif update.payment_status is not None:
            changes["payment_status"] = update.payment_status
            if update.payment_id is not None:
                changes["payment_id"] = update.payment_id

        if changes:
            updated = await self.repository.update_order(order.id, changes) or updated

        if becomes_paid:
            self._queue_purchase_confirmation(updated)
        return updated

    async def mark_payment_completed(self, order_id: str, payment_id: Optional[str]) -> Order:
        """
        Record a successful payment

        A second notification for an already paid order is a no-op: the
        order is returned unchanged and no confirmation is sent again.
        """
        order = await self.get_order(order_id)
        if order.payment_status == PaymentStatus.PAID:
            logger.info(f"Order {order.code} already paid, ignoring duplicate payment notification")
            return order
        if order.status == OrderStatus.CANCELLED:
            raise InvalidOrderStateError(f"Order {order.code} is cancelled")

        paid = await self.repository.mark_paid(order.id, payment_id)
        if paid is None:
            return await self.get_order(order_id)

        logger.info(f"✅ Order {paid.code} paid (payment {payment_id})")
        self._queue_purchase_confirmation(paid)
        return paid

    async def mark_payment_failed(self, order_id: str, reason: Optional[str] = None) -> Order:
        order = await self.get_order(order_id)
        if order.payment_status == PaymentStatus.PAID:
            logger.warning(f"Ignoring payment failure for paid order {order.code}")
            return order

        updated = await self.repository.update_order(order.id, {"payment_status": PaymentStatus.FAILED})
        logger.info(f"Order {order.code} payment failed: {reason or 'no reason given'}")
        return updated or order

    async def transition(self, order_id: str, target: OrderStatus, actor_id: str) -> Order:
        """Admin status change along the transition table"""
        order = await self.get_order(order_id)
        validate_transition(order.status, target)

        if (
            order.status == OrderStatus.PENDING
            and target == OrderStatus.PROCESSING
            and order.payment_method == PaymentMethod.PREPAID
            and order.payment_status != PaymentStatus.PAID
        ):
            raise InvalidOrderStateError(f"Order {order.code} is not paid")

        updated = await self.repository.update_order(order.id, {"status": target})
        logger.info(f"Order {order.code}: {order.status.value} -> {target.value} by {actor_id}")
        return updated

    async def cancel_order(
        self,
        order_id: str,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Order:
        order = await self.get_order(order_id, user_id)
        validate_transition(order.status, OrderStatus.CANCELLED)

        changes = {"status": OrderStatus.CANCELLED}
        if reason:
            changes["notes"] = f"{order.notes}\nCancelled: {reason}" if order.notes else f"Cancelled: {reason}"
        updated = await self.repository.update_order(order.id, changes)
        logger.info(f"Order {order.code} cancelled: {reason or 'no reason given'}")
        return updated

    def _queue_purchase_confirmation(self, order: Order) -> None:
        email = order.address.email
        if not email:
            logger.info(f"Order {order.code} has no email address, skipping confirmation")
            return
        if not self.notification_queue:
            return
        self.notification_queue.enqueue_purchase_confirmation(order, email)

    # ==================== Fulfillment ====================

    async def fulfill_order(self, order_id: str) -> FulfillmentResult:
        """
        Book one shipment per seller group

        A group whose shipment already has an AWB is skipped, so running this
        again only books what is missing. Each group is claimed before the
        carrier call: concurrent runs never book the same group twice, and
        a group claimed by another run is reported as in progress. A failing
        group never rolls back the others.

        Raises:
            OrderNotFoundError: unknown order
            InvalidOrderStateError: order unpaid, or not processing/packed
        """
        order = await self.get_order(order_id)
        if order.payment_status != PaymentStatus.PAID:
            raise InvalidOrderStateError(
                f"Cannot fulfill order {order.code}: Payment not confirmed (status: {order.payment_status.value})"
            )
        if order.status not in FULFILLABLE_STATUSES:
            raise InvalidOrderStateError(f"Cannot fulfill order {order.code} in status {order.status.value}")

        existing = {s.seller_id: s for s in await self.repository.list_shipments(order.id)}

        result = FulfillmentResult(order_id=order.id, state=FulfillmentState.FULFILLED)
        for index, (seller_id, items) in enumerate(group_items_by_seller(order.items).items(), start=1):
            shipment = existing.get(seller_id)
            if shipment is None:
                shipment = await self._shipment_for_group(order, seller_id, items, index)
            if shipment.tracking_number:
                result.skipped.append(shipment.code)
                continue

            stale_before = datetime.now(timezone.utc) - BOOKING_LEASE
            claimed = await self.repository.claim_shipment(shipment.id, stale_before)
            if claimed is None:
                current = await self._find_shipment(order.id, seller_id) or shipment
                if current.status == ShipmentState.BOOKING and not current.tracking_number:
                    logger.info(f"{current.code}: booking already in progress elsewhere")
                    result.in_progress.append(current.code)
                else:
                    result.skipped.append(current.code)
                continue

            try:
                await self._book_shipment(order, claimed)
                result.successful.append(claimed.code)
            except CommerceError as e:
                logger.error(f"Fulfillment of {claimed.code} failed: {e.message}")
                await self.repository.update_shipment(
                    claimed.id,
                    {
                        "status": ShipmentState.FAILED,
                        "error": e.message,
                        "meta": {
                            **claimed.meta,
                            "fulfillmentError": e.message,
                            "requiresManualIntervention": True,
                            "failedAt": datetime.now(timezone.utc).isoformat(),
                        },
                    },
                )
                result.failed.append(
                    FulfillmentFailure(shipment_code=claimed.code, seller_id=claimed.seller_id, error=e.message)
                )

        # State comes from the stored rows; the last run to finish records it
        shipments = await self.repository.list_shipments(order.id)
        if any(s.status == ShipmentState.BOOKING and not s.tracking_number for s in shipments):
            result.state = FulfillmentState.IN_PROGRESS
        else:
            booked = sum(1 for s in shipments if s.tracking_number)
            result.state = fulfillment_state(booked, len(shipments) - booked)
            await self.repository.update_order(order.id, {"fulfillment_state": result.state})

        logger.info(
            f"Order {order.code} fulfillment {result.state.value}: "
            f"{len(result.successful)} booked, {len(result.skipped)} skipped, "
            f"{len(result.in_progress)} in progress, {len(result.failed)} failed"
        )
        return result

    async def _find_shipment(self, order_id: str, seller_id: str) -> Optional[Shipment]:
        for shipment in await self.repository.list_shipments(order_id):
            if shipment.seller_id == seller_id:
                return shipment
        return None

    async def _shipment_for_group(self, order: Order, seller_id: str, items: List[CartItem], index: int) -> Shipment:
        created = await self.repository.create_shipment(self._new_shipment(order, seller_id, items, index))
        if created is not None:
            return created
        # A concurrent run inserted this group first
        winner = await self._find_shipment(order.id, seller_id)
        if winner is None:
            raise ConflictError(f"Shipment for seller {seller_id} on {order.code} could not be created")
        return winner

    def _new_shipment(self, order: Order, seller_id: str, items: List[CartItem], index: int) -> Shipment:
        first = items[0]
        return Shipment(
            id=f"shp_{uuid.uuid4().hex[:16]}",
            order_id=order.id,
            code=f"{order.code}-SH{index}",
            items=items,
            seller_id=seller_id,
            origin_pincode=first.origin_pincode or self.shipping_config.origin_pincode,
            package_weight=billable_weight(items, self.shipping_config.category_weights),
            provider_id=next((i.shipping_provider_id for i in items if i.shipping_provider_id), None),
            courier_code=next((i.courier_code for i in items if i.courier_code), None),
            status=ShipmentState.PENDING,
        )

    async def _requote(self, order: Order, shipment: Shipment) -> Tuple[str, Optional[str]]:
        rate = await self.shipping_client.get_default_rate(
            shipment.origin_pincode,
            order.address.pincode,
            shipment.package_weight or billable_weight(shipment.items, self.shipping_config.category_weights),
            cod=order.payment_method == PaymentMethod.COD,
        )
        if rate is None:
            raise NoShippingOptionsError(f"No shipping options available for {order.address.pincode}")
        logger.info(f"{shipment.code}: re-quoted, using {rate.provider_name or rate.provider_id}")
        return rate.provider_id, rate.courier_code

    def _shipment_payload(self, order: Order, shipment: Shipment, provider_id: str, courier_code: Optional[str]):
        return {
            "order_id": order.id,
            "order_code": order.code,
            "shipment_code": shipment.code,
            "provider_id": provider_id,
            "courier_code": courier_code,
            "items": [
                {
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": item.unit_price,
                    "weight": item.weight,
                    "category": item.category,
                }
                for item in shipment.items
            ],
            "origin": {"pincode": shipment.origin_pincode or self.shipping_config.origin_pincode},
            "destination": order.address.model_dump(),
            "payment_method": order.payment_method.value,
            "order_total": order.totals.grand_total,
        }

    async def _book_shipment(self, order: Order, shipment: Shipment) -> None:
        if self.shipping_client is None:
            raise InvalidOrderStateError("Shipping service is not configured")

        provider_id, courier_code = shipment.provider_id, shipment.courier_code
        if not provider_id:
            provider_id, courier_code = await self._requote(order, shipment)

        async def book(provider: str, courier: Optional[str]):
            payload = self._shipment_payload(order, shipment, provider, courier)
            return await retry_async(
                lambda: self.shipping_client.create_shipment(payload),
                operation=f"Book {shipment.code}",
                policy=self.retry_policy,
            )

        try:
            booking = await book(provider_id, courier_code)
        except ProviderUnavailableError as e:
            # Provider picked at checkout was disabled since; quote again
            logger.warning(f"{shipment.code}: provider {provider_id} unavailable ({e.message}), re-quoting")
            provider_id, courier_code = await self._requote(order, shipment)
            booking = await book(provider_id, courier_code)

        await self.repository.update_shipment(
            shipment.id,
            {
                "status": ShipmentState.CONFIRMED,
                "provider_id": booking.provider_id,
                "courier_code": courier_code,
                "tracking_number": booking.tracking_number,
                "courier_name": booking.courier_name,
                "tracking_url": booking.tracking_url,
                "shipping_cost": booking.shipping_cost,
                "package_weight": booking.package_weight or shipment.package_weight,
                "estimated_delivery": booking.estimated_delivery,
                "error": None,
            },
        )
        logger.info(f"{shipment.code} booked: AWB {booking.tracking_number}")

    # ==================== Tracking ====================

    async def update_shipment_tracking(self, request: TrackingUpdateRequest) -> Shipment:
        """
        Apply a carrier status update to a booked shipment

        When every shipment of a shipped order is delivered, the order moves
        to delivered.
        """
        shipment = await self.repository.get_shipment_by_tracking(request.tracking_number)
        if not shipment:
            raise NotFoundError("Shipment not found")

        normalized = await self.shipping_client.normalize_status(request.provider_code, request.provider_status)
        state = _CARRIER_STATUS_TO_SHIPMENT.get(normalized, ShipmentState.IN_TRANSIT)

        changes = {"status": state}
        if request.estimated_delivery:
            changes["estimated_delivery"] = request.estimated_delivery
        updated = await self.repository.update_shipment(shipment.id, changes) or shipment
        logger.info(f"Shipment {shipment.code}: {request.provider_status!r} -> {state.value}")

        if state == ShipmentState.DELIVERED:
            order = await self.repository.get_order(shipment.order_id)
            shipments = await self.repository.list_shipments(shipment.order_id)
            if (
                order
                and order.status == OrderStatus.SHIPPED
                and all(s.status == ShipmentState.DELIVERED for s in shipments)
            ):
                await self.repository.update_order(order.id, {"status": OrderStatus.DELIVERED})
                logger.info(f"Order {order.code} delivered")
        return updated
