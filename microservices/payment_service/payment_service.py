"""
Payment Service Business Logic Layer

Creates gateway orders for checkout, verifies checkout signatures against a
once-only ledger and turns signed webhooks into order payment updates.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import PaymentConfig
from core.errors import ValidationError

from .models import (
    PAYMENT_SUCCESS_EVENTS,
    CreatePaymentOrderRequest,
    GatewayOrderStatus,
    PaymentGatewayOrder,
    PaymentVerification,
    PaymentVerificationResult,
    VerificationFailure,
    VerifyPaymentRequest,
    WebhookEvent,
    WebhookEventType,
    WebhookHandlingResult,
    WebhookVerificationResult,
)
from .protocols import (
    GatewayOrderConflictError,
    OrderClientProtocol,
    PaymentGatewayProtocol,
    PaymentRepositoryProtocol,
)
from .signatures import compute_payment_signature, compute_webhook_signature, signatures_match

logger = logging.getLogger(__name__)


def _payment_entity(payload: Dict[str, Any]) -> Dict[str, Any]:
    return ((payload or {}).get("payment") or {}).get("entity") or {}


def _order_entity(payload: Dict[str, Any]) -> Dict[str, Any]:
    return ((payload or {}).get("order") or {}).get("entity") or {}


class PaymentService:
    """
    Payment orchestration

    Args:
        repository: gateway orders and verification ledger
        gateway: remote gateway (Razorpay)
        config: keys, webhook secret and amount limits
        order_client: optional; receives payment outcomes
    """

    def __init__(
        self,
        repository: PaymentRepositoryProtocol,
        gateway: PaymentGatewayProtocol,
        config: PaymentConfig,
        order_client: Optional[OrderClientProtocol] = None,
    ):
        self.repository = repository
        self.gateway = gateway
        self.config = config
        self.order_client = order_client

    # ====================
    # Gateway orders
    # ====================

    def _validate_create_request(self, request: CreatePaymentOrderRequest) -> None:
        if request.amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if request.amount > self.config.max_amount:
            raise ValidationError("Amount exceeds maximum limit")
        if request.currency not in self.config.supported_currencies:
            raise ValidationError("Only INR currency is supported")
        if not request.local_order_id or not request.local_order_id.strip():
            raise ValidationError("Local order ID is required")

    async def create_payment_order(self, request: CreatePaymentOrderRequest) -> PaymentGatewayOrder:
        """
        Create (or return the existing) gateway order for a local order

        Raises:
            ValidationError: bad amount, currency or missing local order id
            GatewayOrderConflictError: local order already has a gateway order
                for a different amount or currency
            ProviderError: gateway call failed; nothing was stored
        """
        self._validate_create_request(request)
        local_order_id = request.local_order_id.strip()

        existing = await self.repository.get_gateway_order_by_local_id(local_order_id)
        if existing:
            self._ensure_same_order(existing, request)
            logger.info(f"Reusing gateway order {existing.gateway_order_id} for {local_order_id}")
            return existing

        customer = request.customer
        notes = {
            "localOrderId": local_order_id,
            "customerName": (customer.name if customer else None) or "",
            "customerEmail": (customer.email if customer else None) or "",
        }
        data = await self.gateway.create_order(
            amount=request.amount,
            currency=request.currency,
            receipt=local_order_id,
            notes=notes,
        )

        order = PaymentGatewayOrder(
            gateway_order_id=data["id"],
            amount=data.get("amount", request.amount),
            currency=data.get("currency", request.currency),
            local_order_id=local_order_id,
            key_id=self.gateway.key_id,
            created_at=datetime.now(timezone.utc),
        )
        saved = await self.repository.save_gateway_order(order)
        if saved.gateway_order_id != order.gateway_order_id:
            # A concurrent request for the same local order won the insert
            self._ensure_same_order(saved, request)
            logger.warning(
                f"Discarding gateway order {order.gateway_order_id}; "
                f"{local_order_id} already has {saved.gateway_order_id}"
            )
        return saved

    @staticmethod
    def _ensure_same_order(existing: PaymentGatewayOrder, request: CreatePaymentOrderRequest) -> None:
        if existing.amount != request.amount or existing.currency != request.currency:
            raise GatewayOrderConflictError(
                f"Order {existing.local_order_id} already has a payment order "
                f"for {existing.amount} {existing.currency}"
            )

    # ====================
    # Checkout verification
    # ====================

    async def verify_payment(self, request: VerifyPaymentRequest) -> PaymentVerificationResult:
        """Check the checkout signature; a repeated valid triple is not recorded twice"""
        if not request.gateway_order_id or not request.payment_id or not request.signature:
            return PaymentVerificationResult(
                is_valid=False,
                error="Missing required verification parameters",
                failure=VerificationFailure.MISSING_FIELDS,
            )

        if not self.config.razorpay_key_secret:
            logger.error("Payment verification attempted without a configured key secret")
            return PaymentVerificationResult(
                is_valid=False,
                error="Payment verification is not configured",
                failure=VerificationFailure.NOT_CONFIGURED,
            )

        expected = compute_payment_signature(
            self.config.razorpay_key_secret, request.gateway_order_id, request.payment_id
        )
        if not signatures_match(expected, request.signature):
            logger.warning(
                f"Invalid payment signature for gateway order {request.gateway_order_id} "
                f"(payment {request.payment_id})"
            )
            return PaymentVerificationResult(
                is_valid=False,
                error="Invalid payment signature",
                failure=VerificationFailure.INVALID_SIGNATURE,
            )

        gateway_order = await self.repository.get_gateway_order(request.gateway_order_id)
        local_order_id = gateway_order.local_order_id if gateway_order else None

        previous = await self.repository.get_verification(request.gateway_order_id, request.payment_id)
        if previous:
            logger.info(f"Payment {request.payment_id} already verified at {previous.verified_at.isoformat()}")
            return PaymentVerificationResult(is_valid=True, local_order_id=local_order_id)

        recorded = await self.repository.record_verification(
            PaymentVerification(
                gateway_order_id=request.gateway_order_id,
                payment_id=request.payment_id,
                signature=request.signature,
                verified_at=datetime.now(timezone.utc),
            )
        )
        if recorded:
            await self._publish_payment_verified(request.gateway_order_id, request.payment_id, local_order_id)
        return PaymentVerificationResult(is_valid=True, local_order_id=local_order_id)

    async def _publish_payment_verified(
        self,
        gateway_order_id: str,
        payment_id: str,
        local_order_id: Optional[str],
    ) -> None:
        """payment.verified: mark the gateway order and tell order_service"""
        await self.repository.update_gateway_order_status(gateway_order_id, GatewayOrderStatus.PAID)
        logger.info(f"payment.verified {gateway_order_id} / {payment_id} (order {local_order_id})")

        if not self.order_client or not local_order_id:
            return
        try:
            await self.order_client.mark_payment_completed(local_order_id, payment_id)
        except Exception as e:
            # The payment.captured webhook delivers the same outcome
            logger.error(f"Failed to notify order service for {local_order_id}: {e}")

    # ====================
    # Webhooks
    # ====================

    def verify_webhook(self, signature: Optional[str], raw_body: bytes) -> WebhookVerificationResult:
        """Authenticate a webhook body before parsing it"""
        if not signature or not raw_body:
            return WebhookVerificationResult(
                is_valid=False,
                error="Missing webhook signature or body",
                failure=VerificationFailure.MISSING_FIELDS,
            )

        if not self.config.razorpay_webhook_secret:
            logger.error("Webhook received but no webhook secret is configured")
            return WebhookVerificationResult(
                is_valid=False,
                error="Webhook verification is not configured",
                failure=VerificationFailure.NOT_CONFIGURED,
            )

        expected = compute_webhook_signature(self.config.razorpay_webhook_secret, raw_body)
        if not signatures_match(expected, signature):
            logger.warning("Rejected webhook with invalid signature")
            return WebhookVerificationResult(
                is_valid=False,
                error="Invalid webhook signature",
                failure=VerificationFailure.INVALID_SIGNATURE,
            )

        try:
            body = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            logger.warning("Webhook signature valid but body is not JSON")
            return WebhookVerificationResult(
                is_valid=False,
                error="Malformed webhook payload",
                failure=VerificationFailure.MALFORMED_PAYLOAD,
            )
        if not isinstance(body, dict) or not body.get("event"):
            return WebhookVerificationResult(
                is_valid=False,
                error="Malformed webhook payload",
                failure=VerificationFailure.MALFORMED_PAYLOAD,
            )

        payload = body.get("payload") or {}
        payment = _payment_entity(payload)
        order = _order_entity(payload)
        notes = payment.get("notes") or order.get("notes") or {}

        event = WebhookEvent(
            event_type=body["event"],
            payload=payload,
            local_order_id=notes.get("localOrderId") or notes.get("orderId") or order.get("receipt"),
            gateway_order_id=payment.get("order_id") or order.get("id"),
            payment_id=payment.get("id"),
        )
        return WebhookVerificationResult(is_valid=True, event=event)

    async def handle_webhook_event(self, event: WebhookEvent) -> WebhookHandlingResult:
        """
        Route a verified event to order_service

        Raises:
            ProviderError: order_service could not be reached (the gateway
                will redeliver on a non-2xx response)
        """
        local_order_id = event.local_order_id
        if not local_order_id and event.gateway_order_id:
            gateway_order = await self.repository.get_gateway_order(event.gateway_order_id)
            local_order_id = gateway_order.local_order_id if gateway_order else None

        result = WebhookHandlingResult(event=event.event_type, local_order_id=local_order_id)

        is_success = event.event_type in PAYMENT_SUCCESS_EVENTS
        is_failure = event.event_type == WebhookEventType.PAYMENT_FAILED.value
        if not is_success and not is_failure:
            logger.info(f"Unhandled webhook event type: {event.event_type}")
            return result

        if not local_order_id:
            logger.warning(f"Webhook {event.event_type} has no resolvable local order id")
            return result

        if event.gateway_order_id:
            status = GatewayOrderStatus.PAID if is_success else GatewayOrderStatus.FAILED
            await self.repository.update_gateway_order_status(event.gateway_order_id, status)

        if self.order_client:
            if is_success:
                await self.order_client.mark_payment_completed(local_order_id, event.payment_id)
                logger.info(f"Order {local_order_id} marked as paid")
            else:
                reason = _payment_entity(event.payload).get("error_description")
                await self.order_client.mark_payment_failed(local_order_id, reason)
                logger.info(f"Order {local_order_id} marked as failed")

        result.handled = True
        return result
