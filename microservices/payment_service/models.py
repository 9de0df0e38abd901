"""
Payment Service Data Models

Gateway orders, the signature verification ledger and webhook events.
Amounts are integer minor units (paise).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class PaymentProvider(str, Enum):
    RAZORPAY = "razorpay"


class GatewayOrderStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"


class WebhookEventType(str, Enum):
    """Gateway events this service acts on"""
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_SUCCESS = "payment.success"
    ORDER_PAID = "order.paid"
    PAYMENT_FAILED = "payment.failed"


PAYMENT_SUCCESS_EVENTS = {
    WebhookEventType.PAYMENT_CAPTURED.value,
    WebhookEventType.PAYMENT_SUCCESS.value,
    WebhookEventType.ORDER_PAID.value,
}


# ====================
# Gateway orders
# ====================

class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CreatePaymentOrderRequest(BaseModel):
    """Checkout asks for a gateway order for a local order"""
    amount: int = Field(..., description="Amount in paise")
    currency: str = "INR"
    local_order_id: Optional[str] = None
    customer: Optional[CustomerInfo] = None


class PaymentGatewayOrder(BaseModel):
    """A gateway-side order. ``key_id`` is the public key the browser checkout needs."""
    gateway_order_id: str
    amount: int
    currency: str
    provider: PaymentProvider = PaymentProvider.RAZORPAY
    local_order_id: str
    key_id: str
    status: GatewayOrderStatus = GatewayOrderStatus.CREATED
    created_at: Optional[datetime] = None


# ====================
# Verification
# ====================

class VerifyPaymentRequest(BaseModel):
    gateway_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None


class VerificationFailure(str, Enum):
    """Why a checkout or webhook verification was rejected"""
    MISSING_FIELDS = "missing_fields"
    NOT_CONFIGURED = "not_configured"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_PAYLOAD = "malformed_payload"


class PaymentVerificationResult(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    failure: Optional[VerificationFailure] = None
    local_order_id: Optional[str] = None


class PaymentVerification(BaseModel):
    """Ledger entry: one per verified (gateway order, payment) pair"""
    gateway_order_id: str
    payment_id: str
    signature: str
    verified_at: datetime


# ====================
# Webhooks
# ====================

class WebhookEvent(BaseModel):
    provider: PaymentProvider = PaymentProvider.RAZORPAY
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    local_order_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    payment_id: Optional[str] = None


class WebhookVerificationResult(BaseModel):
    is_valid: bool
    event: Optional[WebhookEvent] = None
    error: Optional[str] = None
    failure: Optional[VerificationFailure] = None


class WebhookHandlingResult(BaseModel):
    received: bool = True
    event: str
    handled: bool = False
    local_order_id: Optional[str] = None
