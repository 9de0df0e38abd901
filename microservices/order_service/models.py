"""
Order Service Data Models

Pydantic models for orders, shipments and fulfillment results.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class OrderStatus(str, Enum):
    """Order lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    PREPAID = "prepaid"
    COD = "cod"


class FulfillmentState(str, Enum):
    """Outcome of the last fulfillment run, recorded on the order"""
    FULFILLED = "fulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLMENT_FAILED = "fulfillment_failed"
    # Another run is still booking some group; nothing recorded
    IN_PROGRESS = "in_progress"


class ShipmentState(str, Enum):
    PENDING = "pending"
    # Claimed by a fulfillment run, carrier call in flight
    BOOKING = "booking"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


# ==================== Cart & totals ====================

class CartItem(BaseModel):
    """A purchased line. ``shipping_provider_id`` is the provider picked at checkout."""
    id: str
    product_id: str
    name: str
    thumbnail: Optional[str] = None
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    seller_id: Optional[str] = None
    origin_pincode: Optional[str] = None
    shipping_provider_id: Optional[str] = None
    courier_code: Optional[str] = None

    @property
    def unit_price(self) -> float:
        return self.sale_price if self.sale_price is not None else self.price


class OrderTotals(BaseModel):
    """Money totals in rupees. ``grand_total`` is derived when omitted."""
    subtotal: float = Field(..., ge=0)
    discount: float = Field(default=0.0, ge=0)
    shipping_total: float = Field(default=0.0, ge=0)
    grand_total: Optional[float] = None

    @model_validator(mode="after")
    def check_grand_total(self):
        expected = round(self.subtotal - self.discount + self.shipping_total, 2)
        if self.grand_total is None:
            self.grand_total = expected
        elif abs(self.grand_total - expected) > 0.01:
            raise ValueError(
                f"grand_total {self.grand_total} does not equal subtotal - discount + shipping_total ({expected})"
            )
        return self


class ShippingAddress(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: str = Field(..., pattern=r"^\d{6}$")
    country: str = "India"


# ==================== Orders ====================

class Order(BaseModel):
    """Core order model"""
    id: str
    code: str
    user_id: Optional[str] = None
    items: List[CartItem]
    totals: OrderTotals
    status: OrderStatus = OrderStatus.PENDING
    address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.PREPAID
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_id: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    fulfillment_state: Optional[FulfillmentState] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Shipment(BaseModel):
    """One package per seller group"""
    id: str
    order_id: str
    code: str
    items: List[CartItem]
    seller_id: Optional[str] = None
    origin_pincode: Optional[str] = None
    shipping_cost: float = 0.0
    package_weight: Optional[float] = None
    provider_id: Optional[str] = None
    courier_code: Optional[str] = None
    tracking_number: Optional[str] = None
    courier_name: Optional[str] = None
    tracking_url: Optional[str] = None
    status: ShipmentState = ShipmentState.PENDING
    estimated_delivery: Optional[datetime] = None
    error: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ==================== Requests ====================

class OrderCreateRequest(BaseModel):
    items: List[CartItem]
    totals: OrderTotals
    address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.PREPAID
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        if not v:
            raise ValueError('Order must contain at least one item')
        return v


class OrderUpdateRequest(BaseModel):
    """Partial update. Items and address are frozen once the order is paid."""
    items: Optional[List[CartItem]] = None
    totals: Optional[OrderTotals] = None
    address: Optional[ShippingAddress] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    payment_status: Optional[PaymentStatus] = None
    payment_id: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class PaymentCompletedRequest(BaseModel):
    payment_id: Optional[str] = None


class PaymentFailedRequest(BaseModel):
    reason: Optional[str] = None


class TrackingUpdateRequest(BaseModel):
    tracking_number: str
    provider_code: str
    provider_status: str
    estimated_delivery: Optional[datetime] = None


class OrderFilter(BaseModel):
    """Typed order query, validated before it reaches SQL"""
    user_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    code: Optional[str] = Field(default=None, pattern=r"^BB-\d+$")
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


# ==================== Shipping collaborator ====================

class QuotedRate(BaseModel):
    provider_id: str
    provider_name: Optional[str] = None
    courier_code: Optional[str] = None
    courier_name: Optional[str] = None
    cost: float = 0.0
    estimated_days: Optional[int] = None


class ShipmentBooking(BaseModel):
    """What shipping_service returns after booking a package"""
    provider_id: str
    tracking_number: str
    courier_name: Optional[str] = None
    tracking_url: Optional[str] = None
    shipping_cost: float = 0.0
    package_weight: float = 0.0
    estimated_delivery: Optional[datetime] = None


# ==================== Responses ====================

class FulfillmentFailure(BaseModel):
    shipment_code: str
    seller_id: Optional[str] = None
    error: str


class FulfillmentResult(BaseModel):
    order_id: str
    successful: List[str] = Field(default_factory=list)
    failed: List[FulfillmentFailure] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    # Held by another run when this one reached them
    in_progress: List[str] = Field(default_factory=list)
    state: FulfillmentState


class OrderListResponse(BaseModel):
    orders: List[Order]
    count: int
    limit: int
    offset: int
