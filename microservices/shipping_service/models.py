"""
Shipping Service Data Models

Pydantic models for rate quotes, provider accounts and shipment creation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ShippingMode(str, Enum):
    SURFACE = "surface"
    AIR = "air"


class RateStrategy(str, Enum):
    """How the default rate is picked from a quote"""
    CHEAPEST = "cheapest"
    FASTEST = "fastest"
    BALANCED = "balanced"
    PRIORITY = "priority"
    SPECIFIC = "specific"


class ConnectionType(str, Enum):
    """Credential shape a provider account expects"""
    EMAIL_PASSWORD = "email_password"
    API_KEY = "api_key"
    OAUTH = "oauth"


class ShipmentStatus(str, Enum):
    """Carrier-side shipment status, normalized across providers"""
    PENDING = "pending"
    CREATED = "created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    FAILED = "failed"


class AdminAction(str, Enum):
    PROVIDER_CONNECTED = "PROVIDER_CONNECTED"
    PROVIDER_CONNECTION_FAILED = "PROVIDER_CONNECTION_FAILED"
    PROVIDER_DISCONNECTED = "PROVIDER_DISCONNECTED"
    PROVIDER_TOGGLED = "PROVIDER_TOGGLED"
    PROVIDER_PRIORITY_CHANGED = "PROVIDER_PRIORITY_CHANGED"


# ==================== Package ====================

class Dimensions(BaseModel):
    """Package dimensions in centimetres"""
    length: float
    width: float
    height: float


class DimensionValidation(BaseModel):
    valid: bool
    constraint: Optional[str] = None
    error: Optional[str] = None


class PackageItem(BaseModel):
    """Line item as far as weighing is concerned"""
    product_id: Optional[str] = None
    name: Optional[str] = None
    quantity: int = Field(default=1, ge=0)
    price: float = 0.0
    weight: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None


# ==================== Providers ====================

class ShippingProvider(BaseModel):
    """Provider account as stored. ``encrypted_credentials`` never leaves the service."""
    id: str
    code: str
    name: str
    is_enabled: bool = False
    priority: int = 0
    connection_type: ConnectionType = ConnectionType.EMAIL_PASSWORD
    encrypted_credentials: Optional[str] = None
    connected_at: Optional[datetime] = None
    connected_by: Optional[str] = None
    auth_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        return bool(self.encrypted_credentials)


class ProviderView(BaseModel):
    """Provider as returned to admin callers"""
    id: str
    code: str
    name: str
    is_enabled: bool
    is_connected: bool
    priority: int
    connection_type: ConnectionType
    connected_at: Optional[datetime] = None
    connected_by: Optional[str] = None
    auth_error: Optional[str] = None

    @classmethod
    def from_provider(cls, provider: ShippingProvider) -> "ProviderView":
        return cls(
            id=provider.id,
            code=provider.code,
            name=provider.name,
            is_enabled=provider.is_enabled,
            is_connected=provider.is_connected,
            priority=provider.priority,
            connection_type=provider.connection_type,
            connected_at=provider.connected_at,
            connected_by=provider.connected_by,
            auth_error=provider.auth_error,
        )


class ProviderFilter(BaseModel):
    """Typed provider query, validated before it reaches SQL"""
    is_enabled: Optional[bool] = None
    code: Optional[str] = Field(default=None, pattern=r"^[a-z0-9_]+$")
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class ProviderCredentials(BaseModel):
    """Connect payload. Which fields are required depends on ``type``."""
    type: ConnectionType
    email: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None
    access_token: Optional[str] = None


class ProviderAuthResult(BaseModel):
    """What a provider returns after authenticating an account"""
    success: bool
    token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    account_info: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class ConnectionResult(BaseModel):
    success: bool
    provider: Optional[ProviderView] = None
    error: Optional[str] = None


class ToggleProviderRequest(BaseModel):
    enabled: bool


class PriorityRequest(BaseModel):
    priority: int = Field(..., ge=0, le=1000)


class AdminLogEntry(BaseModel):
    admin_id: str
    action: AdminAction
    resource: str = "ShippingProvider"
    resource_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


# ==================== Rates ====================

class ShippingRate(BaseModel):
    """One quoted option. Computed per request, never persisted."""
    provider_id: str
    provider_name: str
    courier_name: Optional[str] = None
    courier_code: Optional[str] = None
    mode: ShippingMode = ShippingMode.SURFACE
    cost: float = Field(..., ge=0)
    estimated_days: int = Field(..., ge=0)
    serviceable: bool = True
    available: bool = True
    recommended: bool = False
    cod_available: bool = False


class RateQuote(BaseModel):
    """Adapter answer for one provider"""
    serviceable: bool
    rates: List[ShippingRate] = Field(default_factory=list)
    recommended_courier_code: Optional[str] = None


class RateQuoteRequest(BaseModel):
    from_pincode: Optional[str] = None
    to_pincode: str
    weight: float
    cod: bool = False
    strategy: Optional[RateStrategy] = None
    dimensions: Optional[Dimensions] = None


class PriceRange(BaseModel):
    min: float
    max: float


class RateQuoteMetadata(BaseModel):
    providers_queried: int = 0
    providers_responded: int = 0
    total_options: int = 0
    chargeable_weight: Optional[float] = None
    price_range: Optional[PriceRange] = None


class RateQuoteResponse(BaseModel):
    success: bool = True
    serviceable: bool
    rates: List[ShippingRate] = Field(default_factory=list)
    default_rate: Optional[ShippingRate] = None
    from_pincode: str
    to_pincode: str
    metadata: RateQuoteMetadata = Field(default_factory=RateQuoteMetadata)


class SelectionCriteria(BaseModel):
    strategy: RateStrategy = RateStrategy.PRIORITY
    specific_provider_id: Optional[str] = None
    max_cost: Optional[float] = None
    max_days: Optional[int] = None
    cost_weight: float = 0.5
    speed_weight: float = 0.5


class SelectionResult(BaseModel):
    selected_rate: ShippingRate
    reason: str
    alternative_rates: List[ShippingRate] = Field(default_factory=list)


# ==================== Shipments ====================

class Address(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: str
    country: str = "India"


class CreateShipmentRequest(BaseModel):
    """Internal request from order_service for one seller group"""
    order_id: str
    order_code: str
    shipment_code: str
    provider_id: Optional[str] = None
    courier_code: Optional[str] = None
    items: List[PackageItem]
    origin: Address
    destination: Address
    payment_method: str = "prepaid"
    order_total: float = 0.0
    dimensions: Optional[Dimensions] = None

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        if not v:
            raise ValueError('Shipment must contain at least one item')
        return v


class ShipmentCreated(BaseModel):
    """Tracking data returned by a provider"""
    provider_id: str
    tracking_number: str
    courier_name: Optional[str] = None
    tracking_url: Optional[str] = None
    shipping_cost: float = 0.0
    package_weight: float = 0.0
    estimated_delivery: Optional[datetime] = None
    status: ShipmentStatus = ShipmentStatus.CREATED
    provider_shipment_id: Optional[str] = None


class TrackingStatusRequest(BaseModel):
    provider_code: str
    provider_status: str
