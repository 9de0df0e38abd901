"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from core.errors import AuthorizationError, ConflictError, NotFoundError, ProviderError

from .models import (
    Order,
    OrderFilter,
    QuotedRate,
    Shipment,
    ShipmentBooking,
)


# ============================================================================
# Custom Exceptions
# ============================================================================

class OrderNotFoundError(NotFoundError):
    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class OrderAccessDeniedError(AuthorizationError):
    def __init__(self, message: str = "Unauthorized: Order does not belong to user"):
        super().__init__(message, forbidden=True)


class InvalidOrderStateError(ConflictError):
    """Operation not allowed in the order's current status"""
    pass


class OrderImmutableError(ConflictError):
    """Items or address edited after payment"""

    def __init__(self, message: str = "Items and address cannot change after payment"):
        super().__init__(message)


class ProviderUnavailableError(ProviderError):
    """The provider picked at checkout is unknown or no longer enabled"""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider, retryable=False)


class NoShippingOptionsError(ProviderError):
    def __init__(self, message: str):
        super().__init__(message, retryable=False)


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    Used for dependency injection to enable testing.
    """

    async def create_order(self, order: Order) -> Optional[Order]:
        """Insert an order. Returns None when its code is already taken."""
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        ...

    async def get_latest_order_code(self) -> Optional[str]:
        ...

    async def list_orders(self, filters: OrderFilter) -> List[Order]:
        ...

    async def update_order(self, order_id: str, updates: Dict[str, Any]) -> Optional[Order]:
        ...

    async def mark_paid(self, order_id: str, payment_id: Optional[str]) -> Optional[Order]:
        """
        Record payment unless the order is already paid

        Moves ``pending`` orders to ``processing`` in the same statement.
        Returns None when the order was already paid (or does not exist).
        """
        ...

    async def create_shipment(self, shipment: Shipment) -> Optional[Shipment]:
        """None if the order already has a shipment for this seller"""
        ...

    async def list_shipments(self, order_id: str) -> List[Shipment]:
        ...

    async def claim_shipment(self, shipment_id: str, stale_before: datetime) -> Optional[Shipment]:
        """Atomically move an unbooked shipment to booking; None if not claimable"""
        ...

    async def update_shipment(self, shipment_id: str, updates: Dict[str, Any]) -> Optional[Shipment]:
        ...

    async def get_shipment_by_tracking(self, tracking_number: str) -> Optional[Shipment]:
        ...


# ============================================================================
# Collaborators
# ============================================================================

@runtime_checkable
class ShippingClientProtocol(Protocol):
    """shipping_service, seen from order_service"""

    async def get_default_rate(
        self,
        from_pincode: Optional[str],
        to_pincode: str,
        weight: float,
        cod: bool = False,
    ) -> Optional[QuotedRate]:
        """Default rate for the corridor, None when nothing can serve it"""
        ...

    async def create_shipment(self, payload: Dict[str, Any]) -> ShipmentBooking:
        ...

    async def normalize_status(self, provider_code: str, provider_status: str) -> str:
        ...


@runtime_checkable
class NotificationSenderProtocol(Protocol):
    async def send_purchase_confirmation(self, order: Order, email: str) -> None:
        ...


@runtime_checkable
class NotificationQueueProtocol(Protocol):
    def enqueue_purchase_confirmation(self, order: Order, email: str) -> bool:
        """Queue without waiting. Returns False if the task was dropped."""
        ...
