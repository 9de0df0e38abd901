"""
Payment Service Protocols

Defines interfaces for dependency injection and testing.
NO import-time I/O dependencies - safe to import anywhere.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from core.errors import ConflictError, ProviderError, SignatureError

from .models import GatewayOrderStatus, PaymentGatewayOrder, PaymentVerification


# ====================
# Custom Exceptions
# ====================

class GatewayOrderConflictError(ConflictError):
    """local_order_id already has a gateway order for a different amount or currency"""
    pass


class GatewayNotConfiguredError(ProviderError):
    """Gateway credentials are missing"""

    def __init__(self, message: str = "Razorpay credentials not configured"):
        super().__init__(message, provider="razorpay", retryable=False)


class InvalidWebhookSignatureError(SignatureError):
    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


# ====================
# Repository Protocol
# ====================

@runtime_checkable
class PaymentRepositoryProtocol(Protocol):
    """Gateway orders and the verification ledger"""

    async def get_gateway_order(self, gateway_order_id: str) -> Optional[PaymentGatewayOrder]:
        ...

    async def get_gateway_order_by_local_id(self, local_order_id: str) -> Optional[PaymentGatewayOrder]:
        ...

    async def save_gateway_order(self, order: PaymentGatewayOrder) -> PaymentGatewayOrder:
        """
        Persist a gateway order

        When another order already holds ``local_order_id`` the stored row
        is returned unchanged.
        """
        ...

    async def update_gateway_order_status(self, gateway_order_id: str, status: GatewayOrderStatus) -> None:
        ...

    async def get_verification(self, gateway_order_id: str, payment_id: str) -> Optional[PaymentVerification]:
        ...

    async def record_verification(self, verification: PaymentVerification) -> bool:
        """Insert a ledger entry. Returns False if the pair was already recorded."""
        ...


# ====================
# Collaborators
# ====================

@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Remote payment gateway"""

    key_id: str

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Returns the gateway's order object; raises ProviderError on failure"""
        ...


@runtime_checkable
class OrderClientProtocol(Protocol):
    """Reaches order_service to record payment outcomes"""

    async def mark_payment_completed(self, order_id: str, payment_id: Optional[str]) -> None:
        ...

    async def mark_payment_failed(self, order_id: str, reason: Optional[str] = None) -> None:
        ...
