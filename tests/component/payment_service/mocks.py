"""
Payment Service Mocks

In-memory implementations of the protocols in protocols.py.
"""

from typing import Any, Dict, List, Optional, Tuple

from microservices.payment_service.models import (
    GatewayOrderStatus,
    PaymentGatewayOrder,
    PaymentVerification,
)


class MockPaymentRepository:
    """Mock implementation of PaymentRepositoryProtocol"""

    def __init__(self):
        self.gateway_orders: Dict[str, PaymentGatewayOrder] = {}
        self.verifications: Dict[Tuple[str, str], PaymentVerification] = {}

        # Call tracking for verification
        self.calls: List[Dict[str, Any]] = []

    def _record_call(self, method: str, **kwargs):
        """Record method call for test verification"""
        self.calls.append({"method": method, "kwargs": kwargs})

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c["method"] == method)

    async def get_gateway_order(self, gateway_order_id: str) -> Optional[PaymentGatewayOrder]:
        self._record_call("get_gateway_order", gateway_order_id=gateway_order_id)
        return self.gateway_orders.get(gateway_order_id)

    async def get_gateway_order_by_local_id(self, local_order_id: str) -> Optional[PaymentGatewayOrder]:
        self._record_call("get_gateway_order_by_local_id", local_order_id=local_order_id)
        for order in self.gateway_orders.values():
            if order.local_order_id == local_order_id:
                return order
        return None

    async def save_gateway_order(self, order: PaymentGatewayOrder) -> PaymentGatewayOrder:
        self._record_call("save_gateway_order", order=order)
        for existing in self.gateway_orders.values():
            if existing.local_order_id == order.local_order_id:
                return existing
        self.gateway_orders[order.gateway_order_id] = order
        return order

    async def update_gateway_order_status(self, gateway_order_id: str, status: GatewayOrderStatus) -> None:
        self._record_call("update_gateway_order_status", gateway_order_id=gateway_order_id, status=status)
        order = self.gateway_orders.get(gateway_order_id)
        if order:
            self.gateway_orders[gateway_order_id] = order.model_copy(update={"status": status})

    async def get_verification(self, gateway_order_id: str, payment_id: str) -> Optional[PaymentVerification]:
        self._record_call("get_verification", gateway_order_id=gateway_order_id, payment_id=payment_id)
        return self.verifications.get((gateway_order_id, payment_id))

    async def record_verification(self, verification: PaymentVerification) -> bool:
        self._record_call("record_verification", verification=verification)
        key = (verification.gateway_order_id, verification.payment_id)
        if key in self.verifications:
            return False
        self.verifications[key] = verification
        return True


class MockPaymentGateway:
    """Mock implementation of PaymentGatewayProtocol"""

    def __init__(self, key_id: str = "rzp_test_key", error: Optional[Exception] = None):
        self.key_id = key_id
        self.error = error
        self.orders: List[Dict[str, Any]] = []

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        order = {
            "id": f"order_{len(self.orders) + 1:04d}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.orders.append(order)
        return order


class MockOrderClient:
    """Mock implementation of OrderClientProtocol"""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.completed: List[Tuple[str, Optional[str]]] = []
        self.failed: List[Tuple[str, Optional[str]]] = []

    async def mark_payment_completed(self, order_id: str, payment_id: Optional[str]) -> None:
        if self.error is not None:
            raise self.error
        self.completed.append((order_id, payment_id))

    async def mark_payment_failed(self, order_id: str, reason: Optional[str] = None) -> None:
        if self.error is not None:
            raise self.error
        self.failed.append((order_id, reason))
