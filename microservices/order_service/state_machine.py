"""
Order status transitions

    pending -> processing -> packed -> shipped -> delivered
    pending | processing | packed -> cancelled

Delivered and cancelled are terminal.
"""

from typing import Dict, FrozenSet

from core.errors import ConflictError

from .models import FulfillmentState, OrderStatus

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PACKED, OrderStatus.CANCELLED}),
    OrderStatus.PACKED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

FULFILLABLE_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.PACKED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raises ConflictError for a move the table does not allow"""
    if not can_transition(current, target):
        raise ConflictError(f"Cannot change order status from {current.value} to {target.value}")


def is_terminal(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS.get(status)


def fulfillment_state(successful: int, failed: int) -> FulfillmentState:
    if failed == 0:
        return FulfillmentState.FULFILLED
    if successful == 0:
        return FulfillmentState.FULFILLMENT_FAILED
    return FulfillmentState.PARTIALLY_FULFILLED
