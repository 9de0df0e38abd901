"""
Order Service - Status Transition Unit Tests
"""

import pytest

from core.errors import ConflictError
from microservices.order_service.models import FulfillmentState, OrderStatus
from microservices.order_service.state_machine import (
    can_transition,
    fulfillment_state,
    is_terminal,
    validate_transition,
)

pytestmark = [pytest.mark.unit]

S = OrderStatus


class TestTransitions:

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.PENDING, S.PROCESSING),
            (S.PROCESSING, S.PACKED),
            (S.PACKED, S.SHIPPED),
            (S.SHIPPED, S.DELIVERED),
            (S.PENDING, S.CANCELLED),
            (S.PROCESSING, S.CANCELLED),
            (S.PACKED, S.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        validate_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.PENDING, S.SHIPPED),
            (S.PROCESSING, S.PENDING),
            (S.SHIPPED, S.CANCELLED),
            (S.DELIVERED, S.CANCELLED),
            (S.CANCELLED, S.PROCESSING),
            (S.PACKED, S.PACKED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(ConflictError, match=f"from {current.value} to {target.value}"):
            validate_transition(current, target)

    def test_terminal_statuses(self):
        assert is_terminal(S.DELIVERED)
        assert is_terminal(S.CANCELLED)
        assert not is_terminal(S.SHIPPED)


class TestFulfillmentState:

    def test_all_booked(self):
        assert fulfillment_state(3, 0) == FulfillmentState.FULFILLED

    def test_some_failed(self):
        assert fulfillment_state(2, 1) == FulfillmentState.PARTIALLY_FULFILLED

    def test_all_failed(self):
        assert fulfillment_state(0, 2) == FulfillmentState.FULFILLMENT_FAILED
