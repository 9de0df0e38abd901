"""
Order Service - Model and Order Code Unit Tests
"""

import pytest
from pydantic import ValidationError

from microservices.order_service.models import OrderCreateRequest, OrderFilter, OrderTotals
from microservices.order_service.order_service import next_order_code
from tests.fixtures import make_address, make_cart_item

pytestmark = [pytest.mark.unit]


class TestOrderTotals:

    def test_grand_total_derived(self):
        totals = OrderTotals(subtotal=1000.0, discount=100.0, shipping_total=49.0)
        assert totals.grand_total == 949.0

    def test_matching_grand_total_accepted(self):
        assert OrderTotals(subtotal=500.0, shipping_total=40.0, grand_total=540.0).grand_total == 540.0

    def test_mismatched_grand_total_rejected(self):
        with pytest.raises(ValidationError, match="grand_total"):
            OrderTotals(subtotal=500.0, shipping_total=40.0, grand_total=500.0)

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValidationError):
            OrderTotals(subtotal=-1.0)


class TestOrderRequests:

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError, match="at least one item"):
            OrderCreateRequest(items=[], totals=OrderTotals(subtotal=0), address=make_address())

    def test_address_pincode_must_be_six_digits(self):
        with pytest.raises(ValidationError):
            make_address(pincode="4000")

    def test_quantity_at_least_one(self):
        with pytest.raises(ValidationError):
            make_cart_item(quantity=0)

    def test_filter_code_format(self):
        OrderFilter(code="BB-1042")
        with pytest.raises(ValidationError):
            OrderFilter(code="1042; DROP TABLE orders")

    def test_filter_limit_bounds(self):
        with pytest.raises(ValidationError):
            OrderFilter(limit=500)


class TestOrderCode:

    def test_first_code(self):
        assert next_order_code(None) == "BB-1001"

    def test_increments_latest(self):
        assert next_order_code("BB-1041") == "BB-1042"

    def test_unparseable_latest_starts_over(self):
        assert next_order_code("legacy-7") == "BB-1001"
