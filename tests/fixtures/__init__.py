"""
Shared Test Fixtures

Centralized factories used across all test layers.

Structure:
    - common.py: Base ID generators
    - {service}_fixtures.py: Per-service factories
"""

# Common utilities
from .common import (
    make_email,
    make_order_id,
    make_user_id,
)

# Shipping service fixtures
from .shipping_fixtures import (
    make_provider,
    make_rate,
    make_rate_request,
)

# Order service fixtures
from .order_fixtures import (
    make_address,
    make_cart_item,
    make_order,
    make_order_create_request,
)
