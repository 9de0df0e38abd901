"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/: Service tests with mocked repositories and clients
    - unit/     : Pure functions, no I/O
"""
import os
import sys

import pytest

# Set testing environment BEFORE any service imports
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("INTERNAL_SERVICE_SECRET", "test-internal-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


# =============================================================================
# Headers
# =============================================================================

@pytest.fixture
def internal_headers():
    """Headers a peer service sends"""
    from core.internal_service_auth import InternalServiceAuth
    return InternalServiceAuth.get_internal_service_headers()


@pytest.fixture
def admin_headers():
    """Bearer token with admin scope"""
    from core.jwt_manager import TokenClaims, TokenScope, get_jwt_manager
    token = get_jwt_manager().create_access_token(TokenClaims(user_id="admin_1", scope=TokenScope.ADMIN))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token_headers():
    """Bearer token with the default user scope"""
    from core.jwt_manager import TokenClaims, get_jwt_manager
    token = get_jwt_manager().create_access_token(TokenClaims(user_id="usr_plain"))
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
