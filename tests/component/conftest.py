"""
Component Test Layer Configuration

Services are built with in-memory repositories and fake peer clients from
each service's ``mocks.py``. FastAPI apps are exercised through TestClient
without running their lifespan, so no database is needed.

Usage:
    pytest tests/component -v
    pytest tests/component/order_service -v
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import NotificationConfig
from core.retry import RetryPolicy


@pytest.fixture
def no_wait_retry():
    """Retry policy with the real attempt count and no sleeping"""
    return RetryPolicy(max_retries=3, base_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def notification_config():
    return NotificationConfig(max_attempts=3, backoff_min_seconds=0, backoff_max_seconds=0, queue_size=10)
