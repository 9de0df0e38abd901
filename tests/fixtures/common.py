"""
Common/Shared Fixtures

Base ID generators used across multiple services.
"""
import uuid
from typing import Optional


def make_user_id() -> str:
    """Generate a unique user ID"""
    return f"usr_test_{uuid.uuid4().hex[:12]}"


def make_order_id() -> str:
    return f"ord_test_{uuid.uuid4().hex[:12]}"


def make_email(prefix: Optional[str] = None) -> str:
    """Generate a unique email"""
    prefix = prefix or f"test_{uuid.uuid4().hex[:8]}"
    return f"{prefix}@example.com"
