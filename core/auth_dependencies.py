"""
FastAPI Authentication Dependencies for Microservices

Shared dependencies used by every storefront service. Session issuance lives
elsewhere; these only read the identity the gateway or a peer service
attached to the request.
"""

from fastapi import Header, Request
from typing import Optional
import logging

from core.errors import AuthorizationError
from core.internal_service_auth import InternalServiceAuth, INTERNAL_SERVICE_USER_ID
from core.jwt_manager import get_jwt_manager

logger = logging.getLogger(__name__)


async def require_auth_or_internal_service(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Allow either an authenticated user or an internal service

    Priority:
    1. Internal service (X-Internal-Service + X-Internal-Service-Secret)
    2. User id (X-User-Id)

    Returns:
        user_id or "internal-service"

    Raises:
        AuthorizationError 401 when neither is present
    """
    if x_internal_service == "true" and x_internal_service_secret:
        if InternalServiceAuth.is_valid(x_internal_service, x_internal_service_secret):
            logger.debug(f"Internal service request to {request.url.path}")
            return INTERNAL_SERVICE_USER_ID
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid internal service secret from {client_host}")

    if x_user_id:
        return x_user_id

    raise AuthorizationError("User authentication required")


async def optional_auth_or_internal_service(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> Optional[str]:
    """Anonymous, user or internal service. Returns None for anonymous callers."""
    if InternalServiceAuth.is_valid(x_internal_service, x_internal_service_secret):
        return INTERNAL_SERVICE_USER_ID
    return x_user_id


async def require_internal_service(
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """Only peer services may call the route"""
    if InternalServiceAuth.is_valid(x_internal_service, x_internal_service_secret):
        return INTERNAL_SERVICE_USER_ID
    raise AuthorizationError("Internal service authentication required")


async def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Admin back-office access

    Accepts a bearer token with ``scope == "admin"`` or the internal service
    secret. Missing credentials raise 401, a non-admin token raises 403.

    Returns:
        The admin's user id (used as the actor on audit entries)
    """
    if InternalServiceAuth.is_valid(x_internal_service, x_internal_service_secret):
        return INTERNAL_SERVICE_USER_ID

    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthorizationError("Admin authentication required")

    check = get_jwt_manager().verify_token(authorization.split(" ", 1)[1].strip())
    if not check.valid:
        raise AuthorizationError(check.error)
    if not check.is_admin:
        logger.warning(f"Non-admin user {check.user_id} attempted admin access")
        raise AuthorizationError("Admin access required", forbidden=True)
    return check.user_id


def is_internal_service_request(user_id: str) -> bool:
    """True when the dependency resolved to the internal service identity"""
    return user_id == INTERNAL_SERVICE_USER_ID


__all__ = [
    "require_auth_or_internal_service",
    "optional_auth_or_internal_service",
    "require_internal_service",
    "require_admin",
    "is_internal_service_request",
]
