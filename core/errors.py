"""
Shared error taxonomy for storefront microservices

Every domain error carries the HTTP status it maps to. Services raise these;
``register_exception_handlers`` renders them as ``{"error": message}``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CommerceError(Exception):
    """Base exception for storefront service errors"""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommerceError):
    """Malformed or missing input. Never retried."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class AuthorizationError(CommerceError):
    """Missing credentials (401) or insufficient role (403)"""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.status_code = status.HTTP_403_FORBIDDEN
            self.error_code = "FORBIDDEN"


class NotFoundError(CommerceError):
    """Unknown id"""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ConflictError(CommerceError):
    """Duplicate submission or invalid state transition"""
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class ProviderError(CommerceError):
    """A single shipping or payment provider failed"""
    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider: Optional[str] = None, retryable: bool = True):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class SignatureError(CommerceError):
    """Payment or webhook signature did not verify"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_SIGNATURE"


class PersistenceError(CommerceError):
    """Database failure. The operation was not committed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "PERSISTENCE_ERROR"


class ConfigurationError(CommerceError):
    """A required secret or credential is not configured"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "NOT_CONFIGURED"


class RateLimitedError(CommerceError):
    """Client exceeded its request budget"""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


def is_retryable(error: BaseException) -> bool:
    """Only provider failures flagged retryable are worth another attempt"""
    return isinstance(error, ProviderError) and error.retryable


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON error rendering for CommerceError and unexpected failures"""

    @app.exception_handler(CommerceError)
    async def commerce_error_handler(request: Request, exc: CommerceError):
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


__all__ = [
    "CommerceError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "ProviderError",
    "SignatureError",
    "PersistenceError",
    "ConfigurationError",
    "RateLimitedError",
    "is_retryable",
    "register_exception_handlers",
]
