"""
Bearer tokens for the admin back office

Order listing, status transitions, fulfillment and tracking updates are
admin routes. They accept an HS256 token whose ``scope`` claim is ``admin``.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import jwt

logger = logging.getLogger(__name__)


class TokenScope(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass
class TokenClaims:
    user_id: str
    scope: TokenScope = TokenScope.USER
    email: Optional[str] = None


@dataclass
class TokenCheck:
    """Outcome of verifying a bearer token"""
    valid: bool
    user_id: Optional[str] = None
    scope: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.valid and self.scope == TokenScope.ADMIN.value


class JWTManager:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: str = "HS256",
        issuer: str = "storefront",
        ttl_seconds: int = 3600,
    ):
        if not secret_key:
            logger.warning("JWT_SECRET not set, admin tokens are signed with a throwaway key")
            secret_key = secrets.token_urlsafe(48)
        self._key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.ttl = timedelta(seconds=ttl_seconds)

    def create_access_token(self, claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
        issued = datetime.now(timezone.utc)
        body = {
            "iss": self.issuer,
            "sub": claims.user_id,
            "scope": TokenScope(claims.scope).value,
            "jti": uuid.uuid4().hex,
            "iat": issued,
            "exp": issued + (expires_delta or self.ttl),
        }
        if claims.email:
            body["email"] = claims.email
        return jwt.encode(body, self._key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenCheck:
        try:
            decoded = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            return TokenCheck(valid=False, error="Token has expired")
        except jwt.InvalidTokenError as e:
            return TokenCheck(valid=False, error=f"Invalid token: {e}")
        return TokenCheck(valid=True, user_id=decoded["sub"], scope=decoded.get("scope"))


_manager: Optional[JWTManager] = None


def get_jwt_manager() -> JWTManager:
    """Process-wide manager built from SecurityConfig"""
    global _manager
    if _manager is None:
        from core.config import get_settings
        security = get_settings().security
        _manager = JWTManager(secret_key=security.jwt_secret, algorithm=security.jwt_algorithm)
    return _manager
