"""
Internal Service Authentication

Peer calls (payment_service reporting to order_service, order_service
booking through shipping_service) carry a shared secret header and skip
end-user authentication.
"""

import hmac
from typing import Dict, Optional

from core.config import get_settings

INTERNAL_SERVICE_HEADER = "X-Internal-Service"
INTERNAL_SERVICE_SECRET_HEADER = "X-Internal-Service-Secret"
INTERNAL_SERVICE_USER_ID = "internal-service"


class InternalServiceAuth:

    @staticmethod
    def get_internal_service_headers() -> Dict[str, str]:
        return {
            INTERNAL_SERVICE_HEADER: "true",
            INTERNAL_SERVICE_SECRET_HEADER: get_settings().security.internal_service_secret,
        }

    @staticmethod
    def is_valid(flag: Optional[str], secret: Optional[str]) -> bool:
        """True for ``X-Internal-Service: true`` with the configured secret"""
        expected = get_settings().security.internal_service_secret
        if flag != "true" or not secret or not expected:
            return False
        return hmac.compare_digest(secret.encode(), expected.encode())


__all__ = [
    "InternalServiceAuth",
    "INTERNAL_SERVICE_HEADER",
    "INTERNAL_SERVICE_SECRET_HEADER",
    "INTERNAL_SERVICE_USER_ID",
]
