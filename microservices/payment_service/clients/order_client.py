"""
Order Service Client for Payment Service

Reports payment outcomes to order_service over its internal routes.
"""

import logging
from typing import Optional

from core.errors import ProviderError
from core.service_client_base import BaseServiceClient

logger = logging.getLogger(__name__)


class OrderServiceClient(BaseServiceClient):
    """Client for order_service"""

    service_name = "order_service"

    async def _report(self, path: str, payload: dict) -> None:
        response = await self.post(path, json=payload)
        if response.status_code >= 400:
            logger.error(f"Order service {path} returned {response.status_code}: {self.error_message(response)}")
            raise ProviderError(
                f"Order service rejected {path} ({response.status_code})",
                provider=self.service_name,
                retryable=response.status_code >= 500,
            )

    async def mark_payment_completed(self, order_id: str, payment_id: Optional[str]) -> None:
        await self._report(
            f"/api/v1/orders/{order_id}/payment-completed",
            {"payment_id": payment_id},
        )

    async def mark_payment_failed(self, order_id: str, reason: Optional[str] = None) -> None:
        await self._report(
            f"/api/v1/orders/{order_id}/payment-failed",
            {"reason": reason},
        )
