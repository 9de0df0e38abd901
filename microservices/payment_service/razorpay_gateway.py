"""
Razorpay Gateway Client

Creates gateway orders over the Razorpay REST API using HTTP Basic auth.
Only the public key id ever leaves this service.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import PaymentConfig
from core.errors import ProviderError

from .protocols import GatewayNotConfiguredError

logger = logging.getLogger(__name__)


class RazorpayGateway:
    """Razorpay orders API"""

    provider = "razorpay"

    def __init__(self, config: PaymentConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.key_id = config.razorpay_key_id
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.razorpay_base_url,
                timeout=self.config.gateway_timeout_seconds,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.config.razorpay_key_id or not self.config.razorpay_key_secret:
            raise GatewayNotConfiguredError()

        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }

        try:
            response = await self.client.post(
                "/orders",
                json=payload,
                auth=(self.config.razorpay_key_id, self.config.razorpay_key_secret),
            )
        except httpx.TimeoutException as e:
            raise ProviderError("Payment gateway timed out", provider=self.provider) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Payment gateway unreachable: {e}", provider=self.provider) from e

        if response.status_code >= 400:
            try:
                description = response.json().get("error", {}).get("description")
            except ValueError:
                description = None
            logger.error(f"Razorpay create order failed ({response.status_code}): {description}")
            raise ProviderError(
                description or "Failed to create Razorpay order",
                provider=self.provider,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )

        data = response.json()
        logger.info(f"Razorpay order {data.get('id')} created for receipt {receipt}")
        return data
