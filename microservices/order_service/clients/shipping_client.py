"""
Shipping Service Client for Order Service

Rate re-quotes and shipment booking during fulfillment.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.errors import ProviderError, ValidationError
from core.service_client_base import BaseServiceClient

from ..models import QuotedRate, ShipmentBooking
from ..protocols import ProviderUnavailableError

logger = logging.getLogger(__name__)


class ShippingServiceClient(BaseServiceClient):
    """Client for shipping_service"""

    service_name = "shipping_service"

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code < 400:
            return
        message = self.error_message(response)
        logger.error(f"shipping_service {operation} failed ({response.status_code}): {message}")

        if response.status_code == 400:
            raise ValidationError(message)
        if response.status_code in (404, 409):
            raise ProviderUnavailableError(message)
        # 502 means the provider already failed after shipping_service's own retries
        raise ProviderError(
            message,
            provider=self.service_name,
            retryable=response.status_code in (429, 503, 504),
        )

    async def get_default_rate(
        self,
        from_pincode: Optional[str],
        to_pincode: str,
        weight: float,
        cod: bool = False,
    ) -> Optional[QuotedRate]:
        payload = {"from_pincode": from_pincode, "to_pincode": to_pincode, "weight": weight, "cod": cod}
        response = await self.post("/api/v1/shipping/rates", json=payload)
        self._raise_for_status(response, "rates")

        data = response.json()
        default_rate = data.get("default_rate")
        if not data.get("serviceable") or not default_rate:
            return None
        return QuotedRate(
            provider_id=default_rate["provider_id"],
            provider_name=default_rate.get("provider_name"),
            courier_code=default_rate.get("courier_code"),
            courier_name=default_rate.get("courier_name"),
            cost=default_rate.get("cost", 0.0),
            estimated_days=default_rate.get("estimated_days"),
        )

    async def create_shipment(self, payload: Dict[str, Any]) -> ShipmentBooking:
        response = await self.post("/api/v1/shipping/shipments", json=payload)
        self._raise_for_status(response, "create shipment")
        return ShipmentBooking(**response.json())

    async def normalize_status(self, provider_code: str, provider_status: str) -> str:
        response = await self.post(
            "/api/v1/shipping/status/normalize",
            json={"provider_code": provider_code, "provider_status": provider_status},
        )
        self._raise_for_status(response, "normalize status")
        return response.json()["status"]
