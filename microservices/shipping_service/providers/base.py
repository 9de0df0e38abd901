"""Shipping provider adapter interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..models import (
    ConnectionType,
    CreateShipmentRequest,
    ProviderAuthResult,
    ProviderCredentials,
    RateQuote,
    ShipmentCreated,
)


class ShippingProviderAdapter(ABC):
    """
    Abstract shipping provider.

    One instance is built per provider account and request; ``credentials``
    is the decrypted credential dict stored for the account.
    """

    code: str = ""
    name: str = ""
    connection_type: ConnectionType = ConnectionType.EMAIL_PASSWORD

    def __init__(self, provider_id: str, credentials: Optional[Dict[str, Any]] = None):
        self.provider_id = provider_id
        self.credentials = credentials or {}

    async def authenticate(self, credentials: ProviderCredentials) -> ProviderAuthResult:
        """Check credentials with the provider. Providers without a login step accept them as-is."""
        return ProviderAuthResult(success=True)

    @abstractmethod
    async def quote_rates(
        self,
        origin_pincode: str,
        destination_pincode: str,
        weight: float,
        cod: bool,
    ) -> RateQuote:
        """Rates between two pincodes. Raise ProviderError on failure."""
        raise NotImplementedError

    @abstractmethod
    async def create_shipment(self, request: CreateShipmentRequest, package_weight: float) -> ShipmentCreated:
        """Book a shipment and return its AWB and tracking data."""
        raise NotImplementedError

    async def close(self) -> None:
        pass
