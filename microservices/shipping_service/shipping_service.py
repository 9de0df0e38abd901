"""
Shipping Service Business Logic

Books shipments with a provider on behalf of order_service and normalizes
carrier tracking statuses.
"""

import logging
from typing import Optional

from core.config import ShippingConfig
from core.errors import ValidationError
from core.retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_async

from .encryption import CredentialCipher
from .models import CreateShipmentRequest, ShipmentCreated, ShipmentStatus
from .protocols import ProviderDisabledError, ProviderNotFoundError, ShippingRepositoryProtocol
from .providers import ProviderRegistry
from .status_normalizer import normalize_shipment_status
from .weight_calculator import calculate_package_weight, ensure_valid_dimensions, get_chargeable_weight

logger = logging.getLogger(__name__)


class ShippingService:
    """
    Shipment booking

    The provider must be enabled at booking time. Retryable provider
    failures are retried with exponential backoff before surfacing.
    """

    def __init__(
        self,
        repository: ShippingRepositoryProtocol,
        registry: ProviderRegistry,
        cipher: CredentialCipher,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[ShippingConfig] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.cipher = cipher
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self.config = config or ShippingConfig()

    async def create_shipment(self, request: CreateShipmentRequest) -> ShipmentCreated:
        """
        Book one seller group's package

        Raises:
            ValidationError: no provider given or box outside carrier limits
            ProviderNotFoundError: unknown provider
            ProviderDisabledError: provider exists but is disabled
            ProviderError: provider failed after retries
        """
        if not request.provider_id:
            raise ValidationError("provider_id is required")

        provider = await self.repository.get_provider(request.provider_id)
        if not provider:
            raise ProviderNotFoundError()
        if not provider.is_enabled:
            raise ProviderDisabledError(f"Provider {provider.code} is not enabled")

        config = self.config
        if request.dimensions is not None:
            ensure_valid_dimensions(request.dimensions, config.max_single_edge_cm, config.max_girth_cm)
        weight = get_chargeable_weight(
            calculate_package_weight(request.items, config.category_weights),
            request.dimensions,
            config.volumetric_divisor,
        )

        adapter = self.registry.build_for(provider, self.cipher)
        try:
            created = await retry_async(
                lambda: adapter.create_shipment(request, weight),
                operation=f"Create shipment {request.shipment_code} with {provider.code}",
                policy=self.retry_policy,
            )
        finally:
            await adapter.close()

        logger.info(
            f"Shipment {request.shipment_code} booked with {provider.code}: AWB {created.tracking_number}"
        )
        return created

    def normalize_status(self, provider_code: str, provider_status: str) -> ShipmentStatus:
        return normalize_shipment_status(provider_code, provider_status)
