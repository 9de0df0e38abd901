"""
Shipping Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_shipping_components
    components = await create_shipping_components(settings)
"""
from dataclasses import dataclass
from typing import Optional

from core.config import CommerceConfig, get_settings

from .connection_service import ProviderConnectionService
from .encryption import CredentialCipher
from .providers import ProviderRegistry
from .rate_aggregator import RateAggregator
from .shipping_service import ShippingService


@dataclass
class ShippingComponents:
    """Everything the HTTP layer needs, sharing one repository and cipher"""
    rate_aggregator: RateAggregator
    connection_service: ProviderConnectionService
    shipping_service: ShippingService
    db: object = None


async def create_shipping_components(
    settings: Optional[CommerceConfig] = None,
    registry: Optional[ProviderRegistry] = None,
) -> ShippingComponents:
    """
    Create the shipping services with a PostgreSQL-backed repository.

    Use this in production, NOT in tests.
    """
    # Import real repository here (not at module level)
    from core.postgres_client import get_postgres_client
    from .shipping_repository import ShippingRepository

    settings = settings or get_settings()
    db = await get_postgres_client("shipping_service")
    repository = ShippingRepository(db)
    registry = registry or ProviderRegistry()
    cipher = CredentialCipher(settings.security.encryption_key)

    return ShippingComponents(
        rate_aggregator=RateAggregator(repository, registry, cipher, settings.shipping),
        connection_service=ProviderConnectionService(repository, repository, registry, cipher),
        shipping_service=ShippingService(repository, registry, cipher, config=settings.shipping),
        db=db,
    )
