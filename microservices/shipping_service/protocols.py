"""
Shipping Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from core.errors import ConflictError, NotFoundError, ProviderError, ValidationError

from .models import AdminLogEntry, ProviderFilter, ShippingProvider


# ============================================================================
# Custom Exceptions
# ============================================================================

class ProviderNotFoundError(NotFoundError):
    """Provider not found"""

    def __init__(self, message: str = "Provider not found"):
        super().__init__(message)


class ProviderNotConnectedError(ConflictError):
    """Disconnect requested for an account that was never connected"""

    def __init__(self, message: str = "Provider is not connected"):
        super().__init__(message)


class ProviderDisabledError(ConflictError):
    """Shipment requested through a provider that is not enabled"""
    pass


class InvalidCredentialsError(ValidationError):
    """Credential payload does not match the provider's connection type"""
    pass


class ShipmentCreationError(ProviderError):
    """Provider could not book the shipment"""
    pass


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class ShippingRepositoryProtocol(Protocol):
    """
    Interface for the shipping provider repository.

    Used for dependency injection to enable testing.
    """

    async def list_providers(self, filters: ProviderFilter) -> List[ShippingProvider]:
        """List providers matching ``filters``"""
        ...

    async def get_enabled_providers(self) -> List[ShippingProvider]:
        """Enabled providers ordered by descending priority"""
        ...

    async def get_provider(self, provider_id: str) -> Optional[ShippingProvider]:
        ...

    async def update_credentials(
        self,
        provider_id: str,
        encrypted_credentials: str,
        connected_by: str,
        connected_at: datetime,
    ) -> Optional[ShippingProvider]:
        """Store credentials, enable the provider and clear any auth error"""
        ...

    async def clear_credentials(self, provider_id: str) -> Optional[ShippingProvider]:
        """Drop credentials and disable the provider"""
        ...

    async def set_auth_error(self, provider_id: str, error: Optional[str]) -> None:
        ...

    async def set_enabled(self, provider_id: str, enabled: bool) -> Optional[ShippingProvider]:
        ...

    async def set_priority(self, provider_id: str, priority: int) -> Optional[ShippingProvider]:
        ...


@runtime_checkable
class AdminLogRepositoryProtocol(Protocol):
    """Audit trail for admin actions"""

    async def create_log(self, entry: AdminLogEntry) -> None:
        ...


@runtime_checkable
class CredentialCipherProtocol(Protocol):
    def encrypt_json(self, data: Dict[str, Any]) -> str:
        ...

    def decrypt_json(self, ciphertext: str) -> Dict[str, Any]:
        ...
