"""
Shipping provider registry

Maps a provider's ``code`` to its adapter class.
"""

from typing import Any, Dict, Optional, Type

from core.errors import NotFoundError, ProviderError

from ..encryption import CredentialCipher, CredentialDecryptionError
from ..models import ShippingProvider
from .base import ShippingProviderAdapter
from .mock import MockShippingProvider
from .shiprocket import ShiprocketProvider

PROVIDER_ADAPTERS: Dict[str, Type[ShippingProviderAdapter]] = {
    ShiprocketProvider.code: ShiprocketProvider,
    MockShippingProvider.code: MockShippingProvider,
}


class ProviderRegistry:
    """Builds adapters for stored provider accounts"""

    def __init__(self, adapters: Optional[Dict[str, Type[ShippingProviderAdapter]]] = None):
        self.adapters = dict(adapters or PROVIDER_ADAPTERS)

    def supports(self, code: str) -> bool:
        return code in self.adapters

    def adapter_class(self, code: str) -> Type[ShippingProviderAdapter]:
        adapter = self.adapters.get(code)
        if adapter is None:
            raise NotFoundError(f"Provider implementation not found: {code}")
        return adapter

    def build(self, code: str, provider_id: str, credentials: Optional[Dict[str, Any]] = None) -> ShippingProviderAdapter:
        return self.adapter_class(code)(provider_id, credentials)

    def build_for(self, provider: ShippingProvider, cipher: CredentialCipher) -> ShippingProviderAdapter:
        """Adapter for a stored account, with its credentials decrypted"""
        credentials = {}
        if provider.encrypted_credentials:
            try:
                credentials = cipher.decrypt_json(provider.encrypted_credentials)
            except CredentialDecryptionError as e:
                raise ProviderError(
                    f"Stored credentials for {provider.code} could not be decrypted",
                    provider=provider.code,
                    retryable=False,
                ) from e
        return self.build(provider.code, provider.id, credentials)


__all__ = [
    "ShippingProviderAdapter",
    "ShiprocketProvider",
    "MockShippingProvider",
    "PROVIDER_ADAPTERS",
    "ProviderRegistry",
]
