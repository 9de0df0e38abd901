"""
Provider Connection Manager

Admin operations on shipping provider accounts: connect (validate, check
with the provider, encrypt, persist), disconnect, enable/disable and
priority changes. Every change is written to the admin log.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .encryption import CredentialCipher
from .models import (
    AdminAction,
    AdminLogEntry,
    ConnectionResult,
    ConnectionType,
    ProviderCredentials,
    ProviderFilter,
    ProviderView,
    ShippingProvider,
)
from .protocols import (
    AdminLogRepositoryProtocol,
    InvalidCredentialsError,
    ProviderNotConnectedError,
    ProviderNotFoundError,
    ShippingRepositoryProtocol,
)
from .providers import ProviderRegistry

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    ConnectionType.EMAIL_PASSWORD: ("email", "password"),
    ConnectionType.API_KEY: ("api_key",),
    ConnectionType.OAUTH: ("access_token",),
}


def validate_credentials(credentials: ProviderCredentials, expected: ConnectionType) -> Dict[str, Any]:
    """
    Check the payload shape and return only the fields worth storing

    Raises:
        InvalidCredentialsError: wrong type for the provider or missing field
    """
    if credentials.type != expected:
        raise InvalidCredentialsError(
            f"Provider expects {expected.value} credentials, got {credentials.type.value}"
        )

    stored: Dict[str, Any] = {"type": credentials.type.value}
    for field_name in REQUIRED_FIELDS[expected]:
        value = getattr(credentials, field_name)
        if not value or not str(value).strip():
            raise InvalidCredentialsError(f"Missing required credential field: {field_name}")
        stored[field_name] = str(value).strip() if field_name == "email" else value

    if expected == ConnectionType.EMAIL_PASSWORD and "@" not in stored["email"]:
        raise InvalidCredentialsError("Invalid email address")
    return stored


class ProviderConnectionService:
    """Connects and manages shipping provider accounts"""

    def __init__(
        self,
        repository: ShippingRepositoryProtocol,
        log_repository: AdminLogRepositoryProtocol,
        registry: ProviderRegistry,
        cipher: CredentialCipher,
    ):
        self.repository = repository
        self.log_repository = log_repository
        self.registry = registry
        self.cipher = cipher

    async def _require_provider(self, provider_id: str) -> ShippingProvider:
        provider = await self.repository.get_provider(provider_id)
        if not provider:
            raise ProviderNotFoundError()
        return provider

    async def _log(self, admin_id: str, action: AdminAction, provider: ShippingProvider, **metadata):
        await self.log_repository.create_log(
            AdminLogEntry(
                admin_id=admin_id,
                action=action,
                resource_id=provider.id,
                metadata={"provider_code": provider.code, **metadata},
            )
        )

    async def get_all_providers(self, filters: Optional[ProviderFilter] = None) -> List[ProviderView]:
        providers = await self.repository.list_providers(filters or ProviderFilter())
        return [ProviderView.from_provider(p) for p in providers]

    async def get_by_id(self, provider_id: str) -> ProviderView:
        return ProviderView.from_provider(await self._require_provider(provider_id))

    async def connect(self, provider_id: str, credentials: ProviderCredentials, actor_id: str) -> ConnectionResult:
        """
        Connect a provider account

        Unknown provider and malformed credentials raise before anything is
        encrypted or stored. A provider-side login failure is returned as
        ``success=False`` and recorded on the provider.
        """
        provider = await self._require_provider(provider_id)
        adapter_class = self.registry.adapter_class(provider.code)
        stored = validate_credentials(credentials, adapter_class.connection_type)

        adapter = self.registry.build(provider.code, provider.id)
        try:
            auth = await adapter.authenticate(credentials)
        finally:
            await adapter.close()

        if not auth.success:
            logger.warning(f"Provider {provider.code} connection failed: {auth.error}")
            await self.repository.set_auth_error(provider.id, auth.error)
            await self._log(actor_id, AdminAction.PROVIDER_CONNECTION_FAILED, provider, error=auth.error)
            return ConnectionResult(success=False, error=auth.error)

        if auth.token:
            stored["token"] = auth.token
        if auth.token_expires_at:
            stored["token_expires_at"] = auth.token_expires_at.isoformat()

        updated = await self.repository.update_credentials(
            provider.id,
            encrypted_credentials=self.cipher.encrypt_json(stored),
            connected_by=actor_id,
            connected_at=datetime.now(timezone.utc),
        )
        if not updated:
            raise ProviderNotFoundError()

        await self._log(
            actor_id,
            AdminAction.PROVIDER_CONNECTED,
            provider,
            account={k: v for k, v in auth.account_info.items() if k != "password"},
        )
        logger.info(f"Provider {provider.code} connected by {actor_id}")
        return ConnectionResult(success=True, provider=ProviderView.from_provider(updated))

    async def disconnect(self, provider_id: str, actor_id: str) -> ProviderView:
        provider = await self._require_provider(provider_id)
        if not provider.is_connected:
            raise ProviderNotConnectedError()

        updated = await self.repository.clear_credentials(provider.id)
        if not updated:
            raise ProviderNotFoundError()

        await self._log(actor_id, AdminAction.PROVIDER_DISCONNECTED, provider)
        logger.info(f"Provider {provider.code} disconnected by {actor_id}")
        return ProviderView.from_provider(updated)

    async def toggle(self, provider_id: str, enabled: bool, actor_id: str) -> ProviderView:
        provider = await self._require_provider(provider_id)
        if enabled and not provider.is_connected:
            raise ProviderNotConnectedError("Connect the provider before enabling it")

        updated = await self.repository.set_enabled(provider.id, enabled)
        await self._log(actor_id, AdminAction.PROVIDER_TOGGLED, provider, enabled=enabled)
        return ProviderView.from_provider(updated)

    async def set_priority(self, provider_id: str, priority: int, actor_id: str) -> ProviderView:
        provider = await self._require_provider(provider_id)
        updated = await self.repository.set_priority(provider.id, priority)
        await self._log(
            actor_id,
            AdminAction.PROVIDER_PRIORITY_CHANGED,
            provider,
            previous=provider.priority,
            priority=priority,
        )
        return ProviderView.from_provider(updated)
