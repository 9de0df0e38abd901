"""
Shipping Repository

Data access layer for provider accounts and the admin audit trail using
PostgresClient.
Matches schema: shipping.providers, shipping.admin_logs
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.postgres_client import PostgresClient

from .models import AdminLogEntry, ConnectionType, ProviderFilter, ShippingProvider

logger = logging.getLogger(__name__)


class ShippingRepository:
    """
    Repository for shipping provider accounts.

    Tables:
        - shipping.providers: one row per provider account, credentials encrypted
        - shipping.admin_logs: append-only record of admin changes
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.schema = "shipping"
        self.providers_table = "providers"
        self.admin_logs_table = "admin_logs"

    @property
    def _providers(self) -> str:
        return f'"{self.schema}".{self.providers_table}'

    async def list_providers(self, filters: ProviderFilter) -> List[ShippingProvider]:
        conditions = []
        params: List[Any] = []

        if filters.is_enabled is not None:
            params.append(filters.is_enabled)
            conditions.append(f"is_enabled = ${len(params)}")
        if filters.code:
            params.append(filters.code)
            conditions.append(f"code = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.extend([filters.limit, filters.offset])
        query = (
            f"SELECT * FROM {self._providers} {where} "
            f"ORDER BY priority DESC, name ASC LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        )

        rows = await self.db.fetch(query, *params)
        return [self._to_provider(row) for row in rows]

    async def get_enabled_providers(self) -> List[ShippingProvider]:
        query = f"SELECT * FROM {self._providers} WHERE is_enabled = TRUE ORDER BY priority DESC"
        rows = await self.db.fetch(query)
        return [self._to_provider(row) for row in rows]

    async def get_provider(self, provider_id: str) -> Optional[ShippingProvider]:
        row = await self.db.fetchrow(f"SELECT * FROM {self._providers} WHERE id = $1", provider_id)
        return self._to_provider(row) if row else None

    async def update_credentials(
        self,
        provider_id: str,
        encrypted_credentials: str,
        connected_by: str,
        connected_at: datetime,
    ) -> Optional[ShippingProvider]:
        query = f"""
            UPDATE {self._providers}
            SET encrypted_credentials = $2,
                connected_by = $3,
                connected_at = $4,
                is_enabled = TRUE,
                auth_error = NULL,
                updated_at = $5
            WHERE id = $1
            RETURNING *
        """
        row = await self.db.fetchrow(
            query,
            provider_id,
            encrypted_credentials,
            connected_by,
            connected_at,
            datetime.now(timezone.utc),
        )
        return self._to_provider(row) if row else None

    async def clear_credentials(self, provider_id: str) -> Optional[ShippingProvider]:
        query = f"""
            UPDATE {self._providers}
            SET encrypted_credentials = NULL,
                connected_by = NULL,
                connected_at = NULL,
                is_enabled = FALSE,
                updated_at = $2
            WHERE id = $1
            RETURNING *
        """
        row = await self.db.fetchrow(query, provider_id, datetime.now(timezone.utc))
        return self._to_provider(row) if row else None

    async def set_auth_error(self, provider_id: str, error: Optional[str]) -> None:
        await self.db.execute(
            f"UPDATE {self._providers} SET auth_error = $2, updated_at = $3 WHERE id = $1",
            provider_id,
            error,
            datetime.now(timezone.utc),
        )

    async def set_enabled(self, provider_id: str, enabled: bool) -> Optional[ShippingProvider]:
        row = await self.db.fetchrow(
            f"UPDATE {self._providers} SET is_enabled = $2, updated_at = $3 WHERE id = $1 RETURNING *",
            provider_id,
            enabled,
            datetime.now(timezone.utc),
        )
        return self._to_provider(row) if row else None

    async def set_priority(self, provider_id: str, priority: int) -> Optional[ShippingProvider]:
        row = await self.db.fetchrow(
            f"UPDATE {self._providers} SET priority = $2, updated_at = $3 WHERE id = $1 RETURNING *",
            provider_id,
            priority,
            datetime.now(timezone.utc),
        )
        return self._to_provider(row) if row else None

    async def create_log(self, entry: AdminLogEntry) -> None:
        query = f"""
            INSERT INTO "{self.schema}".{self.admin_logs_table}
                (id, admin_id, action, resource, resource_id, metadata, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
        """
        await self.db.execute(
            query,
            f"log_{uuid.uuid4().hex[:16]}",
            entry.admin_id,
            entry.action.value,
            entry.resource,
            entry.resource_id,
            entry.metadata,
            entry.created_at or datetime.now(timezone.utc),
        )

    def _to_provider(self, row: Dict[str, Any]) -> ShippingProvider:
        return ShippingProvider(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            is_enabled=row.get("is_enabled", False),
            priority=row.get("priority") or 0,
            connection_type=ConnectionType(row.get("connection_type") or ConnectionType.EMAIL_PASSWORD.value),
            encrypted_credentials=row.get("encrypted_credentials"),
            connected_at=row.get("connected_at"),
            connected_by=row.get("connected_by"),
            auth_error=row.get("auth_error"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
