"""
PostgreSQL Client Wrapper

Thin asyncpg pool wrapper shared by the storefront repositories. Database
failures surface as PersistenceError so callers never mistake a failed
write for a committed one.

Usage:
    from core.postgres_client import get_postgres_client

    db = await get_postgres_client("order_service")
    rows = await db.fetch("SELECT * FROM orders.orders WHERE user_id = $1", user_id)
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig, get_settings
from core.errors import PersistenceError

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    # JSONB columns round-trip as Python dicts/lists
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")
    await conn.set_type_codec("json", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


class PostgresClient:
    """
    asyncpg pool wrapper

    The pool is created lazily on first use; ``transaction()`` yields a
    connection whose statements commit or roll back together.
    """

    def __init__(self, service_name: str, config: Optional[InfraConfig] = None):
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool,
                init=_init_connection,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"PostgreSQL connection failed for {self.service_name}: {e}")
            raise PersistenceError("Database unavailable") from e
        logger.info(
            f"PostgreSQL pool ready for {self.service_name}: "
            f"{self.config.postgres_host}:{self.config.postgres_port}/{self.config.postgres_db}"
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.connect()
        return self._pool

    async def fetch(self, sql: str, *args: Any) -> List[Dict[str, Any]]:
        """Execute query and return all rows as dicts"""
        pool = await self._ensure_pool()
        try:
            rows = await pool.fetch(sql, *args)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise PersistenceError("Database query failed") from e
        return [dict(row) for row in rows]

    async def fetchrow(self, sql: str, *args: Any) -> Optional[Dict[str, Any]]:
        """Execute query and return a single row"""
        pool = await self._ensure_pool()
        try:
            row = await pool.fetchrow(sql, *args)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise PersistenceError("Database query failed") from e
        return dict(row) if row else None

    async def fetchval(self, sql: str, *args: Any) -> Any:
        pool = await self._ensure_pool()
        try:
            return await pool.fetchval(sql, *args)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise PersistenceError("Database query failed") from e

    async def execute(self, sql: str, *args: Any) -> str:
        """Execute a statement and return its status tag"""
        pool = await self._ensure_pool()
        try:
            return await pool.execute(sql, *args)
        except asyncpg.PostgresError as e:
            logger.error(f"Statement failed: {e}")
            raise PersistenceError("Database write failed") from e

    @asynccontextmanager
    async def transaction(self):
        """Yield a connection inside a transaction"""
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            try:
                async with conn.transaction():
                    yield conn
            except asyncpg.PostgresError as e:
                logger.error(f"Transaction rolled back: {e}")
                raise PersistenceError("Database transaction failed") from e

    async def health_check(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except PersistenceError:
            return False


_postgres_clients: Dict[str, PostgresClient] = {}


async def get_postgres_client(service_name: str) -> PostgresClient:
    """Get or create the connected client for a service"""
    client = _postgres_clients.get(service_name)
    if client is None:
        client = PostgresClient(service_name)
        await client.connect()
        _postgres_clients[service_name] = client
    return client


__all__ = ["PostgresClient", "get_postgres_client"]
