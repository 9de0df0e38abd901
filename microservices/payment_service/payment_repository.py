"""
Payment Repository

Data access layer for gateway orders and the verification ledger using
PostgresClient.
Matches schema: payment.gateway_orders, payment.verifications
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.postgres_client import PostgresClient

from .models import GatewayOrderStatus, PaymentGatewayOrder, PaymentVerification

logger = logging.getLogger(__name__)


class PaymentRepository:
    """
    Repository for payment operations.

    Tables:
        - payment.gateway_orders: one gateway order per local order (unique local_order_id)
        - payment.verifications: verified (gateway_order_id, payment_id) pairs
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.schema = "payment"
        self.orders_table = "gateway_orders"
        self.verifications_table = "verifications"

    async def get_gateway_order(self, gateway_order_id: str) -> Optional[PaymentGatewayOrder]:
        query = f'SELECT * FROM "{self.schema}".{self.orders_table} WHERE gateway_order_id = $1'
        row = await self.db.fetchrow(query, gateway_order_id)
        return self._to_gateway_order(row) if row else None

    async def get_gateway_order_by_local_id(self, local_order_id: str) -> Optional[PaymentGatewayOrder]:
        query = f'SELECT * FROM "{self.schema}".{self.orders_table} WHERE local_order_id = $1'
        row = await self.db.fetchrow(query, local_order_id)
        return self._to_gateway_order(row) if row else None

    async def save_gateway_order(self, order: PaymentGatewayOrder) -> PaymentGatewayOrder:
        query = f"""
            INSERT INTO "{self.schema}".{self.orders_table}
                (gateway_order_id, local_order_id, amount, currency, provider, key_id, status, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (local_order_id) DO NOTHING
            RETURNING *
        """
        row = await self.db.fetchrow(
            query,
            order.gateway_order_id,
            order.local_order_id,
            order.amount,
            order.currency,
            order.provider.value,
            order.key_id,
            order.status.value,
            order.created_at or datetime.now(timezone.utc),
        )
        if row:
            return self._to_gateway_order(row)

        existing = await self.get_gateway_order_by_local_id(order.local_order_id)
        return existing or order

    async def update_gateway_order_status(self, gateway_order_id: str, status: GatewayOrderStatus) -> None:
        await self.db.execute(
            f'UPDATE "{self.schema}".{self.orders_table} SET status = $2 WHERE gateway_order_id = $1',
            gateway_order_id,
            status.value,
        )

    async def get_verification(self, gateway_order_id: str, payment_id: str) -> Optional[PaymentVerification]:
        query = f"""
            SELECT * FROM "{self.schema}".{self.verifications_table}
            WHERE gateway_order_id = $1 AND payment_id = $2
        """
        row = await self.db.fetchrow(query, gateway_order_id, payment_id)
        return PaymentVerification(**row) if row else None

    async def record_verification(self, verification: PaymentVerification) -> bool:
        query = f"""
            INSERT INTO "{self.schema}".{self.verifications_table}
                (gateway_order_id, payment_id, signature, verified_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (gateway_order_id, payment_id) DO NOTHING
        """
        status = await self.db.execute(
            query,
            verification.gateway_order_id,
            verification.payment_id,
            verification.signature,
            verification.verified_at,
        )
        # asyncpg status tag: "INSERT 0 <rows>"
        return status.endswith(" 1")

    def _to_gateway_order(self, row: Dict[str, Any]) -> PaymentGatewayOrder:
        return PaymentGatewayOrder(
            gateway_order_id=row["gateway_order_id"],
            amount=row["amount"],
            currency=row["currency"],
            provider=row.get("provider") or "razorpay",
            local_order_id=row["local_order_id"],
            key_id=row.get("key_id") or "",
            status=row.get("status") or GatewayOrderStatus.CREATED.value,
            created_at=row.get("created_at"),
        )
