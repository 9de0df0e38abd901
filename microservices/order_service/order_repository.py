"""
Order Repository

Data access layer for orders and shipments using PostgresClient.
Matches schema: orders.orders, orders.shipments
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from core.postgres_client import PostgresClient

from .models import Order, OrderFilter, Shipment

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id", "code", "user_id", "items", "totals", "status", "address", "payment_method",
    "payment_status", "payment_id", "estimated_delivery", "notes", "fulfillment_state",
    "created_at", "updated_at",
)
ORDER_UPDATABLE = set(ORDER_COLUMNS) - {"id", "code", "user_id", "created_at", "updated_at"}

SHIPMENT_COLUMNS = (
    "id", "order_id", "code", "items", "seller_id", "origin_pincode", "shipping_cost",
    "package_weight", "provider_id", "courier_code", "tracking_number", "courier_name",
    "tracking_url", "status", "estimated_delivery", "error", "meta", "created_at", "updated_at",
)
SHIPMENT_UPDATABLE = set(SHIPMENT_COLUMNS) - {"id", "order_id", "code", "created_at", "updated_at"}


def _to_db(value: Any) -> Any:
    """Models and enums become JSON-ready values; everything else passes through"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_db(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


class OrderRepository:
    """
    Repository for order operations.

    Tables:
        - orders.orders: orders with items, totals and address as JSONB
        - orders.shipments: one row per seller package (unique order_id, seller_id)
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.schema = "orders"
        self.orders_table = "orders"
        self.shipments_table = "shipments"

    @property
    def _orders(self) -> str:
        return f'"{self.schema}".{self.orders_table}'

    @property
    def _shipments(self) -> str:
        return f'"{self.schema}".{self.shipments_table}'

    # ==================== Orders ====================

    async def create_order(self, order: Order) -> Optional[Order]:
        values = [_to_db(getattr(order, column)) for column in ORDER_COLUMNS]
        placeholders = ", ".join(f"${i}" for i in range(1, len(ORDER_COLUMNS) + 1))
        query = f"""
            INSERT INTO {self._orders} ({", ".join(ORDER_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT (code) DO NOTHING
            RETURNING *
        """
        row = await self.db.fetchrow(query, *values)
        return self._to_order(row) if row else None

    async def get_order(self, order_id: str) -> Optional[Order]:
        row = await self.db.fetchrow(f"SELECT * FROM {self._orders} WHERE id = $1", order_id)
        return self._to_order(row) if row else None

    async def get_latest_order_code(self) -> Optional[str]:
        return await self.db.fetchval(
            f"SELECT code FROM {self._orders} ORDER BY created_at DESC, code DESC LIMIT 1"
        )

    async def list_orders(self, filters: OrderFilter) -> List[Order]:
        conditions = []
        params: List[Any] = []

        for column, value in (
            ("user_id", filters.user_id),
            ("status", _to_db(filters.status)),
            ("payment_status", _to_db(filters.payment_status)),
            ("code", filters.code),
        ):
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")
        if filters.created_from:
            params.append(filters.created_from)
            conditions.append(f"created_at >= ${len(params)}")
        if filters.created_to:
            params.append(filters.created_to)
            conditions.append(f"created_at <= ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.extend([filters.limit, filters.offset])
        query = (
            f"SELECT * FROM {self._orders} {where} "
            f"ORDER BY created_at DESC LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        )
        rows = await self.db.fetch(query, *params)
        return [self._to_order(row) for row in rows]

    async def update_order(self, order_id: str, updates: Dict[str, Any]) -> Optional[Order]:
        unknown = set(updates) - ORDER_UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update order columns: {sorted(unknown)}")

        assignments = []
        params: List[Any] = [order_id]
        for column, value in updates.items():
            params.append(_to_db(value))
            assignments.append(f"{column} = ${len(params)}")
        params.append(datetime.now(timezone.utc))
        assignments.append(f"updated_at = ${len(params)}")

        query = f"UPDATE {self._orders} SET {', '.join(assignments)} WHERE id = $1 RETURNING *"
        row = await self.db.fetchrow(query, *params)
        return self._to_order(row) if row else None

    async def mark_paid(self, order_id: str, payment_id: Optional[str]) -> Optional[Order]:
        query = f"""
            UPDATE {self._orders}
            SET payment_status = 'paid',
                payment_id = COALESCE($2, payment_id),
                status = CASE WHEN status = 'pending' THEN 'processing' ELSE status END,
                updated_at = $3
            WHERE id = $1 AND payment_status <> 'paid' AND status <> 'cancelled'
            RETURNING *
        """
        row = await self.db.fetchrow(query, order_id, payment_id, datetime.now(timezone.utc))
        return self._to_order(row) if row else None

    # ==================== Shipments ====================

    async def create_shipment(self, shipment: Shipment) -> Optional[Shipment]:
        """None when the seller group already has a shipment row"""
        now = datetime.now(timezone.utc)
        shipment = shipment.model_copy(update={"created_at": now, "updated_at": now})
        values = [_to_db(getattr(shipment, column)) for column in SHIPMENT_COLUMNS]
        placeholders = ", ".join(f"${i}" for i in range(1, len(SHIPMENT_COLUMNS) + 1))
        query = f"""
            INSERT INTO {self._shipments} ({", ".join(SHIPMENT_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT (order_id, seller_id) DO NOTHING
            RETURNING *
        """
        row = await self.db.fetchrow(query, *values)
        return self._to_shipment(row) if row else None

    async def list_shipments(self, order_id: str) -> List[Shipment]:
        rows = await self.db.fetch(
            f"SELECT * FROM {self._shipments} WHERE order_id = $1 ORDER BY code ASC",
            order_id,
        )
        return [self._to_shipment(row) for row in rows]

    async def claim_shipment(self, shipment_id: str, stale_before: datetime) -> Optional[Shipment]:
        """
        Move an unbooked shipment to booking, atomically

        Pending and failed rows without an AWB can be claimed, as can a
        booking row last touched before ``stale_before``. None means another
        caller holds the shipment or it is already booked.
        """
        query = f"""
            UPDATE {self._shipments}
            SET status = 'booking', updated_at = $2
            WHERE id = $1
              AND tracking_number IS NULL
              AND (status IN ('pending', 'failed') OR (status = 'booking' AND updated_at < $3))
            RETURNING *
        """
        row = await self.db.fetchrow(query, shipment_id, datetime.now(timezone.utc), stale_before)
        return self._to_shipment(row) if row else None

    async def update_shipment(self, shipment_id: str, updates: Dict[str, Any]) -> Optional[Shipment]:
        unknown = set(updates) - SHIPMENT_UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update shipment columns: {sorted(unknown)}")

        assignments = []
        params: List[Any] = [shipment_id]
        for column, value in updates.items():
            params.append(_to_db(value))
            assignments.append(f"{column} = ${len(params)}")
        params.append(datetime.now(timezone.utc))
        assignments.append(f"updated_at = ${len(params)}")

        query = f"UPDATE {self._shipments} SET {', '.join(assignments)} WHERE id = $1 RETURNING *"
        row = await self.db.fetchrow(query, *params)
        return self._to_shipment(row) if row else None

    async def get_shipment_by_tracking(self, tracking_number: str) -> Optional[Shipment]:
        row = await self.db.fetchrow(
            f"SELECT * FROM {self._shipments} WHERE tracking_number = $1",
            tracking_number,
        )
        return self._to_shipment(row) if row else None

    # ==================== Mapping ====================

    def _to_order(self, row: Dict[str, Any]) -> Order:
        return Order(**{column: row.get(column) for column in ORDER_COLUMNS if row.get(column) is not None})

    def _to_shipment(self, row: Dict[str, Any]) -> Shipment:
        return Shipment(**{column: row.get(column) for column in SHIPMENT_COLUMNS if row.get(column) is not None})
