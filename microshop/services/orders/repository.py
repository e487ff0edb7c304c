# microshop/services/orders/repository.py
"""
Репозиторий заказов (PostgreSQL).
Схема: orders_schema
Таблицы: orders
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from asyncpg import Record

from microshop.infra.database import DatabaseManager


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create(
        self,
        order_id: str,
        user_id: str,
        items: list[dict[str, Any]],
        subtotal: Decimal,
        tax: Decimal,
        shipping: Decimal,
        total: Decimal,
        currency: str,
        shipping_address: dict[str, Any],
        idempotency_key: str | None = None,
        request_fingerprint: str | None = None,
    ) -> Record:
        """
        Создаёт заказ в статусе pending.

        Raises:
            asyncpg.UniqueViolationError: заказ с таким idempotency_key уже есть
        """
        query = """
            INSERT INTO orders_schema.orders (
                id, user_id, status, items,
                subtotal, tax, shipping, total, currency,
                shipping_address, idempotency_key, request_fingerprint
            )
            VALUES ($1::uuid, $2, 'pending', $3::jsonb, $4, $5, $6, $7, $8, $9::jsonb, $10, $11)
            RETURNING *
        """
        return await self.db.fetchrow(
            query,
            order_id,
            user_id,
            json.dumps(items, default=str),
            subtotal,
            tax,
            shipping,
            total,
            currency,
            json.dumps(shipping_address),
            idempotency_key,
            request_fingerprint,
        )

    async def get_by_id(self, order_id: str) -> Record | None:
        query = "SELECT * FROM orders_schema.orders WHERE id = $1::uuid"
        return await self.db.fetchrow(query, order_id)

    async def get_by_idempotency_key(self, idempotency_key: str) -> Record | None:
        query = "SELECT * FROM orders_schema.orders WHERE idempotency_key = $1"
        return await self.db.fetchrow(query, idempotency_key)

    async def list_orders(
        self,
        limit: int,
        offset: int,
        user_id: str | None = None,
        status: str | None = None,
    ) -> tuple[list[Record], int]:
        """Страница заказов (новые первыми) и общее количество."""
        conditions: list[str] = []
        args: list[Any] = []

        if user_id:
            args.append(user_id)
            conditions.append(f"user_id = ${len(args)}")
        if status:
            args.append(status)
            conditions.append(f"status = ${len(args)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM orders_schema.orders {where}",
            *args,
        )
        rows = await self.db.fetch(
            f"""
            SELECT * FROM orders_schema.orders
            {where}
            ORDER BY created_at DESC, id
            LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
            """,
            *args,
            limit,
            offset,
        )
        return rows, int(total or 0)

    async def update_status(
        self,
        order_id: str,
        expected_status: str,
        new_status: str,
        timestamp_column: str,
        payment_id: str | None = None,
        cancellation_reason: str | None = None,
    ) -> Record | None:
        """
        Меняет статус, только если текущий равен expected_status.

        Returns:
            Новая версия заказа или None, если статус уже изменён другим запросом
        """
        query = f"""
            UPDATE orders_schema.orders
            SET status = $3,
                {timestamp_column} = NOW(),
                payment_id = COALESCE($4, payment_id),
                cancellation_reason = COALESCE($5, cancellation_reason),
                updated_at = NOW()
            WHERE id = $1::uuid AND status = $2
            RETURNING *
        """
        return await self.db.fetchrow(
            query,
            order_id,
            expected_status,
            new_status,
            payment_id,
            cancellation_reason,
        )
