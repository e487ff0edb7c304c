# microshop/services/inventory/repository.py
"""
Репозиторий склада (PostgreSQL).
Схема: inventory_schema
Таблицы: stock, reservations, stock_movements
"""

from __future__ import annotations

import json
from typing import Any, AsyncContextManager

from asyncpg import Connection, Record

from microshop.infra.database import DatabaseManager


class InventoryRepository:
    """
    Репозиторий остатков и резервов.

    Методы, принимающие conn, выполняются внутри транзакции вызывающего кода.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    def transaction(self) -> AsyncContextManager[Connection]:
        return self.db.transaction()

    # =========================================================================
    # ОСТАТКИ
    # =========================================================================

    async def get_stock(self, product_id: str) -> Record | None:
        query = "SELECT * FROM inventory_schema.stock WHERE product_id = $1"
        return await self.db.fetchrow(query, product_id)

    async def ensure_stock(self, product_id: str, conn: Connection | None = None) -> None:
        """Создаёт нулевую запись остатка, если её ещё нет."""
        query = """
            INSERT INTO inventory_schema.stock (product_id)
            VALUES ($1)
            ON CONFLICT (product_id) DO NOTHING
        """
        if conn is None:
            await self.db.execute(query, product_id)
        else:
            await conn.execute(query, product_id)

    async def lock_stock(self, conn: Connection, product_ids: list[str]) -> dict[str, Record]:
        """
        Блокирует строки остатков (SELECT ... FOR UPDATE).

        Строки блокируются в порядке product_id, чтобы параллельные
        резервы не взаимоблокировались.
        """
        query = """
            SELECT * FROM inventory_schema.stock
            WHERE product_id = ANY($1::text[])
            ORDER BY product_id
            FOR UPDATE
        """
        rows = await conn.fetch(query, sorted(set(product_ids)))
        return {row["product_id"]: row for row in rows}

    async def update_stock(
        self,
        conn: Connection,
        product_id: str,
        quantity_on_hand: int,
        quantity_reserved: int,
    ) -> Record:
        query = """
            UPDATE inventory_schema.stock
            SET quantity_on_hand = $2, quantity_reserved = $3, updated_at = NOW()
            WHERE product_id = $1
            RETURNING *
        """
        return await conn.fetchrow(query, product_id, quantity_on_hand, quantity_reserved)

    async def add_movement(
        self,
        conn: Connection,
        product_id: str,
        delta: int,
        reason: str,
        order_id: str | None = None,
    ) -> None:
        """Журнал движения остатков."""
        query = """
            INSERT INTO inventory_schema.stock_movements (product_id, delta, reason, order_id)
            VALUES ($1, $2, $3, $4)
        """
        await conn.execute(query, product_id, delta, reason, order_id)

    # =========================================================================
    # РЕЗЕРВЫ
    # =========================================================================

    async def get_reservation(self, order_id: str) -> Record | None:
        query = "SELECT * FROM inventory_schema.reservations WHERE order_id = $1"
        return await self.db.fetchrow(query, order_id)

    async def lock_reservation(self, conn: Connection, order_id: str) -> Record | None:
        query = "SELECT * FROM inventory_schema.reservations WHERE order_id = $1 FOR UPDATE"
        return await conn.fetchrow(query, order_id)

    async def create_reservation(
        self,
        conn: Connection,
        order_id: str,
        items: list[dict[str, Any]],
    ) -> Record:
        """
        Raises:
            asyncpg.UniqueViolationError: резерв для order_id уже создан параллельно
        """
        query = """
            INSERT INTO inventory_schema.reservations (order_id, status, items)
            VALUES ($1, 'active', $2::jsonb)
            RETURNING *
        """
        return await conn.fetchrow(query, order_id, json.dumps(items))

    async def set_reservation_status(self, conn: Connection, order_id: str, status: str) -> Record:
        query = """
            UPDATE inventory_schema.reservations
            SET status = $2, updated_at = NOW()
            WHERE order_id = $1
            RETURNING *
        """
        return await conn.fetchrow(query, order_id, status)
