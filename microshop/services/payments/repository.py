# microshop/services/payments/repository.py
"""
Репозиторий платежей (PostgreSQL).
Схема: payments_schema
Таблицы: payments
"""

from __future__ import annotations

from decimal import Decimal

from asyncpg import Record

from microshop.infra.database import DatabaseManager

# Платежи, которые блокируют создание нового платежа по заказу
ACTIVE_STATUSES = ("pending", "succeeded")


class PaymentRepository:
    """Репозиторий платежей."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create(
        self,
        order_id: str,
        user_id: str,
        amount: Decimal,
        currency: str,
        method: str,
    ) -> Record:
        """
        Создаёт платёж в статусе pending.

        Raises:
            asyncpg.UniqueViolationError: по заказу уже есть активный платёж
        """
        query = """
            INSERT INTO payments_schema.payments (order_id, user_id, amount, currency, method, status)
            VALUES ($1, $2, $3, $4, $5, 'pending')
            RETURNING *
        """
        return await self.db.fetchrow(query, order_id, user_id, amount, currency, method)

    async def get_by_id(self, payment_id: str) -> Record | None:
        query = "SELECT * FROM payments_schema.payments WHERE id = $1::uuid"
        return await self.db.fetchrow(query, payment_id)

    async def get_by_order(self, order_id: str) -> list[Record]:
        """Все платежи заказа, новые первыми."""
        query = """
            SELECT * FROM payments_schema.payments
            WHERE order_id = $1
            ORDER BY created_at DESC
        """
        return await self.db.fetch(query, order_id)

    async def get_active_for_order(self, order_id: str) -> Record | None:
        query = """
            SELECT * FROM payments_schema.payments
            WHERE order_id = $1 AND status = ANY($2::text[])
            ORDER BY created_at DESC
            LIMIT 1
        """
        return await self.db.fetchrow(query, order_id, list(ACTIVE_STATUSES))

    async def update_status(
        self,
        payment_id: str,
        expected_status: str,
        new_status: str,
        provider_charge_id: str | None = None,
        error_message: str | None = None,
    ) -> Record | None:
        """
        Меняет статус, только если текущий равен expected_status.

        Returns:
            Новая версия платежа или None, если статус уже изменён
        """
        query = """
            UPDATE payments_schema.payments
            SET status = $3::text,
                provider_charge_id = COALESCE($4, provider_charge_id),
                error_message = COALESCE($5, error_message),
                paid_at = CASE WHEN $3::text = 'succeeded' THEN NOW() ELSE paid_at END,
                refunded_at = CASE WHEN $3::text = 'refunded' THEN NOW() ELSE refunded_at END,
                updated_at = NOW()
            WHERE id = $1::uuid AND status = $2
            RETURNING *
        """
        return await self.db.fetchrow(
            query,
            payment_id,
            expected_status,
            new_status,
            provider_charge_id,
            error_message,
        )
