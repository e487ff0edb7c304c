# microshop/services/catalog/repository.py
"""
Репозиторий каталога (PostgreSQL).
Схема: catalog_schema
Таблицы: products
"""

from __future__ import annotations

from typing import Any

from asyncpg import Record

from microshop.infra.database import DatabaseManager

# Поля, которые разрешено менять через PATCH
UPDATABLE_FIELDS = ("name", "description", "category", "price", "is_active")


def like_pattern(value: str) -> str:
    """Подстрока для ILIKE: % и _ из ввода ищутся буквально (ESCAPE '\\')."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ProductRepository:
    """Репозиторий товаров."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create(
        self,
        sku: str,
        name: str,
        price: Any,
        currency: str,
        description: str | None = None,
        category: str | None = None,
    ) -> Record:
        """
        Создаёт товар.

        Raises:
            asyncpg.UniqueViolationError: sku уже существует
        """
        query = """
            INSERT INTO catalog_schema.products
                (sku, name, description, category, price, currency)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
        """
        return await self.db.fetchrow(query, sku, name, description, category, price, currency)

    async def get_by_id(self, product_id: str) -> Record | None:
        query = "SELECT * FROM catalog_schema.products WHERE id = $1::uuid"
        return await self.db.fetchrow(query, product_id)

    async def get_many(self, product_ids: list[str]) -> list[Record]:
        """Товары по списку ID (отсутствующие просто не возвращаются)."""
        if not product_ids:
            return []
        query = "SELECT * FROM catalog_schema.products WHERE id = ANY($1::uuid[])"
        return await self.db.fetch(query, product_ids)

    async def list_products(
        self,
        limit: int,
        offset: int,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = True,
    ) -> tuple[list[Record], int]:
        """Страница товаров (новые первыми) и общее количество."""
        conditions: list[str] = []
        args: list[Any] = []

        if active_only:
            conditions.append("is_active = TRUE")
        if category:
            args.append(category)
            conditions.append(f"category = ${len(args)}")
        if search:
            args.append(like_pattern(search))
            n = len(args)
            conditions.append(f"(name ILIKE ${n} ESCAPE '\\' OR sku ILIKE ${n} ESCAPE '\\')")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM catalog_schema.products {where}",
            *args,
        )
        rows = await self.db.fetch(
            f"""
            SELECT * FROM catalog_schema.products
            {where}
            ORDER BY created_at DESC, id
            LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
            """,
            *args,
            limit,
            offset,
        )
        return rows, int(total or 0)

    async def update(self, product_id: str, fields: dict[str, Any]) -> Record | None:
        """Частичное обновление. Возвращает новую версию или None."""
        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        if not changes:
            return await self.get_by_id(product_id)

        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(changes, start=2))
        query = f"""
            UPDATE catalog_schema.products
            SET {assignments}, updated_at = NOW()
            WHERE id = $1::uuid
            RETURNING *
        """
        return await self.db.fetchrow(query, product_id, *changes.values())

    async def soft_delete(self, product_id: str) -> Record | None:
        query = """
            UPDATE catalog_schema.products
            SET is_active = FALSE, updated_at = NOW()
            WHERE id = $1::uuid
            RETURNING *
        """
        return await self.db.fetchrow(query, product_id)
