# microshop/services/catalog/service.py
"""
Бизнес-логика каталога товаров.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import asyncpg

from microshop.common.exceptions import ConflictError, NotFoundError
from microshop.common.logger import log_info
from microshop.shared.events.catalog_events import ProductCreated, ProductDeleted, ProductUpdated
from microshop.shared.models.catalog import (
    ProductCreateRequest,
    ProductDTO,
    ProductUpdateRequest,
)
from microshop.shared.models.common import PaginatedResponse, PaginationParams, is_valid_uuid

if TYPE_CHECKING:
    from microshop.infra.event_bus import EventBus
    from microshop.infra.redis_client import RedisClient
    from microshop.services.catalog.repository import ProductRepository


def product_cache_key(product_id: str) -> str:
    return f"product:{product_id}"


def row_to_product(row: Mapping[str, Any]) -> ProductDTO:
    data = dict(row)
    data["id"] = str(data["id"])
    return ProductDTO.model_validate(data)


class CatalogService:
    """
    Сервис каталога.

    Ответственности:
    - CRUD товаров (удаление мягкое: is_active = false)
    - Кэш карточек товаров в Redis
    - Публикация событий product.*
    """

    def __init__(
        self,
        repository: "ProductRepository",
        redis: "RedisClient",
        event_bus: "EventBus",
        product_ttl: int = 300,
        default_currency: str = "EUR",
    ) -> None:
        self.repository = repository
        self.redis = redis
        self.event_bus = event_bus
        self.product_ttl = product_ttl
        self.default_currency = default_currency

    async def list_products(
        self,
        pagination: PaginationParams,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = True,
    ) -> PaginatedResponse[ProductDTO]:
        rows, total = await self.repository.list_products(
            limit=pagination.limit,
            offset=pagination.offset,
            category=category,
            search=search,
            active_only=active_only,
        )
        return PaginatedResponse[ProductDTO].create(
            items=[row_to_product(row) for row in rows],
            total=total,
            pagination=pagination,
        )

    async def get_product(self, product_id: str) -> ProductDTO:
        """
        Товар по ID (сначала из кэша).

        Raises:
            NotFoundError: product_not_found
        """
        cached = await self.redis.get_model(product_cache_key(product_id), ProductDTO)
        if cached is not None:
            return cached

        row = await self.repository.get_by_id(product_id) if is_valid_uuid(product_id) else None
        if row is None:
            raise NotFoundError(f"Товар {product_id} не найден", error_code="product_not_found")

        product = row_to_product(row)
        await self.redis.set_model(product_cache_key(product_id), product, ttl=self.product_ttl)
        return product

    async def get_products(self, product_ids: list[str]) -> list[ProductDTO]:
        """Товары по списку ID; неизвестные ID пропускаются."""
        unique_ids = list(dict.fromkeys(pid for pid in product_ids if is_valid_uuid(pid)))
        rows = await self.repository.get_many(unique_ids)
        return [row_to_product(row) for row in rows]

    async def create_product(self, request: ProductCreateRequest) -> ProductDTO:
        """
        Создаёт товар и публикует product.created.

        Raises:
            ConflictError: sku_conflict
        """
        try:
            row = await self.repository.create(
                sku=request.sku,
                name=request.name,
                description=request.description,
                category=request.category,
                price=request.price,
                currency=request.currency or self.default_currency,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Товар с SKU {request.sku} уже существует",
                error_code="sku_conflict",
                details={"sku": request.sku},
            ) from e

        product = row_to_product(row)
        await log_info(f"Товар создан: {product.id} ({product.sku})")

        await self.event_bus.publish(ProductCreated(
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            price=product.price,
            currency=product.currency,
        ))
        return product

    async def update_product(self, product_id: str, request: ProductUpdateRequest) -> ProductDTO:
        changes = request.model_dump(exclude_unset=True)
        # NULL допустим только для необязательных текстовых полей
        changes = {k: v for k, v in changes.items() if v is not None or k in ("description", "category")}

        row = await self.repository.update(product_id, changes) if is_valid_uuid(product_id) else None
        if row is None:
            raise NotFoundError(f"Товар {product_id} не найден", error_code="product_not_found")

        await self.redis.delete(product_cache_key(product_id))
        product = row_to_product(row)

        if changes:
            await self.event_bus.publish(ProductUpdated(
                product_id=product.id,
                changes={k: str(v) if v is not None else None for k, v in changes.items()},
            ))
        return product

    async def delete_product(self, product_id: str) -> ProductDTO:
        """Снимает товар с продажи (soft delete)."""
        row = await self.repository.soft_delete(product_id) if is_valid_uuid(product_id) else None
        if row is None:
            raise NotFoundError(f"Товар {product_id} не найден", error_code="product_not_found")

        await self.redis.delete(product_cache_key(product_id))
        await log_info(f"Товар снят с продажи: {product_id}")

        await self.event_bus.publish(ProductDeleted(product_id=product_id))
        return row_to_product(row)
