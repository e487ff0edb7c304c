# microshop/services/catalog/routes.py
"""
HTTP API каталога.

Endpoints:
- GET    /api/catalog/items            - список товаров (пагинация, фильтры)
- GET    /api/catalog/items/{id}       - карточка товара
- POST   /api/catalog/items/batch      - товары по списку ID
- POST   /api/catalog/items            - создать товар
- PATCH  /api/catalog/items/{id}       - изменить товар
- DELETE /api/catalog/items/{id}       - снять с продажи
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from microshop.services.catalog.dependencies import get_catalog_service
from microshop.services.catalog.service import CatalogService
from microshop.shared.models.catalog import (
    ProductBatchRequest,
    ProductCreateRequest,
    ProductDTO,
    ProductUpdateRequest,
)
from microshop.shared.models.common import ErrorResponse, PaginatedResponse, PaginationParams

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])

CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


@router.get("/items", response_model=PaginatedResponse[ProductDTO], summary="Список товаров")
async def list_items(
    service: CatalogServiceDep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    category: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=100),
    active_only: bool = True,
) -> PaginatedResponse[ProductDTO]:
    """Товары, новые первыми. `search` ищет по названию и SKU."""
    return await service.list_products(
        PaginationParams(page=page, page_size=page_size),
        category=category,
        search=search,
        active_only=active_only,
    )


@router.get(
    "/items/{product_id}",
    response_model=ProductDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Карточка товара",
)
async def get_item(product_id: str, service: CatalogServiceDep) -> ProductDTO:
    return await service.get_product(product_id)


@router.post("/items/batch", response_model=list[ProductDTO], summary="Товары по списку ID")
async def get_items_batch(request: ProductBatchRequest, service: CatalogServiceDep) -> list[ProductDTO]:
    """Используется корзиной и заказами для актуальных цен."""
    return await service.get_products(request.ids)


@router.post(
    "/items",
    response_model=ProductDTO,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Создать товар",
)
async def create_item(request: ProductCreateRequest, service: CatalogServiceDep) -> ProductDTO:
    return await service.create_product(request)


@router.patch(
    "/items/{product_id}",
    response_model=ProductDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Изменить товар",
)
async def update_item(
    product_id: str,
    request: ProductUpdateRequest,
    service: CatalogServiceDep,
) -> ProductDTO:
    return await service.update_product(product_id, request)


@router.delete(
    "/items/{product_id}",
    response_model=ProductDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Снять товар с продажи",
)
async def delete_item(product_id: str, service: CatalogServiceDep) -> ProductDTO:
    return await service.delete_product(product_id)
