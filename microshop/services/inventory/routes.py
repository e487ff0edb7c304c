# microshop/services/inventory/routes.py
"""
HTTP API склада.

Endpoints:
- GET  /api/inventory/{product_id}                         - остаток
- PUT  /api/inventory/{product_id}                         - установить остаток
- POST /api/inventory/{product_id}/adjust                  - изменить остаток на delta
- POST /api/inventory/reservations                         - зарезервировать под заказ
- GET  /api/inventory/reservations/{order_id}              - резерв заказа
- POST /api/inventory/reservations/{order_id}/commit       - списать резерв
- POST /api/inventory/reservations/{order_id}/release      - снять резерв
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from microshop.services.inventory.dependencies import get_inventory_service
from microshop.services.inventory.service import InventoryService
from microshop.shared.models.common import ErrorResponse
from microshop.shared.models.inventory import (
    AdjustStockRequest,
    ReservationDTO,
    ReserveStockRequest,
    SetStockRequest,
    StockDTO,
)

router = APIRouter(prefix="/api/inventory", tags=["Inventory"])

InventoryServiceDep = Annotated[InventoryService, Depends(get_inventory_service)]


# === РЕЗЕРВЫ ===

@router.post(
    "/reservations",
    response_model=ReservationDTO,
    responses={409: {"model": ErrorResponse}},
    summary="Зарезервировать товары",
)
async def reserve_stock(request: ReserveStockRequest, service: InventoryServiceDep) -> ReservationDTO:
    """
    Резерв «всё или ничего». При нехватке 409 `insufficient_stock`
    с перечнем товаров в `details.items`. Повтор с тем же `order_id`
    возвращает существующий резерв.
    """
    return await service.reserve(request)


@router.get(
    "/reservations/{order_id}",
    response_model=ReservationDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Резерв заказа",
)
async def get_reservation(order_id: str, service: InventoryServiceDep) -> ReservationDTO:
    return await service.get_reservation(order_id)


@router.post(
    "/reservations/{order_id}/commit",
    response_model=ReservationDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Списать резерв",
)
async def commit_reservation(order_id: str, service: InventoryServiceDep) -> ReservationDTO:
    return await service.commit(order_id)


@router.post(
    "/reservations/{order_id}/release",
    response_model=ReservationDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Снять резерв",
)
async def release_reservation(order_id: str, service: InventoryServiceDep) -> ReservationDTO:
    return await service.release(order_id)


# === ОСТАТКИ ===

@router.get("/{product_id}", response_model=StockDTO, summary="Остаток товара")
async def get_stock(product_id: str, service: InventoryServiceDep) -> StockDTO:
    return await service.get_stock(product_id)


@router.put(
    "/{product_id}",
    response_model=StockDTO,
    responses={409: {"model": ErrorResponse}},
    summary="Установить остаток",
)
async def set_stock(product_id: str, request: SetStockRequest, service: InventoryServiceDep) -> StockDTO:
    return await service.set_stock(product_id, request.quantity_on_hand)


@router.post(
    "/{product_id}/adjust",
    response_model=StockDTO,
    responses={409: {"model": ErrorResponse}},
    summary="Изменить остаток",
)
async def adjust_stock(product_id: str, request: AdjustStockRequest, service: InventoryServiceDep) -> StockDTO:
    return await service.adjust_stock(product_id, request.delta, request.reason)
