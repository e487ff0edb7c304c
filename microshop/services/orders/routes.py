# microshop/services/orders/routes.py
"""
HTTP API заказов.

Endpoints:
- POST  /api/orders                  - оформить заказ (заголовок Idempotency-Key)
- GET   /api/orders                  - список заказов (user_id, status, пагинация)
- GET   /api/orders/{id}             - заказ
- POST  /api/orders/{id}/cancel      - отменить заказ
- PATCH /api/orders/{id}/status      - сменить статус (администратор)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Response, status

from microshop.common.constants import IDEMPOTENCY_KEY_HEADER
from microshop.services.orders.dependencies import get_order_service
from microshop.services.orders.service import OrderService
from microshop.shared.models.common import ErrorResponse, PaginatedResponse, PaginationParams
from microshop.shared.models.order import (
    CancelOrderRequest,
    CreateOrderRequest,
    OrderDTO,
    OrderStatus,
    UpdateOrderStatusRequest,
)

router = APIRouter(prefix="/api/orders", tags=["Orders"])

OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]


@router.post(
    "",
    response_model=OrderDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": OrderDTO, "description": "Повтор запроса с тем же Idempotency-Key"},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Оформить заказ",
)
async def create_order(
    request: CreateOrderRequest,
    response: Response,
    service: OrderServiceDep,
    idempotency_key: Annotated[
        str | None,
        Header(alias=IDEMPOTENCY_KEY_HEADER, min_length=1, max_length=255),
    ] = None,
) -> OrderDTO:
    """
    Цены и итоги считаются на сервере. Без `items` заказ собирается из корзины.
    Повтор с тем же ключом и телом возвращает исходный заказ с кодом 200.
    """
    order, created = await service.create_order(request, idempotency_key)
    if not created:
        response.status_code = status.HTTP_200_OK
    return order


@router.get("", response_model=PaginatedResponse[OrderDTO], summary="Список заказов")
async def list_orders(
    service: OrderServiceDep,
    user_id: str | None = Query(default=None, max_length=100),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> PaginatedResponse[OrderDTO]:
    return await service.list_orders(
        PaginationParams(page=page, page_size=page_size),
        user_id=user_id,
        status=order_status,
    )


@router.get(
    "/{order_id}",
    response_model=OrderDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Заказ",
)
async def get_order(order_id: str, service: OrderServiceDep) -> OrderDTO:
    return await service.get_order(order_id)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderDTO,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Отменить заказ",
)
async def cancel_order(
    order_id: str,
    service: OrderServiceDep,
    request: CancelOrderRequest | None = None,
) -> OrderDTO:
    return await service.cancel_order(order_id, request.reason if request else None)


@router.patch(
    "/{order_id}/status",
    response_model=OrderDTO,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Сменить статус",
)
async def update_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    service: OrderServiceDep,
) -> OrderDTO:
    return await service.update_status(order_id, request.status)
