# microshop/services/cart/routes.py
"""
HTTP API корзины.

Endpoints:
- GET    /api/cart/{user_id}                       - корзина
- POST   /api/cart/{user_id}/items                 - добавить товар
- PATCH  /api/cart/{user_id}/items/{product_id}    - изменить количество (0 удаляет позицию)
- DELETE /api/cart/{user_id}/items/{product_id}    - удалить позицию
- DELETE /api/cart/{user_id}                       - очистить корзину
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from microshop.services.cart.dependencies import get_cart_service
from microshop.services.cart.service import CartService
from microshop.shared.models.cart import AddCartItemRequest, CartDTO, UpdateCartItemRequest
from microshop.shared.models.common import ErrorResponse

router = APIRouter(prefix="/api/cart", tags=["Cart"])

CartServiceDep = Annotated[CartService, Depends(get_cart_service)]


@router.get("/{user_id}", response_model=CartDTO, summary="Корзина пользователя")
async def get_cart(user_id: str, service: CartServiceDep) -> CartDTO:
    return await service.get_cart(user_id)


@router.post(
    "/{user_id}/items",
    response_model=CartDTO,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Добавить товар",
)
async def add_item(user_id: str, request: AddCartItemRequest, service: CartServiceDep) -> CartDTO:
    """Цена берётся из каталога. Повторное добавление увеличивает количество."""
    return await service.add_item(user_id, request)


@router.patch(
    "/{user_id}/items/{product_id}",
    response_model=CartDTO,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Изменить количество",
)
async def update_item(
    user_id: str,
    product_id: str,
    request: UpdateCartItemRequest,
    service: CartServiceDep,
) -> CartDTO:
    return await service.update_item(user_id, product_id, request.quantity)


@router.delete(
    "/{user_id}/items/{product_id}",
    response_model=CartDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Удалить позицию",
)
async def remove_item(user_id: str, product_id: str, service: CartServiceDep) -> CartDTO:
    return await service.remove_item(user_id, product_id)


@router.delete("/{user_id}", response_model=CartDTO, summary="Очистить корзину")
async def clear_cart(user_id: str, service: CartServiceDep) -> CartDTO:
    return await service.clear_cart(user_id)
