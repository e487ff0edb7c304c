# microshop/shared/models/cart.py
"""
DTO корзины покупателя.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from microshop.shared.models.common import quantize_money


class CartItemDTO(BaseModel):
    """Позиция корзины. Цена зафиксирована в момент добавления."""

    product_id: str
    sku: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal

    @computed_field  # type: ignore[misc]
    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)


class CartDTO(BaseModel):
    """Корзина пользователя."""

    user_id: str
    items: list[CartItemDTO] = Field(default_factory=list)
    currency: str = "EUR"
    updated_at: datetime | None = None

    @computed_field  # type: ignore[misc]
    @property
    def subtotal(self) -> Decimal:
        return quantize_money(sum((item.line_total for item in self.items), Decimal("0")))

    @computed_field  # type: ignore[misc]
    @property
    def items_count(self) -> int:
        return sum(item.quantity for item in self.items)


class AddCartItemRequest(BaseModel):
    """Добавление товара в корзину."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)


class UpdateCartItemRequest(BaseModel):
    """Новое количество позиции (0 удаляет позицию)."""

    quantity: int = Field(ge=0)
