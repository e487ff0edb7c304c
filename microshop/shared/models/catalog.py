# microshop/shared/models/catalog.py
"""
DTO каталога товаров.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from microshop.shared.models.common import quantize_money


def _positive_money(v: Decimal) -> Decimal:
    """Округляет цену до центов; после округления она должна остаться > 0."""
    rounded = quantize_money(v)
    if rounded <= 0:
        raise ValueError("Цена после округления до центов должна быть больше 0")
    return rounded


class ProductDTO(BaseModel):
    """Товар каталога."""

    id: str  # UUID
    sku: str
    name: str
    description: str | None = None
    category: str | None = None
    price: Decimal
    currency: str = "EUR"
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ProductCreateRequest(BaseModel):
    """Запрос на создание товара."""

    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    category: str | None = Field(default=None, max_length=100)
    price: Decimal = Field(gt=0)
    currency: str | None = Field(default=None, pattern=r"^[A-Z]{3}$")

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal) -> Decimal:
        return _positive_money(v)


class ProductUpdateRequest(BaseModel):
    """Частичное обновление товара (передаются только изменяемые поля)."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    category: str | None = Field(default=None, max_length=100)
    price: Decimal | None = Field(default=None, gt=0)
    is_active: bool | None = None

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal | None) -> Decimal | None:
        return _positive_money(v) if v is not None else None


class ProductBatchRequest(BaseModel):
    """Запрос товаров по списку ID."""

    ids: list[str] = Field(min_length=1, max_length=200)
