# microshop/shared/models/inventory.py
"""
DTO склада и резервирований.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class StockDTO(BaseModel):
    """Остаток товара."""

    product_id: str
    quantity_on_hand: int = Field(default=0, ge=0)
    quantity_reserved: int = Field(default=0, ge=0)
    updated_at: datetime | None = None

    @computed_field  # type: ignore[misc]
    @property
    def available(self) -> int:
        return self.quantity_on_hand - self.quantity_reserved

    class Config:
        from_attributes = True


class SetStockRequest(BaseModel):
    """Установка абсолютного остатка."""

    quantity_on_hand: int = Field(ge=0)


class AdjustStockRequest(BaseModel):
    """Относительное изменение остатка (приход/списание)."""

    delta: int
    reason: str | None = Field(default=None, max_length=200)


class ReservationStatus(str, Enum):
    """Статус резерва."""
    ACTIVE = "active"
    COMMITTED = "committed"  # Товар списан (заказ оплачен)
    RELEASED = "released"  # Резерв снят


class ReservationItem(BaseModel):
    """Позиция резерва."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class ReservationDTO(BaseModel):
    """Резерв под заказ."""

    order_id: str
    items: list[ReservationItem]
    status: ReservationStatus = ReservationStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReserveStockRequest(BaseModel):
    """Запрос на резервирование (всё или ничего)."""

    order_id: str = Field(min_length=1)
    items: list[ReservationItem] = Field(min_length=1)
