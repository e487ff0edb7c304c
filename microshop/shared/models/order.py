# microshop/shared/models/order.py
"""
DTO заказов.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """Статус заказа."""
    PENDING = "pending"  # Создан, ожидает оплаты
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"  # Терминальный
    CANCELLED = "cancelled"  # Терминальный


class ShippingAddress(BaseModel):
    """Адрес доставки."""

    recipient: str = Field(min_length=1, max_length=200)
    line1: str = Field(min_length=1, max_length=200)
    line2: str | None = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=2)


class OrderItemDTO(BaseModel):
    """Позиция заказа с ценой на момент оформления."""

    product_id: str
    sku: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderDTO(BaseModel):
    """Заказ."""

    id: str  # UUID
    user_id: str
    status: OrderStatus = OrderStatus.PENDING
    items: list[OrderItemDTO] = Field(default_factory=list)

    # Суммы (рассчитываются на сервере)
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    currency: str = "EUR"

    shipping_address: ShippingAddress
    idempotency_key: str | None = None
    payment_id: str | None = None
    cancellation_reason: str | None = None

    # Временные метки
    created_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    class Config:
        from_attributes = True


class OrderItemRequest(BaseModel):
    """Позиция в запросе на создание заказа. Цену клиент не передаёт."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    """Запрос на оформление заказа. Без items берётся корзина пользователя."""

    user_id: str = Field(min_length=1)
    items: list[OrderItemRequest] | None = Field(default=None, max_length=100)
    shipping_address: ShippingAddress


class CancelOrderRequest(BaseModel):
    """Отмена заказа."""

    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    """Ручная смена статуса (администратор)."""

    status: OrderStatus
