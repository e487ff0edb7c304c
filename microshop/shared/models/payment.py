# microshop/shared/models/payment.py
"""
DTO для платежей.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """Способ оплаты."""
    CARD = "card"
    WALLET = "wallet"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(str, Enum):
    """Статус платежа."""
    PENDING = "pending"  # Ожидает подтверждения провайдера
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentDTO(BaseModel):
    """DTO платежа для межсервисного взаимодействия."""

    id: str  # UUID
    order_id: str
    user_id: str

    amount: Decimal
    currency: str = "EUR"

    method: PaymentMethod = PaymentMethod.CARD
    status: PaymentStatus = PaymentStatus.PENDING

    provider_charge_id: str | None = None
    error_message: str | None = None

    created_at: datetime | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None

    class Config:
        from_attributes = True


class PaymentCreateRequest(BaseModel):
    """Запрос на создание платежа. Сумма берётся из заказа."""

    order_id: str = Field(min_length=1)
    method: PaymentMethod = PaymentMethod.CARD


class PaymentConfirmRequest(BaseModel):
    """Результат от платёжного провайдера."""

    success: bool
    provider_charge_id: str | None = None
    error_message: str | None = Field(default=None, max_length=500)


class RefundRequest(BaseModel):
    """Запрос на возврат."""

    reason: str | None = Field(default=None, max_length=500)
