# microshop/shared/events/payment_events.py
"""
События домена платежей.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from microshop.shared.events.base import DomainEvent


class PaymentRequested(DomainEvent):
    """Событие: запрос на оплату."""

    event_type: Literal["payment.requested"] = "payment.requested"

    payment_id: str
    order_id: str
    user_id: str
    amount: Decimal
    currency: str = "EUR"
    payment_method: str = "card"


class PaymentSucceeded(DomainEvent):
    """Событие: оплата успешна."""

    event_type: Literal["payment.succeeded"] = "payment.succeeded"

    payment_id: str
    order_id: str
    user_id: str
    amount: Decimal
    currency: str = "EUR"
    provider_charge_id: str | None = None


class PaymentFailed(DomainEvent):
    """Событие: оплата не прошла."""

    event_type: Literal["payment.failed"] = "payment.failed"

    payment_id: str
    order_id: str
    user_id: str
    error_message: str | None = None


class PaymentRefunded(DomainEvent):
    """Событие: средства возвращены."""

    event_type: Literal["payment.refunded"] = "payment.refunded"

    payment_id: str
    order_id: str
    user_id: str
    amount: Decimal
    currency: str = "EUR"
    reason: str | None = None
