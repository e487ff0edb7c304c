# microshop/shared/events/order_events.py
"""
События домена заказов.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field

from microshop.shared.events.base import DomainEvent
from microshop.shared.models.inventory import ReservationItem


class OrderPlaced(DomainEvent):
    """Событие: заказ оформлен."""

    event_type: Literal["order.placed"] = "order.placed"

    order_id: str
    user_id: str
    total: Decimal
    currency: str = "EUR"
    items: list[ReservationItem] = Field(default_factory=list)
    from_cart: bool = False  # заказ собран из корзины


class OrderStatusChanged(DomainEvent):
    """Событие: статус заказа изменён."""

    event_type: Literal["order.status_changed"] = "order.status_changed"

    order_id: str
    old_status: str
    new_status: str


class OrderCancelled(DomainEvent):
    """Событие: заказ отменён."""

    event_type: Literal["order.cancelled"] = "order.cancelled"

    order_id: str
    user_id: str
    previous_status: str
    reason: str | None = None
