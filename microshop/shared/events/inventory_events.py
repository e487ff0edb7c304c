# microshop/shared/events/inventory_events.py
"""
События склада.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from microshop.shared.events.base import DomainEvent
from microshop.shared.models.inventory import ReservationItem


class StockReserved(DomainEvent):
    """Событие: товар зарезервирован под заказ."""

    event_type: Literal["stock.reserved"] = "stock.reserved"

    order_id: str
    items: list[ReservationItem] = Field(default_factory=list)


class StockReleased(DomainEvent):
    """Событие: резерв снят."""

    event_type: Literal["stock.released"] = "stock.released"

    order_id: str
    items: list[ReservationItem] = Field(default_factory=list)


class StockCommitted(DomainEvent):
    """Событие: резерв списан со склада."""

    event_type: Literal["stock.committed"] = "stock.committed"

    order_id: str
    items: list[ReservationItem] = Field(default_factory=list)


class StockLow(DomainEvent):
    """Событие: доступный остаток опустился до порога."""

    event_type: Literal["stock.low"] = "stock.low"

    product_id: str
    available: int
    threshold: int
