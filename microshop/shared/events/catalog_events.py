# microshop/shared/events/catalog_events.py
"""
События каталога товаров.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import Field

from microshop.shared.events.base import DomainEvent


class ProductCreated(DomainEvent):
    """Событие: товар добавлен в каталог."""

    event_type: Literal["product.created"] = "product.created"

    product_id: str
    sku: str
    name: str
    price: Decimal
    currency: str = "EUR"


class ProductUpdated(DomainEvent):
    """Событие: товар изменён."""

    event_type: Literal["product.updated"] = "product.updated"

    product_id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class ProductDeleted(DomainEvent):
    """Событие: товар снят с продажи (soft delete)."""

    event_type: Literal["product.deleted"] = "product.deleted"

    product_id: str
