# microshop/shared/events/__init__.py
"""
Схемы событий для RabbitMQ.

События разделены по доменам:
- catalog_events: создание, изменение, снятие товара с продажи
- inventory_events: резервирование, списание, низкий остаток
- order_events: оформление, смена статуса, отмена
- payment_events: запрос оплаты, успех, неудача, возврат

Все события содержат event_id для дедупликации.
"""

from microshop.shared.events.base import DomainEvent, EventMetadata
from microshop.shared.events.catalog_events import (
    ProductCreated,
    ProductUpdated,
    ProductDeleted,
)
from microshop.shared.events.inventory_events import (
    StockReserved,
    StockReleased,
    StockCommitted,
    StockLow,
)
from microshop.shared.events.order_events import (
    OrderPlaced,
    OrderStatusChanged,
    OrderCancelled,
)
from microshop.shared.events.payment_events import (
    PaymentRequested,
    PaymentSucceeded,
    PaymentFailed,
    PaymentRefunded,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    # Catalog events
    "ProductCreated",
    "ProductUpdated",
    "ProductDeleted",
    # Inventory events
    "StockReserved",
    "StockReleased",
    "StockCommitted",
    "StockLow",
    # Order events
    "OrderPlaced",
    "OrderStatusChanged",
    "OrderCancelled",
    # Payment events
    "PaymentRequested",
    "PaymentSucceeded",
    "PaymentFailed",
    "PaymentRefunded",
]
