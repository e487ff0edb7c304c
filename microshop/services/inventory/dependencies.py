# microshop/services/inventory/dependencies.py
"""
Dependency Injection для Inventory Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.database import DatabaseManager
    from microshop.infra.event_bus import EventBus
    from microshop.services.inventory.service import InventoryService


_db: "DatabaseManager | None" = None
_event_bus: "EventBus | None" = None

_inventory_service: "InventoryService | None" = None


async def init_dependencies(db: "DatabaseManager", event_bus: "EventBus") -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _event_bus
    _db = db
    _event_bus = event_bus


def get_db() -> "DatabaseManager":
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_event_bus() -> "EventBus":
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_inventory_service() -> "InventoryService":
    """Получить сервис склада."""
    global _inventory_service

    if _inventory_service is None:
        from microshop.config import settings
        from microshop.services.inventory.repository import InventoryRepository
        from microshop.services.inventory.service import InventoryService

        _inventory_service = InventoryService(
            repository=InventoryRepository(get_db()),
            event_bus=get_event_bus(),
            low_stock_threshold=settings.checkout.LOW_STOCK_THRESHOLD,
        )

    return _inventory_service


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "postgres": get_db().health_check,
        "rabbitmq": get_event_bus().health_check,
    }


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _db, _event_bus, _inventory_service
    _inventory_service = None
    _db = None
    _event_bus = None
