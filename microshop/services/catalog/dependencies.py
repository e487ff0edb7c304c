# microshop/services/catalog/dependencies.py
"""
Dependency Injection для Catalog Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.database import DatabaseManager
    from microshop.infra.event_bus import EventBus
    from microshop.infra.redis_client import RedisClient
    from microshop.services.catalog.service import CatalogService


_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None

_catalog_service: "CatalogService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus
    _db = db
    _redis = redis
    _event_bus = event_bus


def get_db() -> "DatabaseManager":
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_redis() -> "RedisClient":
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_event_bus() -> "EventBus":
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_catalog_service() -> "CatalogService":
    """Получить сервис каталога."""
    global _catalog_service

    if _catalog_service is None:
        from microshop.config import settings
        from microshop.services.catalog.repository import ProductRepository
        from microshop.services.catalog.service import CatalogService

        _catalog_service = CatalogService(
            repository=ProductRepository(get_db()),
            redis=get_redis(),
            event_bus=get_event_bus(),
            product_ttl=settings.redis_ttl.PRODUCT_TTL,
            default_currency=settings.checkout.CURRENCY,
        )

    return _catalog_service


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "postgres": get_db().health_check,
        "redis": get_redis().health_check,
        "rabbitmq": get_event_bus().health_check,
    }


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _db, _redis, _event_bus, _catalog_service
    _catalog_service = None
    _db = None
    _redis = None
    _event_bus = None
