# microshop/services/orders/dependencies.py
"""
Dependency Injection для Order Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.database import DatabaseManager
    from microshop.infra.event_bus import EventBus
    from microshop.infra.http_client import ServiceClient
    from microshop.infra.redis_client import RedisClient
    from microshop.services.orders.service import OrderService


_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None

# Клиенты upstream-сервисов
_clients: "dict[str, ServiceClient]" = {}

_order_service: "OrderService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
    catalog_client: "ServiceClient",
    cart_client: "ServiceClient",
    inventory_client: "ServiceClient",
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus
    _db = db
    _redis = redis
    _event_bus = event_bus
    _clients["catalog"] = catalog_client
    _clients["cart"] = cart_client
    _clients["inventory"] = inventory_client


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


def get_client(name: str) -> "ServiceClient":
    client = _clients.get(name)
    if client is None:
        raise RuntimeError(f"Клиент {name} не инициализирован. Вызовите init_dependencies()")
    return client


def get_order_service() -> "OrderService":
    """Получить сервис заказов."""
    global _order_service

    if _order_service is None:
        from microshop.config import settings
        from microshop.services.orders.idempotency import IdempotencyStore
        from microshop.services.orders.pricing import PricingRules
        from microshop.services.orders.repository import OrderRepository
        from microshop.services.orders.service import OrderService

        checkout = settings.checkout
        _order_service = OrderService(
            repository=OrderRepository(get_db()),
            event_bus=get_event_bus(),
            idempotency=IdempotencyStore(get_redis(), ttl=settings.redis_ttl.IDEMPOTENCY_TTL),
            catalog=get_client("catalog"),
            cart=get_client("cart"),
            inventory=get_client("inventory"),
            pricing=PricingRules(
                tax_rate_percent=checkout.TAX_RATE_PERCENT,
                free_shipping_threshold=checkout.FREE_SHIPPING_THRESHOLD,
                shipping_fee=checkout.SHIPPING_FEE,
                currency=checkout.CURRENCY,
            ),
        )

    return _order_service


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "postgres": get_db().health_check,
        "redis": get_redis().health_check,
        "rabbitmq": get_event_bus().health_check,
    }


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _db, _redis, _event_bus, _order_service
    for client in _clients.values():
        await client.close()
    _clients.clear()
    _order_service = None
    _db = None
    _redis = None
    _event_bus = None
