# microshop/services/cart/dependencies.py
"""
Dependency Injection для Cart Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.event_bus import EventBus
    from microshop.infra.http_client import ServiceClient
    from microshop.infra.redis_client import RedisClient
    from microshop.services.cart.service import CartService


_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None
_catalog_client: "ServiceClient | None" = None

_cart_service: "CartService | None" = None


async def init_dependencies(
    redis: "RedisClient",
    event_bus: "EventBus",
    catalog_client: "ServiceClient",
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _redis, _event_bus, _catalog_client
    _redis = redis
    _event_bus = event_bus
    _catalog_client = catalog_client


def get_redis() -> "RedisClient":
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_event_bus() -> "EventBus":
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_catalog_client() -> "ServiceClient":
    if _catalog_client is None:
        raise RuntimeError("Клиент каталога не инициализирован. Вызовите init_dependencies()")
    return _catalog_client


def get_cart_service() -> "CartService":
    """Получить сервис корзины."""
    global _cart_service

    if _cart_service is None:
        from microshop.config import settings
        from microshop.services.cart.service import CartService

        _cart_service = CartService(
            redis=get_redis(),
            catalog=get_catalog_client(),
            cart_ttl=settings.redis_ttl.CART_TTL,
            max_items=settings.checkout.MAX_CART_ITEMS,
            max_quantity=settings.checkout.MAX_ITEM_QUANTITY,
            currency=settings.checkout.CURRENCY,
        )

    return _cart_service


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "redis": get_redis().health_check,
        "rabbitmq": get_event_bus().health_check,
    }


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _redis, _event_bus, _catalog_client, _cart_service
    if _catalog_client is not None:
        await _catalog_client.close()
    _cart_service = None
    _catalog_client = None
    _redis = None
    _event_bus = None
