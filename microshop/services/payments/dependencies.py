# microshop/services/payments/dependencies.py
"""
Dependency Injection для Payment Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.database import DatabaseManager
    from microshop.infra.event_bus import EventBus
    from microshop.infra.http_client import ServiceClient
    from microshop.infra.redis_client import RedisClient
    from microshop.services.payments.service import PaymentService


_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None
_order_client: "ServiceClient | None" = None

_payment_service: "PaymentService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
    order_client: "ServiceClient",
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus, _order_client
    _db = db
    _redis = redis
    _event_bus = event_bus
    _order_client = order_client


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


def get_order_client() -> "ServiceClient":
    if _order_client is None:
        raise RuntimeError("Клиент заказов не инициализирован. Вызовите init_dependencies()")
    return _order_client


def get_payment_service() -> "PaymentService":
    """Получить сервис платежей."""
    global _payment_service

    if _payment_service is None:
        from microshop.config import settings
        from microshop.services.payments.repository import PaymentRepository
        from microshop.services.payments.service import PaymentService

        _payment_service = PaymentService(
            repository=PaymentRepository(get_db()),
            redis=get_redis(),
            event_bus=get_event_bus(),
            orders=get_order_client(),
            payment_ttl=settings.redis_ttl.PAYMENT_TTL,
        )

    return _payment_service


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "postgres": get_db().health_check,
        "redis": get_redis().health_check,
        "rabbitmq": get_event_bus().health_check,
    }


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _db, _redis, _event_bus, _order_client, _payment_service
    if _order_client is not None:
        await _order_client.close()
    _payment_service = None
    _order_client = None
    _db = None
    _redis = None
    _event_bus = None
