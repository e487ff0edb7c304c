# microshop/services/discovery/dependencies.py
"""
Dependency Injection для Discovery Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.redis_client import RedisClient
    from microshop.services.discovery.service import DiscoveryRegistry


_redis: "RedisClient | None" = None

_registry: "DiscoveryRegistry | None" = None


async def init_dependencies(redis: "RedisClient") -> None:
    """Инициализировать зависимости при старте приложения."""
    global _redis
    _redis = redis


def get_redis() -> "RedisClient":
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_registry() -> "DiscoveryRegistry":
    """Получить реестр сервисов."""
    global _registry

    if _registry is None:
        from microshop.config import settings
        from microshop.services.discovery.service import DiscoveryRegistry

        _registry = DiscoveryRegistry(get_redis(), lease_ttl=settings.discovery.DISCOVERY_LEASE_TTL)

    return _registry


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {"redis": get_redis().health_check}


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _redis, _registry
    _registry = None
    _redis = None
