# microshop/services/gateway/dependencies.py
"""
Dependency Injection для API Gateway.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from microshop.infra.http_client import ServiceClient
    from microshop.services.gateway.proxy import GatewayProxy


_clients: "dict[str, ServiceClient]" = {}

_proxy: "GatewayProxy | None" = None


async def init_dependencies(clients: "dict[str, ServiceClient]") -> None:
    """Инициализировать зависимости при старте приложения."""
    global _proxy
    from microshop.services.gateway.proxy import GatewayProxy

    _clients.clear()
    _clients.update(clients)
    _proxy = GatewayProxy(_clients)


def get_proxy() -> "GatewayProxy":
    if _proxy is None:
        raise RuntimeError("Прокси не инициализирован. Вызовите init_dependencies()")
    return _proxy


def health_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    """Здоровье шлюза = здоровье сервисов за ним."""
    proxy = get_proxy()
    return {name: partial(proxy.upstream_health, name) for name in sorted(proxy.clients)}


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _proxy
    for client in _clients.values():
        await client.close()
    _clients.clear()
    _proxy = None
