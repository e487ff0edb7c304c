# microshop/services/gateway/routing.py
"""
Таблица маршрутов шлюза и фильтрация заголовков.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from microshop.common.exceptions import NotFoundError

# Префикс пути -> сервис
ROUTE_TABLE: dict[str, str] = {
    "/api/catalog": "catalog",
    "/api/cart": "cart",
    "/api/orders": "order",
    "/api/payments": "payment",
    "/api/inventory": "inventory",
}

# RFC 7230, 6.1
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Пересчитываются httpx/starlette заново
_RECOMPUTED_REQUEST_HEADERS = frozenset({"host", "content-length"})
_RECOMPUTED_RESPONSE_HEADERS = frozenset({"content-length", "content-encoding"})


def resolve_route(path: str) -> str:
    """
    Сервис, обслуживающий путь.

    Raises:
        NotFoundError: route_not_found
    """
    for prefix, service_name in ROUTE_TABLE.items():
        if path == prefix or path.startswith(prefix + "/"):
            return service_name
    raise NotFoundError(
        f"Маршрут {path} не найден",
        error_code="route_not_found",
        details={"path": path},
    )


def _connection_tokens(headers: Mapping[str, str]) -> set[str]:
    value = headers.get("connection") or headers.get("Connection") or ""
    return {token.strip().lower() for token in value.split(",") if token.strip()}


def filter_headers(
    headers: Mapping[str, str],
    drop: Iterable[str] = (),
) -> dict[str, str]:
    """Оставляет только end-to-end заголовки."""
    excluded = HOP_BY_HOP_HEADERS | _connection_tokens(headers) | {name.lower() for name in drop}
    return {name: value for name, value in headers.items() if name.lower() not in excluded}


def filter_request_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return filter_headers(headers, drop=_RECOMPUTED_REQUEST_HEADERS)


def filter_response_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return filter_headers(headers, drop=_RECOMPUTED_RESPONSE_HEADERS)
