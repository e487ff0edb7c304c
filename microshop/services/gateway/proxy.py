# microshop/services/gateway/proxy.py
"""
Проксирование запросов к сервисам.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import Response

from microshop.common.constants import IDEMPOTENCY_KEY_HEADER, REQUEST_ID_HEADER
from microshop.common.exceptions import ShopError
from microshop.common.logger import log_warning
from microshop.infra.http_client import IDEMPOTENT_METHODS
from microshop.services.gateway.routing import (
    filter_request_headers,
    filter_response_headers,
    resolve_route,
)

if TYPE_CHECKING:
    from microshop.infra.http_client import ServiceClient


class GatewayProxy:
    """Пересылает запрос в сервис по таблице маршрутов."""

    def __init__(self, clients: dict[str, "ServiceClient"]) -> None:
        self.clients = clients

    async def forward(self, request: Request) -> Response:
        """
        Raises:
            NotFoundError: route_not_found
            ServiceUnavailableError: сервис недоступен или circuit открыт
        """
        path = request.url.path
        client = self.clients[resolve_route(path)]

        request_id = getattr(request.state, "request_id", None)
        headers = filter_request_headers(request.headers)
        if request_id:
            headers = {n: v for n, v in headers.items() if n.lower() != REQUEST_ID_HEADER.lower()}
            headers[REQUEST_ID_HEADER] = request_id

        method = request.method.upper()
        # POST с ключом идемпотентности безопасно повторять
        idempotent = method in IDEMPOTENT_METHODS or IDEMPOTENCY_KEY_HEADER.lower() in {
            name.lower() for name in headers
        }

        body = await request.body()
        upstream = await client.request(
            method,
            path,
            params=list(request.query_params.multi_items()),
            headers=headers,
            content=body or None,
            idempotent=idempotent,
            raise_for_status=False,
        )

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=filter_response_headers(upstream.headers),
        )

    async def upstream_health(self, service_name: str) -> bool:
        """True, если /health сервиса отвечает healthy."""
        try:
            # одна попытка, без влияния на circuit breaker рабочих запросов
            response = await self.clients[service_name].request(
                "GET", "/health", idempotent=False, raise_for_status=False, use_breaker=False
            )
        except ShopError as e:
            await log_warning(f"Gateway: {service_name} /health недоступен: {e.error_code}")
            return False
        if response.status_code != 200:
            return False
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("status") == "healthy"
