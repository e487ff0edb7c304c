# tests/services/gateway/test_gateway_proxy.py
"""
Тесты проксирования запросов через шлюз.
"""

from __future__ import annotations

import json
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from microshop.infra.http_client import ServiceClient
from microshop.services.gateway.app import app
from microshop.services.gateway.dependencies import get_proxy
from microshop.services.gateway.proxy import GatewayProxy


class Upstream:
    """Обработчик httpx.MockTransport, запоминающий запросы."""

    def __init__(self, status_code: int = 200, body: dict | None = None) -> None:
        self.status_code = status_code
        self.body = body if body is not None else {"ok": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            json=self.body,
            headers={"Connection": "close", "X-Upstream": "1"},
        )


def _service_client(name: str, upstream: Upstream) -> ServiceClient:
    return ServiceClient(
        name,
        base_url=f"http://{name}:8000",
        retry_attempts=3,
        retry_backoff=0,
        retry_backoff_max=0,
        transport=httpx.MockTransport(upstream),
    )


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def proxy(upstream: Upstream) -> GatewayProxy:
    return GatewayProxy({
        name: _service_client(name, upstream)
        for name in ("catalog", "cart", "order", "payment", "inventory")
    })


@pytest.fixture
def client(proxy: GatewayProxy) -> Iterator[TestClient]:
    app.dependency_overrides[get_proxy] = lambda: proxy
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestGatewayProxy:
    """Тесты GatewayProxy.forward через HTTP."""

    def test_forwards_path_query_and_body(self, client: TestClient, upstream: Upstream) -> None:
        response = client.post(
            "/api/orders",
            params={"a": "1"},
            json={"user_id": "u1"},
            headers={"X-Request-ID": "req-1"},
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        sent = upstream.requests[0]
        assert sent.url.host == "order"
        assert sent.url.path == "/api/orders"
        assert sent.url.params["a"] == "1"
        assert json.loads(sent.content) == {"user_id": "u1"}
        assert sent.headers.get_list("x-request-id") == ["req-1"]

    def test_response_headers_filtered(self, client: TestClient) -> None:
        response = client.get("/api/catalog/items")

        assert response.headers["x-upstream"] == "1"
        assert response.headers.get("connection") != "close"

    def test_upstream_error_passed_through(self, client: TestClient, upstream: Upstream) -> None:
        upstream.status_code = 404
        upstream.body = {"error_code": "product_not_found", "message": "нет"}

        response = client.get("/api/catalog/items/x")

        assert response.status_code == 404
        assert response.json()["error_code"] == "product_not_found"

    def test_post_without_key_not_retried(self, client: TestClient, upstream: Upstream) -> None:
        upstream.status_code = 503

        response = client.post("/api/payments", json={})

        assert response.status_code == 503
        assert len(upstream.requests) == 1

    def test_post_with_idempotency_key_retried(self, client: TestClient, upstream: Upstream) -> None:
        upstream.status_code = 503

        client.post("/api/orders", json={}, headers={"Idempotency-Key": "k1"})

        assert len(upstream.requests) == 3
        assert upstream.requests[0].headers["idempotency-key"] == "k1"

    def test_unknown_route(self, client: TestClient, upstream: Upstream) -> None:
        response = client.get("/api/unknown")

        assert response.status_code == 404
        assert response.json()["error_code"] == "route_not_found"
        assert upstream.requests == []

    def test_service_down(self, proxy: GatewayProxy, client: TestClient) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        proxy.clients["cart"] = _service_client("cart", refuse)  # type: ignore[arg-type]

        response = client.get("/api/cart/u1")

        assert response.status_code == 503
        assert response.json()["error_code"] == "service_unavailable"


class TestUpstreamHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, proxy: GatewayProxy, upstream: Upstream) -> None:
        upstream.body = {"status": "healthy"}

        assert await proxy.upstream_health("catalog") is True

    @pytest.mark.asyncio
    async def test_degraded_is_not_healthy(self, proxy: GatewayProxy, upstream: Upstream) -> None:
        upstream.body = {"status": "degraded"}

        assert await proxy.upstream_health("catalog") is False

    @pytest.mark.asyncio
    async def test_unreachable(self, proxy: GatewayProxy) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        proxy.clients["catalog"] = _service_client("catalog", refuse)  # type: ignore[arg-type]

        assert await proxy.upstream_health("catalog") is False

    @pytest.mark.asyncio
    async def test_single_attempt_without_tripping_breaker(self, proxy: GatewayProxy, upstream: Upstream) -> None:
        upstream.status_code = 503
        upstream.body = {"status": "unhealthy"}
        client = proxy.clients["catalog"]
        client.breaker.failure_threshold = 1

        assert await proxy.upstream_health("catalog") is False
        assert len(upstream.requests) == 1
        assert client.breaker.failures == 0
        assert client.breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_checked_while_circuit_open(self, proxy: GatewayProxy, upstream: Upstream) -> None:
        upstream.body = {"status": "healthy"}
        client = proxy.clients["catalog"]
        client.breaker.failure_threshold = 1
        client.breaker.record_failure()

        assert await proxy.upstream_health("catalog") is True
        assert len(upstream.requests) == 1
