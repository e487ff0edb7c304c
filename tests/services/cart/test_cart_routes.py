# tests/services/cart/test_cart_routes.py
"""
Тесты HTTP API корзины.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from microshop.common.exceptions import ServiceUnavailableError, ValidationFailedError
from microshop.services.cart.app import app
from microshop.services.cart.dependencies import get_cart_service
from microshop.services.cart.service import CartService
from microshop.shared.models.cart import CartDTO, CartItemDTO


@pytest.fixture
def cart_service() -> MagicMock:
    return MagicMock(spec=CartService)


@pytest.fixture
def client(cart_service: MagicMock) -> Iterator[TestClient]:
    app.dependency_overrides[get_cart_service] = lambda: cart_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _cart() -> CartDTO:
    return CartDTO(user_id="u1", items=[
        CartItemDTO(product_id="p1", sku="A", name="A", quantity=3, unit_price=Decimal("1.10")),
    ])


class TestCartRoutes:
    """Тесты эндпоинтов /api/cart."""

    def test_get_cart_totals(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.get_cart = AsyncMock(return_value=_cart())

        body = client.get("/api/cart/u1").json()

        assert body["subtotal"] == "3.30"
        assert body["items_count"] == 3
        assert body["items"][0]["line_total"] == "3.30"

    def test_add_item_default_quantity(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.add_item = AsyncMock(return_value=_cart())

        response = client.post("/api/cart/u1/items", json={"product_id": "p1"})

        assert response.status_code == 200
        assert cart_service.add_item.call_args.args[1].quantity == 1

    def test_add_item_rejects_zero(self, client: TestClient) -> None:
        assert client.post("/api/cart/u1/items", json={"product_id": "p1", "quantity": 0}).status_code == 422

    def test_limit_error(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.add_item = AsyncMock(
            side_effect=ValidationFailedError("лимит", error_code="cart_limit_exceeded")
        )

        response = client.post("/api/cart/u1/items", json={"product_id": "p1"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "cart_limit_exceeded"

    def test_catalog_unavailable(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.add_item = AsyncMock(side_effect=ServiceUnavailableError("Сервис catalog недоступен"))

        assert client.post("/api/cart/u1/items", json={"product_id": "p1"}).status_code == 503

    def test_patch_allows_zero(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.update_item = AsyncMock(return_value=CartDTO(user_id="u1"))

        response = client.patch("/api/cart/u1/items/p1", json={"quantity": 0})

        assert response.status_code == 200
        cart_service.update_item.assert_called_once_with("u1", "p1", 0)

    def test_delete_item_and_clear(self, client: TestClient, cart_service: MagicMock) -> None:
        cart_service.remove_item = AsyncMock(return_value=CartDTO(user_id="u1"))
        cart_service.clear_cart = AsyncMock(return_value=CartDTO(user_id="u1"))

        assert client.delete("/api/cart/u1/items/p1").status_code == 200
        assert client.delete("/api/cart/u1").json()["items"] == []
