# tests/services/catalog/test_catalog_routes.py
"""
Тесты HTTP API каталога.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from microshop.common.exceptions import ConflictError, NotFoundError
from microshop.services.catalog.app import app
from microshop.services.catalog.dependencies import get_catalog_service
from microshop.services.catalog.service import CatalogService
from microshop.shared.models.catalog import ProductDTO
from microshop.shared.models.common import PaginatedResponse, PaginationParams

PRODUCT_ID = "7f1c2b8e-4a43-4c4e-9a61-0d6f1d3b2a10"


@pytest.fixture
def catalog_service() -> MagicMock:
    return MagicMock(spec=CatalogService)


@pytest.fixture
def client(catalog_service: MagicMock) -> Iterator[TestClient]:
    app.dependency_overrides[get_catalog_service] = lambda: catalog_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def product(sample_product_data: dict[str, Any]) -> ProductDTO:
    return ProductDTO.model_validate(sample_product_data)


class TestCatalogRoutes:
    """Тесты эндпоинтов /api/catalog."""

    def test_list_items(self, client: TestClient, catalog_service: MagicMock, product: ProductDTO) -> None:
        catalog_service.list_products = AsyncMock(return_value=PaginatedResponse[ProductDTO].create(
            items=[product], total=1, pagination=PaginationParams(page=1, page_size=10),
        ))

        response = client.get("/api/catalog/items", params={"page_size": 10, "search": "круж"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["price"] == "12.50"
        assert catalog_service.list_products.call_args.kwargs["search"] == "круж"

    def test_page_size_limit(self, client: TestClient) -> None:
        response = client.get("/api/catalog/items", params={"page_size": 500})

        assert response.status_code == 422
        assert response.json()["error_code"] == "validation_error"

    def test_get_item_not_found(self, client: TestClient, catalog_service: MagicMock) -> None:
        catalog_service.get_product = AsyncMock(
            side_effect=NotFoundError("нет", error_code="product_not_found")
        )

        response = client.get(f"/api/catalog/items/{PRODUCT_ID}")

        assert response.status_code == 404
        assert response.json()["error_code"] == "product_not_found"

    def test_batch(self, client: TestClient, catalog_service: MagicMock, product: ProductDTO) -> None:
        catalog_service.get_products = AsyncMock(return_value=[product])

        response = client.post("/api/catalog/items/batch", json={"ids": [PRODUCT_ID]})

        assert response.status_code == 200
        assert response.json()[0]["id"] == PRODUCT_ID
        catalog_service.get_products.assert_called_once_with([PRODUCT_ID])

    def test_create_item(self, client: TestClient, catalog_service: MagicMock, product: ProductDTO) -> None:
        catalog_service.create_product = AsyncMock(return_value=product)

        response = client.post("/api/catalog/items", json={"sku": "MUG-001", "name": "Кружка", "price": "12.50"})

        assert response.status_code == 201
        request = catalog_service.create_product.call_args.args[0]
        assert request.price == Decimal("12.50")

    def test_create_rejects_non_positive_price(self, client: TestClient) -> None:
        response = client.post("/api/catalog/items", json={"sku": "X", "name": "X", "price": 0})

        assert response.status_code == 422

    def test_create_rejects_price_rounding_to_zero(self, client: TestClient, catalog_service: MagicMock) -> None:
        """0.004 проходит gt=0, но после округления до центов становится 0.00."""
        response = client.post("/api/catalog/items", json={"sku": "X", "name": "X", "price": "0.004"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "validation_error"
        catalog_service.create_product.assert_not_called()

    def test_patch_rejects_price_rounding_to_zero(self, client: TestClient, catalog_service: MagicMock) -> None:
        response = client.patch(f"/api/catalog/items/{PRODUCT_ID}", json={"price": "0.001"})

        assert response.status_code == 422
        catalog_service.update_product.assert_not_called()

    def test_create_conflict(self, client: TestClient, catalog_service: MagicMock) -> None:
        catalog_service.create_product = AsyncMock(
            side_effect=ConflictError("dup", error_code="sku_conflict")
        )

        response = client.post("/api/catalog/items", json={"sku": "MUG-001", "name": "Кружка", "price": 1})

        assert response.status_code == 409
        assert response.json()["error_code"] == "sku_conflict"

    def test_patch_and_delete(self, client: TestClient, catalog_service: MagicMock, product: ProductDTO) -> None:
        catalog_service.update_product = AsyncMock(return_value=product)
        catalog_service.delete_product = AsyncMock(return_value=product.model_copy(update={"is_active": False}))

        assert client.patch(f"/api/catalog/items/{PRODUCT_ID}", json={"name": "Кружка 2"}).status_code == 200
        response = client.delete(f"/api/catalog/items/{PRODUCT_ID}")

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_health_without_infrastructure(self, client: TestClient) -> None:
        """Без инициализированных зависимостей сервис сообщает unhealthy."""
        body = client.get("/health").json()

        assert body["service"] == "catalog"
        assert body["status"] == "unhealthy"
