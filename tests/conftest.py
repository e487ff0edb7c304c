# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("RABBITMQ_PASSWORD", "guest")
os.environ.setdefault("DISCOVERY_ENABLED", "false")


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "microshop_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "COMPONENT_MODE": "catalog",
        "CATALOG_SERVICE_HOST": "catalog.test",
        "CATALOG_SERVICE_PORT": 9081,
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "json",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "microshop_test",
        "DB_USER": "postgres",
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "shop_test",
        "PRODUCT_TTL": 60,
        "IDEMPOTENCY_TTL": 600,
        "RABBITMQ_EXCHANGE": "shop.test",
        "HTTP_TIMEOUT": 1.5,
        "HTTP_RETRY_ATTEMPTS": 2,
        "CB_FAILURE_THRESHOLD": 3,
        "DISCOVERY_LEASE_TTL": 15,
        "CURRENCY": "EUR",
        "TAX_RATE_PERCENT": "10",
        "FREE_SHIPPING_THRESHOLD": "100.00",
        "SHIPPING_FEE": "5.00",
        "MAX_CART_ITEMS": 3,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.set_nx = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.get_json = AsyncMock(return_value=None)
    redis.hget = AsyncMock(return_value=None)
    redis.hset = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.hlen = AsyncMock(return_value=0)
    redis.hdel = AsyncMock(return_value=1)
    redis.sadd = AsyncMock(return_value=1)
    redis.srem = AsyncMock(return_value=1)
    redis.smembers = AsyncMock(return_value=set())
    redis.mget = AsyncMock(return_value=[])
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.subscribe = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def mock_service_client() -> MagicMock:
    """Мок клиента upstream-сервиса (ServiceClient)."""
    client = MagicMock()
    client.get_json = AsyncMock(return_value={})
    client.post_json = AsyncMock(return_value={})
    client.request = AsyncMock()
    client.close = AsyncMock()
    return client


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

PRODUCT_ID = "7f1c2b8e-4a43-4c4e-9a61-0d6f1d3b2a10"
PRODUCT_ID_2 = "0b9f5c1a-2d8e-4f6a-8c3b-5e7d9a1b2c34"
ORDER_ID = "5a0e6d42-1c7b-4f0e-8e9d-3b2a1c0d9e8f"
PAYMENT_ID = "c3d2e1f0-a9b8-4c7d-8e6f-5a4b3c2d1e0f"


@pytest.fixture
def sample_product_data() -> dict[str, Any]:
    """Пример строки товара из БД."""
    return {
        "id": PRODUCT_ID,
        "sku": "MUG-001",
        "name": "Кружка",
        "description": "Керамическая кружка 350 мл",
        "category": "kitchen",
        "price": Decimal("12.50"),
        "currency": "EUR",
        "is_active": True,
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
    }


@pytest.fixture
def sample_shipping_address() -> dict[str, Any]:
    return {
        "recipient": "Иван Петров",
        "line1": "Hauptstraße 1",
        "city": "Hamburg",
        "postal_code": "20095",
        "country": "DE",
    }


@pytest.fixture
def sample_order_row(sample_shipping_address: dict[str, Any]) -> dict[str, Any]:
    """Пример строки заказа из БД (jsonb-поля приходят строками)."""
    return {
        "id": ORDER_ID,
        "user_id": "user-1",
        "status": "pending",
        "items": json.dumps([{
            "product_id": PRODUCT_ID,
            "sku": "MUG-001",
            "name": "Кружка",
            "quantity": 2,
            "unit_price": "12.50",
            "line_total": "25.00",
        }]),
        "subtotal": Decimal("25.00"),
        "tax": Decimal("5.00"),
        "shipping": Decimal("4.99"),
        "total": Decimal("34.99"),
        "currency": "EUR",
        "shipping_address": json.dumps(sample_shipping_address),
        "idempotency_key": None,
        "request_fingerprint": None,
        "payment_id": None,
        "cancellation_reason": None,
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
        "paid_at": None,
        "shipped_at": None,
        "delivered_at": None,
        "cancelled_at": None,
    }


@pytest.fixture
def sample_payment_row() -> dict[str, Any]:
    """Пример строки платежа из БД."""
    return {
        "id": PAYMENT_ID,
        "order_id": ORDER_ID,
        "user_id": "user-1",
        "amount": Decimal("34.99"),
        "currency": "EUR",
        "method": "card",
        "status": "pending",
        "provider_charge_id": None,
        "error_message": None,
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
        "paid_at": None,
        "refunded_at": None,
    }
