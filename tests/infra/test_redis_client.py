# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from microshop.infra.redis_client import RedisClient


class SampleModel(BaseModel):
    """Тестовая Pydantic модель."""
    id: int
    name: str
    active: bool = True


class TestRedisClient:
    """Тесты для RedisClient."""

    @pytest.fixture
    def redis_client(self) -> RedisClient:
        # Сбрасываем синглтон для каждого теста
        RedisClient._instance = None
        RedisClient._client = None
        return RedisClient()

    @pytest.fixture
    def mock_redis(self, redis_client: RedisClient) -> AsyncMock:
        client = AsyncMock()
        redis_client._client = client
        return client

    def test_singleton(self) -> None:
        RedisClient._instance = None

        assert RedisClient() is RedisClient()

    def test_client_not_initialized(self, redis_client: RedisClient) -> None:
        """Проверяет ошибку при обращении к неинициализированному клиенту."""
        with pytest.raises(RuntimeError, match="Redis клиент не инициализирован"):
            _ = redis_client.client

    def test_make_key(self, redis_client: RedisClient) -> None:
        assert redis_client._make_key("cart:user-1") == "shop:cart:user-1"

    @pytest.mark.asyncio
    async def test_connect_sets_namespace(self, redis_client: RedisClient) -> None:
        mock_client = AsyncMock()
        mock_client.ping = AsyncMock(return_value=True)

        with patch("redis.asyncio.from_url", return_value=mock_client):
            await redis_client.connect(url="redis://localhost:6379/0", namespace="shop_test")

        mock_client.ping.assert_called_once()
        assert redis_client._make_key("k") == "shop_test:k"

    @pytest.mark.asyncio
    async def test_connect_already_connected(self, redis_client: RedisClient) -> None:
        redis_client._client = AsyncMock()

        with patch("redis.asyncio.from_url") as mock_from_url:
            await redis_client.connect(url="redis://localhost:6379/0")

        mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        await redis_client.disconnect()

        mock_redis.aclose.assert_called_once()
        assert redis_client.is_connected is False

    @pytest.mark.asyncio
    async def test_get_and_set(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = "value"
        mock_redis.set.return_value = True

        assert await redis_client.get("key") == "value"
        assert await redis_client.set("key", "value", ttl=60) is True

        mock_redis.get.assert_called_once_with("shop:key")
        mock_redis.set.assert_called_once_with("shop:key", "value", ex=60)

    @pytest.mark.asyncio
    async def test_set_nx(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """SET NX возвращает False, если ключ уже существует."""
        mock_redis.set.return_value = None

        assert await redis_client.set_nx("idempotency:order:k1", "{}", ttl=600) is False
        mock_redis.set.assert_called_once_with("shop:idempotency:order:k1", "{}", ex=600, nx=True)

    @pytest.mark.asyncio
    async def test_delete_many(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.delete.return_value = 2

        assert await redis_client.delete("a", "b") == 2
        mock_redis.delete.assert_called_once_with("shop:a", "shop:b")

    @pytest.mark.asyncio
    async def test_mget(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.mget.return_value = ["1", None]

        assert await redis_client.mget(["a", "b"]) == ["1", None]
        mock_redis.mget.assert_called_once_with(["shop:a", "shop:b"])

    @pytest.mark.asyncio
    async def test_mget_empty(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        assert await redis_client.mget([]) == []
        mock_redis.mget.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_model(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = '{"id": 1, "name": "Test", "active": true}'

        result = await redis_client.get_model("key", SampleModel)

        assert result == SampleModel(id=1, name="Test")

    @pytest.mark.asyncio
    async def test_get_model_invalid_json(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Битые данные в кэше считаются промахом."""
        mock_redis.get.return_value = "invalid json"

        assert await redis_client.get_model("key", SampleModel) is None

    @pytest.mark.asyncio
    async def test_set_model(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.set.return_value = True

        await redis_client.set_model("key", SampleModel(id=1, name="Test"), ttl=60)

        key, payload = mock_redis.set.call_args[0]
        assert key == "shop:key"
        assert json.loads(payload) == {"id": 1, "name": "Test", "active": True}

    @pytest.mark.asyncio
    async def test_get_json(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.get.return_value = '{"status": "completed"}'
        assert await redis_client.get_json("key") == {"status": "completed"}

        mock_redis.get.return_value = "not-json"
        assert await redis_client.get_json("key") is None

    @pytest.mark.asyncio
    async def test_hset_with_ttl_uses_pipeline(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """hset с ttl продлевает время жизни всего хеша."""
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[1, True])
        pipeline_cm = MagicMock()
        pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
        pipeline_cm.__aexit__ = AsyncMock(return_value=None)
        mock_redis.pipeline = MagicMock(return_value=pipeline_cm)

        result = await redis_client.hset("cart:u1", "p1", "{}", ttl=3600)

        assert result == 1
        pipe.hset.assert_called_once_with("shop:cart:u1", "p1", "{}")
        pipe.expire.assert_called_once_with("shop:cart:u1", 3600)

    @pytest.mark.asyncio
    async def test_hash_operations(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.hset.return_value = 1
        mock_redis.hgetall.return_value = {"p1": "{}"}
        mock_redis.hlen.return_value = 1
        mock_redis.hdel.return_value = 1

        assert await redis_client.hset("cart:u1", "p1", "{}") == 1
        assert await redis_client.hgetall("cart:u1") == {"p1": "{}"}
        assert await redis_client.hlen("cart:u1") == 1
        assert await redis_client.hdel("cart:u1", "p1") == 1
        mock_redis.hdel.assert_called_once_with("shop:cart:u1", "p1")

    @pytest.mark.asyncio
    async def test_set_operations(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.sadd.return_value = 1
        mock_redis.smembers.return_value = {"a"}
        mock_redis.srem.return_value = 1

        assert await redis_client.sadd("discovery:services", "catalog") == 1
        assert await redis_client.smembers("discovery:services") == {"a"}
        assert await redis_client.srem("discovery:services", "catalog") == 1
        mock_redis.sadd.assert_called_once_with("shop:discovery:services", "catalog")

    def test_lock_uses_namespace(self, redis_client: RedisClient) -> None:
        client = MagicMock()
        redis_client._client = client

        lock = redis_client.lock("cart:u1:lock", timeout=5, blocking_timeout=2)

        assert lock is client.lock.return_value
        client.lock.assert_called_once_with("shop:cart:u1:lock", timeout=5, blocking_timeout=2)

    @pytest.mark.asyncio
    async def test_health_check_failure(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        mock_redis.ping.side_effect = ConnectionError("down")

        assert await redis_client.health_check() is False
