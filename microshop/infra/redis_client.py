# microshop/infra/redis_client.py
"""
Клиент Redis для кэша, корзин, ключей идемпотентности и реестра сервисов.
Поддерживает типизированные операции с Pydantic моделями.
"""

from __future__ import annotations

import json
from typing import Any, Type, TypeVar

import redis.asyncio as redis
from redis.asyncio.lock import Lock
from pydantic import BaseModel

from microshop.common.logger import log_error, log_info
from microshop.common.constants import TypeMsg

T = TypeVar("T", bound=BaseModel)


class RedisClient:
    """
    Асинхронный клиент Redis.
    Поддерживает:
    - Типизированные get/set с Pydantic моделями
    - Атомарный SET NX (ключи идемпотентности)
    - Hash и Set операции
    - Распределённые блокировки
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Инициализация (вызывается только один раз благодаря Singleton)."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "shop"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
        namespace: str | None = None,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if url is None:
            from microshop.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            namespace = settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

        # Проверяем подключение
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Получает значение по ключу."""
        return await self.client.get(self._make_key(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> bool:
        """
        Устанавливает значение.

        Args:
            key: Ключ
            value: Значение
            ttl: Время жизни в секундах
        """
        return await self.client.set(self._make_key(key), value, ex=ttl)

    async def set_nx(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Устанавливает значение, только если ключа ещё нет.

        Returns:
            True если ключ создан, False если уже существовал
        """
        result = await self.client.set(self._make_key(key), value, ex=ttl, nx=True)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        """Удаляет ключи."""
        return await self.client.delete(*(self._make_key(k) for k in keys))

    async def mget(self, keys: list[str]) -> list[str | None]:
        """Получает несколько значений за один запрос."""
        if not keys:
            return []
        return await self.client.mget([self._make_key(k) for k in keys])

    # =========================================================================
    # ТИПИЗИРОВАННЫЕ ОПЕРАЦИИ (PYDANTIC)
    # =========================================================================

    async def get_model(self, key: str, model_class: Type[T]) -> T | None:
        """
        Получает и десериализует Pydantic модель.

        Битые данные в кэше считаются промахом.
        """
        data = await self.get(key)
        if data is None:
            return None

        try:
            return model_class.model_validate_json(data)
        except ValueError as e:
            await log_error(f"Ошибка десериализации модели {model_class.__name__}: {e}")
            return None

    async def set_model(
        self,
        key: str,
        model: BaseModel,
        ttl: int | None = None,
    ) -> bool:
        """Сериализует и сохраняет Pydantic модель."""
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    # =========================================================================
    # JSON ОПЕРАЦИИ
    # =========================================================================

    async def get_json(self, key: str) -> dict | list | None:
        """Получает и парсит JSON."""
        data = await self.get(key)
        if data is None:
            return None

        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    # =========================================================================
    # HASH ОПЕРАЦИИ
    # =========================================================================

    async def hget(self, name: str, key: str) -> str | None:
        """Получает значение из хеша."""
        return await self.client.hget(self._make_key(name), key)

    async def hset(self, name: str, key: str, value: str, ttl: int | None = None) -> int:
        """Устанавливает значение в хеше; ttl обновляет время жизни всего хеша."""
        full_name = self._make_key(name)
        if ttl is None:
            return await self.client.hset(full_name, key, value)

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(full_name, key, value)
            pipe.expire(full_name, ttl)
            result: list[Any] = await pipe.execute()
        return result[0]

    async def hgetall(self, name: str) -> dict[str, str]:
        """Получает все поля хеша."""
        return await self.client.hgetall(self._make_key(name))

    async def hlen(self, name: str) -> int:
        """Количество полей хеша."""
        return await self.client.hlen(self._make_key(name))

    async def hdel(self, name: str, *keys: str) -> int:
        """Удаляет поля из хеша."""
        return await self.client.hdel(self._make_key(name), *keys)

    # =========================================================================
    # SET ОПЕРАЦИИ
    # =========================================================================

    async def sadd(self, key: str, *members: str) -> int:
        """Добавляет элементы в множество."""
        return await self.client.sadd(self._make_key(key), *members)

    async def srem(self, key: str, *members: str) -> int:
        """Удаляет элементы из множества."""
        return await self.client.srem(self._make_key(key), *members)

    async def smembers(self, key: str) -> set[str]:
        """Возвращает все элементы множества."""
        return await self.client.smembers(self._make_key(key))

    # =========================================================================
    # БЛОКИРОВКИ
    # =========================================================================

    def lock(self, name: str, timeout: float, blocking_timeout: float) -> Lock:
        """
        Блокировка redis-py (SET NX с токеном владельца).

        Args:
            name: Ключ блокировки
            timeout: Время жизни блокировки в секундах
            blocking_timeout: Сколько ждать захвата; по истечении acquire() вернёт False
        """
        return self.client.lock(self._make_key(name), timeout=timeout, blocking_timeout=blocking_timeout)

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """
        Проверяет здоровье подключения к Redis.

        Returns:
            True если подключение работает
        """
        try:
            return await self.client.ping()
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> RedisClient:
    """Подключается к Redis по настройкам из конфигурации."""
    from microshop.config import settings

    redis_client = get_redis()
    await redis_client.connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )
    return redis_client


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
