# microshop/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними сервисами: PostgreSQL, Redis, RabbitMQ, HTTP-вызовы соседних сервисов.
"""

from microshop.infra.database import DatabaseManager, get_db
from microshop.infra.redis_client import RedisClient, get_redis
from microshop.infra.event_bus import EventBus, get_event_bus
from microshop.infra.http_client import CircuitBreaker, ServiceClient

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "EventBus",
    "get_event_bus",
    "CircuitBreaker",
    "ServiceClient",
]
