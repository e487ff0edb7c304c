# microshop/infra/lifecycle.py
"""
Подключение инфраструктуры в lifespan сервиса.

При запуске нескольких сервисов в одном процессе (режим all) подключения
открывает и закрывает main.py, а lifespan отдельных приложений их не закрывает.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from microshop.infra.database import DatabaseManager, close_db, init_db
from microshop.infra.event_bus import EventBus, close_event_bus, init_event_bus
from microshop.infra.redis_client import RedisClient, close_redis, init_redis

_shared_infrastructure = False


def set_shared_infrastructure(shared: bool = True) -> None:
    """Подключения принадлежат процессу, а не отдельному приложению."""
    global _shared_infrastructure
    _shared_infrastructure = shared


def is_shared_infrastructure() -> bool:
    return _shared_infrastructure


@dataclass
class Infrastructure:
    """Подключения, доступные сервису."""
    db: DatabaseManager | None = None
    redis: RedisClient | None = None
    event_bus: EventBus | None = None


@asynccontextmanager
async def infrastructure(
    *,
    database: bool = True,
    redis: bool = True,
    event_bus: bool = True,
) -> AsyncIterator[Infrastructure]:
    """Открывает нужные сервису подключения и закрывает их на выходе."""
    infra = Infrastructure()
    try:
        if database:
            infra.db = await init_db()
        if redis:
            infra.redis = await init_redis()
        if event_bus:
            infra.event_bus = await init_event_bus()
        yield infra
    finally:
        if not _shared_infrastructure:
            if infra.event_bus is not None:
                await close_event_bus()
            if infra.redis is not None:
                await close_redis()
            if infra.db is not None:
                await close_db()
