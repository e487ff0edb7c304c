# microshop/infra/event_bus.py
"""
Шина событий на базе RabbitMQ.
Реализует паттерн Pub/Sub для асинхронной коммуникации между сервисами.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import (
    AbstractChannel,
    AbstractConnection,
    AbstractExchange,
    AbstractIncomingMessage,
    AbstractQueue,
)

from microshop.common.logger import log_debug, log_error, log_info, log_warning, request_id_var
from microshop.common.constants import TypeMsg
from microshop.common.exceptions import ServiceUnavailableError
from microshop.shared.events.base import DomainEvent


# Обработчик получает тело события как dict и сам валидирует нужную модель
EventHandler = Callable[[dict[str, Any]], Awaitable[None]]

# Пауза перед возвратом сообщения в очередь, когда зависимость обработчика недоступна
REQUEUE_DELAY = 1.0


class EventBus:
    """
    Шина событий на базе RabbitMQ.

    Реализует:
    - Публикацию событий в topic exchange (routing key = event_type)
    - Подписку на события через durable-очереди
    - Автоматическое переподключение (connect_robust)
    """

    _instance: EventBus | None = None
    _connection: AbstractConnection | None = None
    _channel: AbstractChannel | None = None
    _exchange: AbstractExchange | None = None
    _handlers: dict[str, list[EventHandler]]

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Инициализация (вызывается только один раз благодаря Singleton)."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection = None
        self._channel = None
        self._exchange = None
        self._handlers = {}
        self._exchange_name = "shop.events"
        self._queues: dict[str, AbstractQueue] = {}
        self._source_service = os.getenv("SERVICE_NAME", "")

    @property
    def is_connected(self) -> bool:
        """Проверяет, активно ли соединение."""
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str | None = None,
        exchange_name: str | None = None,
        prefetch_count: int = 10,
    ) -> None:
        """
        Подключается к RabbitMQ.

        Args:
            url: URL RabbitMQ (если None, берётся из конфига)
            exchange_name: Имя exchange
            prefetch_count: Количество сообщений для prefetch
        """
        if self.is_connected:
            return

        if url is None:
            from microshop.config import settings
            url = settings.rabbitmq.url
            exchange_name = settings.rabbitmq.RABBITMQ_EXCHANGE
            prefetch_count = settings.rabbitmq.RABBITMQ_PREFETCH_COUNT

        if exchange_name:
            self._exchange_name = exchange_name

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)

        # topic exchange для маршрутизации по event_type
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

        await log_info("Подключение к RabbitMQ установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
            self._queues = {}
            self._handlers = {}
            await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: DomainEvent) -> bool:
        """
        Публикует событие в exchange.

        Ошибка публикации логируется и не прерывает бизнес-операцию.

        Returns:
            True если событие отправлено
        """
        if not self.is_connected or self._exchange is None:
            await log_error(f"Не удалось опубликовать {event.event_type}: нет соединения с RabbitMQ")
            return False

        if event.metadata.correlation_id is None:
            event.metadata.correlation_id = request_id_var.get()
        if not event.metadata.source_service:
            event.metadata.source_service = self._source_service

        try:
            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                correlation_id=event.metadata.correlation_id,
                timestamp=datetime.now(timezone.utc),
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            )
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}", exc_info=True)
            return False

        await log_debug(f"Событие опубликовано: {event.event_type} ({event.event_id})")
        return True

    async def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
        queue_name: str | None = None,
    ) -> None:
        """
        Подписывается на события определённого типа.

        Args:
            event_type: Тип события (routing key pattern)
            handler: Асинхронный обработчик события
            queue_name: Имя очереди (если None, генерируется по event_type)
        """
        if not self.is_connected or self._channel is None or self._exchange is None:
            raise RuntimeError("Не удалось подписаться: нет соединения с RabbitMQ")

        if queue_name is None:
            queue_name = f"shop.{event_type.replace('.', '_')}"

        self._handlers.setdefault(queue_name, []).append(handler)

        if queue_name not in self._queues:
            queue = await self._channel.declare_queue(queue_name, durable=True)
            await queue.bind(self._exchange, routing_key=event_type)
            self._queues[queue_name] = queue
            await queue.consume(self._make_consumer(queue_name))

        await log_debug(f"Подписка на события: {event_type} -> {queue_name}")

    def _make_consumer(self, queue_name: str) -> Callable[[AbstractIncomingMessage], Awaitable[None]]:
        """Создаёт consumer для обработки сообщений."""
        async def consumer(message: AbstractIncomingMessage) -> None:
            try:
                async with message.process(requeue=True):
                    try:
                        await self.dispatch(queue_name, message.body)
                    except ServiceUnavailableError:
                        await asyncio.sleep(REQUEUE_DELAY)
                        raise
            except ServiceUnavailableError:
                await log_debug(f"Сообщение возвращено в очередь {queue_name}")

        return consumer

    async def dispatch(self, queue_name: str, body: bytes | str) -> None:
        """
        Передаёт сообщение всем обработчикам очереди.

        Ошибки обработчиков логируются и не останавливают consumer.
        ServiceUnavailableError поднимается после всех обработчиков:
        сообщение возвращается в очередь и будет доставлено повторно,
        поэтому обработчики должны быть идемпотентными.
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            await log_error(f"Некорректное сообщение в очереди {queue_name}: {e}")
            return

        token = request_id_var.set((data.get("metadata") or {}).get("correlation_id"))
        unavailable: ServiceUnavailableError | None = None
        try:
            for handler in self._handlers.get(queue_name, []):
                try:
                    await handler(data)
                except ServiceUnavailableError as e:
                    await log_warning(
                        f"Обработчик {getattr(handler, '__name__', handler)} ({queue_name}): {e.message}"
                    )
                    unavailable = e
                except Exception as e:
                    await log_error(
                        f"Ошибка в обработчике {getattr(handler, '__name__', handler)} ({queue_name}): {e}",
                        exc_info=True,
                    )
        finally:
            request_id_var.reset(token)

        if unavailable is not None:
            raise unavailable

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к RabbitMQ."""
        return self.is_connected


def get_event_bus() -> EventBus:
    """Возвращает глобальный экземпляр EventBus."""
    return EventBus()


async def init_event_bus() -> EventBus:
    """Подключается к RabbitMQ по настройкам из конфигурации."""
    from microshop.config import settings

    event_bus = get_event_bus()
    await event_bus.connect(
        url=settings.rabbitmq.url,
        exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
        prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )
    return event_bus


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    await get_event_bus().disconnect()
