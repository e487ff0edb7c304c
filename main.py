#!/usr/bin/env python3
# main.py
"""
Главная точка входа microshop.
Запускает один сервис или все сразу в зависимости от аргумента.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from microshop.config import settings
from microshop.common.constants import ServiceName, TypeMsg
from microshop.common.logger import log_error, log_info, setup_logging
from microshop.infra.database import close_db, init_db
from microshop.infra.event_bus import close_event_bus, init_event_bus
from microshop.infra.lifecycle import set_shared_infrastructure
from microshop.infra.redis_client import close_redis, init_redis

# Режим -> ASGI-приложение
SERVICE_APPS: dict[str, str] = {
    ServiceName.DISCOVERY.value: "microshop.services.discovery.app:app",
    ServiceName.CATALOG.value: "microshop.services.catalog.app:app",
    ServiceName.INVENTORY.value: "microshop.services.inventory.app:app",
    ServiceName.CART.value: "microshop.services.cart.app:app",
    ServiceName.ORDER.value: "microshop.services.orders.app:app",
    ServiceName.PAYMENT.value: "microshop.services.payments.app:app",
    ServiceName.GATEWAY.value: "microshop.services.gateway.app:app",
}

VALID_MODES = (*SERVICE_APPS, "all")

_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""

    def signal_handler(sig: int) -> None:
        print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
        for task in _running_tasks:
            if not task.done():
                task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def init_infrastructure() -> None:
    """Общие подключения для режима all."""
    await log_info("Инициализация инфраструктуры...", type_msg=TypeMsg.INFO)
    await init_db()
    await init_redis()
    await init_event_bus()
    set_shared_infrastructure(True)
    await log_info("Инфраструктура инициализирована", type_msg=TypeMsg.INFO)


async def close_infrastructure() -> None:
    await log_info("Закрытие подключений...", type_msg=TypeMsg.INFO)
    await close_event_bus()
    await close_redis()
    await close_db()
    await log_info("Подключения закрыты", type_msg=TypeMsg.INFO)


async def run_service(name: str) -> None:
    """Запускает сервис через uvicorn.Server на порту из конфигурации."""
    import uvicorn

    _, port = settings.deployment.service_address(name)
    await log_info(f"Запуск {name} на порту {port}...", type_msg=TypeMsg.INFO)

    config = uvicorn.Config(
        SERVICE_APPS[name],
        host="0.0.0.0",
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info(f"{name}: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()
        raise


async def run_all() -> None:
    """Все сервисы в одном процессе (для разработки)."""
    global _running_tasks

    await init_infrastructure()
    try:
        _running_tasks = [asyncio.create_task(run_service(name)) for name in SERVICE_APPS]
        await asyncio.gather(*_running_tasks, return_exceptions=True)
    finally:
        await close_infrastructure()


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Имя сервиса или all. Если None, берётся из COMPONENT_MODE.
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    mode = mode or settings.system.COMPONENT_MODE
    if mode not in VALID_MODES:
        await log_error(f"Неизвестный режим: {mode}")
        print_usage()
        sys.exit(2)

    await log_info(
        f"microshop v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "all":
            await run_all()
        else:
            _running_tasks = [asyncio.create_task(run_service(mode))]
            await asyncio.gather(*_running_tasks, return_exceptions=True)
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    finally:
        for task in _running_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*_running_tasks, return_exceptions=True)
        _running_tasks.clear()
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
microshop — интернет-магазин на микросервисах

Использование:
    python main.py [mode]

Сервисы:
    discovery   — реестр сервисов (:8761)
    gateway     — API Gateway (:8080)
    catalog     — каталог товаров (:8081)
    cart        — корзины (:8082)
    order       — заказы (:8083)
    payment     — платежи (:8084)
    inventory   — склад (:8085)

    all         — все сервисы в одном процессе

Без аргумента режим берётся из COMPONENT_MODE.
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Неизвестный режим: {arg}")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        print("\nОстановлено")
