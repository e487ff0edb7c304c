# microshop/common/app_factory.py
"""
Сборка FastAPI-приложения сервиса: middleware, обработчики ошибок, /health.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncContextManager, Awaitable, Callable

from fastapi import FastAPI

from microshop.common.exceptions import register_exception_handlers
from microshop.common.logger import log_warning
from microshop.common.middleware import RequestContextMiddleware
from microshop.shared.models.common import HealthStatus

HealthChecks = Callable[[], dict[str, Callable[[], Awaitable[bool]]]]


def create_service_app(
    service_name: str,
    title: str,
    lifespan: Callable[[FastAPI], AsyncContextManager[Any]] | None = None,
    description: str = "",
    health_checks: HealthChecks | None = None,
) -> FastAPI:
    """
    Создаёт приложение сервиса.

    Args:
        service_name: Имя сервиса (catalog, cart, ...)
        title: Заголовок OpenAPI
        lifespan: Жизненный цикл (подключения, подписки, discovery)
        health_checks: Функция, возвращающая проверки зависимостей {имя: coroutine}
    """
    from microshop.config import settings

    version = settings.system.VERSION
    app = FastAPI(
        title=title,
        description=description,
        version=version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    started_at = time.monotonic()

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и его зависимостей."""
        dependencies: dict[str, str] = {}
        try:
            checks = health_checks() if health_checks is not None else {}
        except RuntimeError as e:
            await log_warning(f"Health check {service_name}: {e}")
            return HealthStatus(
                service=service_name,
                status="unhealthy",
                version=version,
                uptime_seconds=round(time.monotonic() - started_at, 1),
            )

        async def run_check(name: str, check: Callable[[], Awaitable[bool]]) -> bool:
            try:
                return await check()
            except RuntimeError as e:
                # Зависимость ещё не инициализирована
                await log_warning(f"Health check {name}: {e}")
                return False

        # проверки идут параллельно
        results = await asyncio.gather(*(run_check(name, check) for name, check in checks.items()))
        for name, ok in zip(checks, results):
            dependencies[name] = "healthy" if ok else "unhealthy"

        status = "healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded"
        return HealthStatus(
            service=service_name,
            status=status,
            version=version,
            uptime_seconds=round(time.monotonic() - started_at, 1),
            dependencies=dependencies,
        )

    return app
