# microshop/services/discovery/app.py
"""
FastAPI приложение для Discovery Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.lifecycle import infrastructure
from microshop.services.discovery.dependencies import (
    cleanup_dependencies,
    health_checks,
    init_dependencies,
)
from microshop.services.discovery.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения. Реестр сам в себе не регистрируется."""
    async with infrastructure(database=False, event_bus=False) as infra:
        await init_dependencies(infra.redis)
        yield
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.DISCOVERY.value,
    title="Discovery Service",
    description="Реестр экземпляров сервисов.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
