# microshop/services/catalog/app.py
"""
FastAPI приложение для Catalog Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.lifecycle import infrastructure
from microshop.services.catalog.dependencies import (
    cleanup_dependencies,
    health_checks,
    init_dependencies,
)
from microshop.services.catalog.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    async with infrastructure() as infra:
        await init_dependencies(infra.db, infra.redis, infra.event_bus)
        discovery = await register_service(ServiceName.CATALOG.value)

        yield

        await discovery.stop()
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.CATALOG.value,
    title="Catalog Service",
    description="Каталог товаров: цены, категории, поиск.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
