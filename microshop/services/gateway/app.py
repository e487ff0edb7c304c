# microshop/services/gateway/app.py
"""
FastAPI приложение для API Gateway.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.http_client import ServiceClient
from microshop.services.gateway.dependencies import (
    cleanup_dependencies,
    health_checks,
    init_dependencies,
)
from microshop.services.gateway.routes import router
from microshop.services.gateway.routing import ROUTE_TABLE


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения. Шлюзу не нужны база, Redis и шина."""
    discovery = await register_service(ServiceName.GATEWAY.value)
    await init_dependencies({
        name: ServiceClient.from_settings(name, resolver=discovery.resolve)
        for name in sorted(set(ROUTE_TABLE.values()))
    })

    yield

    await discovery.stop()
    await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.GATEWAY.value,
    title="API Gateway",
    description="Единая точка входа в магазин.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
