# microshop/services/inventory/app.py
"""
FastAPI приложение для Inventory Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.lifecycle import infrastructure
from microshop.services.inventory.dependencies import (
    cleanup_dependencies,
    get_inventory_service,
    health_checks,
    init_dependencies,
)
from microshop.services.inventory.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    async with infrastructure(redis=False) as infra:
        await init_dependencies(infra.db, infra.event_bus)

        service = get_inventory_service()
        await infra.event_bus.subscribe(
            "product.created",
            service.handle_product_created,
            queue_name="inventory.product_created",
        )
        discovery = await register_service(ServiceName.INVENTORY.value)

        yield

        await discovery.stop()
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.INVENTORY.value,
    title="Inventory Service",
    description="Остатки на складе и резервы под заказы.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
