# microshop/services/cart/app.py
"""
FastAPI приложение для Cart Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.http_client import ServiceClient
from microshop.infra.lifecycle import infrastructure
from microshop.services.cart.dependencies import (
    cleanup_dependencies,
    get_cart_service,
    health_checks,
    init_dependencies,
)
from microshop.services.cart.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    async with infrastructure(database=False) as infra:
        discovery = await register_service(ServiceName.CART.value)
        catalog_client = ServiceClient.from_settings(ServiceName.CATALOG.value, resolver=discovery.resolve)
        await init_dependencies(infra.redis, infra.event_bus, catalog_client)

        await infra.event_bus.subscribe(
            "order.placed",
            get_cart_service().handle_order_placed,
            queue_name="cart.order_placed",
        )

        yield

        await discovery.stop()
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.CART.value,
    title="Cart Service",
    description="Корзины покупателей.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
