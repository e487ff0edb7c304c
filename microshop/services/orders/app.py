# microshop/services/orders/app.py
"""
FastAPI приложение для Order Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.http_client import ServiceClient
from microshop.infra.lifecycle import infrastructure
from microshop.services.orders.dependencies import (
    cleanup_dependencies,
    get_order_service,
    health_checks,
    init_dependencies,
)
from microshop.services.orders.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    async with infrastructure() as infra:
        discovery = await register_service(ServiceName.ORDER.value)
        await init_dependencies(
            infra.db,
            infra.redis,
            infra.event_bus,
            catalog_client=ServiceClient.from_settings(ServiceName.CATALOG.value, resolver=discovery.resolve),
            cart_client=ServiceClient.from_settings(ServiceName.CART.value, resolver=discovery.resolve),
            inventory_client=ServiceClient.from_settings(ServiceName.INVENTORY.value, resolver=discovery.resolve),
        )

        service = get_order_service()
        await infra.event_bus.subscribe(
            "payment.succeeded",
            service.handle_payment_succeeded,
            queue_name="order.payment_succeeded",
        )
        await infra.event_bus.subscribe(
            "payment.refunded",
            service.handle_payment_refunded,
            queue_name="order.payment_refunded",
        )

        yield

        await discovery.stop()
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.ORDER.value,
    title="Order Service",
    description="Оформление заказов и их жизненный цикл.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
