# microshop/services/payments/app.py
"""
FastAPI приложение для Payment Service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from microshop.common.app_factory import create_service_app
from microshop.common.constants import ServiceName
from microshop.infra.discovery_client import register_service
from microshop.infra.http_client import ServiceClient
from microshop.infra.lifecycle import infrastructure
from microshop.services.payments.dependencies import (
    cleanup_dependencies,
    get_payment_service,
    health_checks,
    init_dependencies,
)
from microshop.services.payments.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    async with infrastructure() as infra:
        discovery = await register_service(ServiceName.PAYMENT.value)
        order_client = ServiceClient.from_settings(ServiceName.ORDER.value, resolver=discovery.resolve)
        await init_dependencies(infra.db, infra.redis, infra.event_bus, order_client)

        await infra.event_bus.subscribe(
            "order.cancelled",
            get_payment_service().handle_order_cancelled,
            queue_name="payment.order_cancelled",
        )

        yield

        await discovery.stop()
        await cleanup_dependencies()


app = create_service_app(
    service_name=ServiceName.PAYMENT.value,
    title="Payment Service",
    description="Платежи по заказам и возвраты.",
    lifespan=lifespan,
    health_checks=health_checks,
)
app.include_router(router)
