# microshop/services/payments/routes.py
"""
HTTP API платежей.

Endpoints:
- POST /api/payments                    - создать платёж по заказу
- GET  /api/payments/{id}               - платёж
- GET  /api/payments/order/{order_id}   - платежи заказа
- POST /api/payments/{id}/confirm       - результат от провайдера
- POST /api/payments/{id}/refund        - возврат
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from microshop.services.payments.dependencies import get_payment_service
from microshop.services.payments.service import PaymentService
from microshop.shared.models.common import ErrorResponse
from microshop.shared.models.payment import (
    PaymentConfirmRequest,
    PaymentCreateRequest,
    PaymentDTO,
    RefundRequest,
)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.post(
    "",
    response_model=PaymentDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": PaymentDTO, "description": "По заказу уже есть активный платёж"},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Создать платёж",
)
async def create_payment(
    request: PaymentCreateRequest,
    response: Response,
    service: PaymentServiceDep,
) -> PaymentDTO:
    """Сумма и валюта берутся из заказа."""
    payment, created = await service.create_payment(request)
    if not created:
        response.status_code = status.HTTP_200_OK
    return payment


@router.get("/order/{order_id}", response_model=list[PaymentDTO], summary="Платежи заказа")
async def get_order_payments(order_id: str, service: PaymentServiceDep) -> list[PaymentDTO]:
    return await service.get_order_payments(order_id)


@router.get(
    "/{payment_id}",
    response_model=PaymentDTO,
    responses={404: {"model": ErrorResponse}},
    summary="Платёж",
)
async def get_payment(payment_id: str, service: PaymentServiceDep) -> PaymentDTO:
    return await service.get_payment(payment_id)


@router.post(
    "/{payment_id}/confirm",
    response_model=PaymentDTO,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Подтверждение провайдера",
)
async def confirm_payment(
    payment_id: str,
    request: PaymentConfirmRequest,
    service: PaymentServiceDep,
) -> PaymentDTO:
    return await service.confirm_payment(payment_id, request)


@router.post(
    "/{payment_id}/refund",
    response_model=PaymentDTO,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Возврат",
)
async def refund_payment(
    payment_id: str,
    service: PaymentServiceDep,
    request: RefundRequest | None = None,
) -> PaymentDTO:
    return await service.refund_payment(payment_id, request.reason if request else None)
