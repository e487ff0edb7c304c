# microshop/services/payments/service.py
"""
Бизнес-логика платежей.

Сумма и валюта платежа всегда берутся из заказа. Подтверждение
приходит от платёжного провайдера (callback) и переводит pending
платёж в succeeded или failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import asyncpg

from microshop.common.exceptions import ConflictError, NotFoundError
from microshop.common.logger import log_info, log_warning
from microshop.shared.events.order_events import OrderCancelled
from microshop.shared.events.payment_events import (
    PaymentFailed,
    PaymentRefunded,
    PaymentRequested,
    PaymentSucceeded,
)
from microshop.shared.models.common import is_valid_uuid
from microshop.shared.models.order import OrderDTO, OrderStatus
from microshop.shared.models.payment import (
    PaymentConfirmRequest,
    PaymentCreateRequest,
    PaymentDTO,
    PaymentStatus,
)

if TYPE_CHECKING:
    from microshop.infra.event_bus import EventBus
    from microshop.infra.http_client import ServiceClient
    from microshop.infra.redis_client import RedisClient
    from microshop.services.payments.repository import PaymentRepository


def payment_cache_key(payment_id: str) -> str:
    return f"payment:{payment_id}"


def row_to_payment(row: Mapping[str, Any]) -> PaymentDTO:
    data = dict(row)
    data["id"] = str(data["id"])
    return PaymentDTO.model_validate(data)


class PaymentService:
    """
    Сервис платежей.

    Ответственности:
    - Создание платежа по заказу (не больше одного активного)
    - Подтверждение провайдером и возвраты
    - Кэш платежей в Redis, события payment.*
    """

    def __init__(
        self,
        repository: "PaymentRepository",
        redis: "RedisClient",
        event_bus: "EventBus",
        orders: "ServiceClient",
        payment_ttl: int = 3600,
    ) -> None:
        self.repository = repository
        self.redis = redis
        self.event_bus = event_bus
        self.orders = orders
        self.payment_ttl = payment_ttl

    async def create_payment(self, request: PaymentCreateRequest) -> tuple[PaymentDTO, bool]:
        """
        Создаёт платёж по заказу.

        Returns:
            (платёж, True) для нового; (платёж, False), если по заказу уже
            есть платёж в статусе pending или succeeded

        Raises:
            ShopError: order_not_found (от Order Service)
            ConflictError: order_not_payable
        """
        order = OrderDTO.model_validate(await self.orders.get_json(f"/api/orders/{request.order_id}"))

        existing = await self.repository.get_active_for_order(order.id)
        if existing is not None:
            return row_to_payment(existing), False

        if order.status != OrderStatus.PENDING:
            raise ConflictError(
                f"Заказ {order.id} в статусе {order.status.value} не может быть оплачен",
                error_code="order_not_payable",
                details={"order_id": order.id, "status": order.status.value},
            )

        try:
            row = await self.repository.create(
                order_id=order.id,
                user_id=order.user_id,
                amount=order.total,
                currency=order.currency,
                method=request.method.value,
            )
        except asyncpg.UniqueViolationError:
            # Параллельный запрос уже создал платёж
            existing = await self.repository.get_active_for_order(order.id)
            if existing is None:
                raise
            return row_to_payment(existing), False

        payment = row_to_payment(row)
        await self._cache(payment)
        await log_info(f"Платёж {payment.id} создан: заказ {order.id}, {payment.amount} {payment.currency}")

        await self.event_bus.publish(PaymentRequested(
            payment_id=payment.id,
            order_id=payment.order_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.method.value,
        ))
        return payment, True

    async def get_payment(self, payment_id: str) -> PaymentDTO:
        """
        Raises:
            NotFoundError: payment_not_found
        """
        cached = await self.redis.get_model(payment_cache_key(payment_id), PaymentDTO)
        if cached is not None:
            return cached

        row = await self.repository.get_by_id(payment_id) if is_valid_uuid(payment_id) else None
        if row is None:
            raise NotFoundError(f"Платёж {payment_id} не найден", error_code="payment_not_found")

        payment = row_to_payment(row)
        await self._cache(payment)
        return payment

    async def get_order_payments(self, order_id: str) -> list[PaymentDTO]:
        rows = await self.repository.get_by_order(order_id)
        return [row_to_payment(row) for row in rows]

    async def confirm_payment(self, payment_id: str, request: PaymentConfirmRequest) -> PaymentDTO:
        """
        Результат от провайдера: pending -> succeeded | failed.

        Raises:
            NotFoundError: payment_not_found
            ConflictError: invalid_payment_state
        """
        payment = await self._load(payment_id)
        new_status = PaymentStatus.SUCCEEDED if request.success else PaymentStatus.FAILED

        updated = await self._transition(
            payment,
            expected=PaymentStatus.PENDING,
            new_status=new_status,
            provider_charge_id=request.provider_charge_id,
            error_message=None if request.success else (request.error_message or "declined"),
        )

        if updated.status == PaymentStatus.SUCCEEDED:
            await log_info(f"Платёж {updated.id} успешен (заказ {updated.order_id})")
            await self.event_bus.publish(PaymentSucceeded(
                payment_id=updated.id,
                order_id=updated.order_id,
                user_id=updated.user_id,
                amount=updated.amount,
                currency=updated.currency,
                provider_charge_id=updated.provider_charge_id,
            ))
        else:
            await log_warning(f"Платёж {updated.id} отклонён: {updated.error_message}")
            await self.event_bus.publish(PaymentFailed(
                payment_id=updated.id,
                order_id=updated.order_id,
                user_id=updated.user_id,
                error_message=updated.error_message,
            ))
        return updated

    async def refund_payment(self, payment_id: str, reason: str | None = None) -> PaymentDTO:
        """
        Возврат: succeeded -> refunded.

        Raises:
            NotFoundError: payment_not_found
            ConflictError: invalid_payment_state
        """
        payment = await self._load(payment_id)
        updated = await self._transition(
            payment,
            expected=PaymentStatus.SUCCEEDED,
            new_status=PaymentStatus.REFUNDED,
        )

        await log_info(f"Платёж {updated.id} возвращён: {reason or '-'}")
        await self.event_bus.publish(PaymentRefunded(
            payment_id=updated.id,
            order_id=updated.order_id,
            user_id=updated.user_id,
            amount=updated.amount,
            currency=updated.currency,
            reason=reason,
        ))
        return updated

    # === ОБРАБОТЧИКИ СОБЫТИЙ ===

    async def handle_order_cancelled(self, data: dict[str, Any]) -> None:
        """order.cancelled -> ожидающий платёж заказа помечается как failed."""
        event = OrderCancelled.model_validate(data)
        row = await self.repository.get_active_for_order(event.order_id)
        if row is None or row["status"] != PaymentStatus.PENDING.value:
            return

        payment = row_to_payment(row)
        updated_row = await self.repository.update_status(
            payment.id,
            expected_status=PaymentStatus.PENDING.value,
            new_status=PaymentStatus.FAILED.value,
            error_message="order_cancelled",
        )
        if updated_row is None:
            return

        updated = row_to_payment(updated_row)
        await self.redis.delete(payment_cache_key(updated.id))
        await log_info(f"Платёж {updated.id} закрыт: заказ {event.order_id} отменён")
        await self.event_bus.publish(PaymentFailed(
            payment_id=updated.id,
            order_id=updated.order_id,
            user_id=updated.user_id,
            error_message=updated.error_message,
        ))

    # === ВСПОМОГАТЕЛЬНЫЕ ===

    async def _load(self, payment_id: str) -> PaymentDTO:
        """Платёж из базы (для изменений кэш не используется)."""
        row = await self.repository.get_by_id(payment_id) if is_valid_uuid(payment_id) else None
        if row is None:
            raise NotFoundError(f"Платёж {payment_id} не найден", error_code="payment_not_found")
        return row_to_payment(row)

    async def _transition(
        self,
        payment: PaymentDTO,
        expected: PaymentStatus,
        new_status: PaymentStatus,
        provider_charge_id: str | None = None,
        error_message: str | None = None,
    ) -> PaymentDTO:
        if payment.status != expected:
            raise self._invalid_state(payment.id, payment.status, new_status)

        row = await self.repository.update_status(
            payment.id,
            expected_status=expected.value,
            new_status=new_status.value,
            provider_charge_id=provider_charge_id,
            error_message=error_message,
        )
        await self.redis.delete(payment_cache_key(payment.id))
        if row is None:
            current = await self._load(payment.id)
            raise self._invalid_state(payment.id, current.status, new_status)

        updated = row_to_payment(row)
        await self._cache(updated)
        return updated

    async def _cache(self, payment: PaymentDTO) -> None:
        await self.redis.set_model(payment_cache_key(payment.id), payment, ttl=self.payment_ttl)

    @staticmethod
    def _invalid_state(payment_id: str, current: PaymentStatus, requested: PaymentStatus) -> ConflictError:
        return ConflictError(
            f"Платёж {payment_id} в статусе {current.value} нельзя перевести в {requested.value}",
            error_code="invalid_payment_state",
            details={"current_status": current.value, "requested_status": requested.value},
        )
