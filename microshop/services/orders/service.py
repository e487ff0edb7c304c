# microshop/services/orders/service.py
"""
Бизнес-логика заказов.

Оформление заказа:
1. Ключ идемпотентности (Idempotency-Key) захватывается в Redis
2. Позиции берутся из запроса или из корзины пользователя
3. Цены запрашиваются у каталога, итоги считаются на сервере
4. Товар резервируется на складе
5. Заказ сохраняется в статусе pending, публикуется order.placed

Если заказ не удалось сохранить, резерв снимается.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Mapping
from uuid import uuid4

import asyncpg

from microshop.common.exceptions import NotFoundError, ShopError, ValidationFailedError
from microshop.common.logger import log_error, log_info, log_warning
from microshop.services.orders.idempotency import key_reused_error, request_fingerprint
from microshop.services.orders.pricing import PricingRules, merge_lines, price_order
from microshop.services.orders.state_machine import OrderStateMachine
from microshop.shared.events.order_events import OrderCancelled, OrderPlaced, OrderStatusChanged
from microshop.shared.events.payment_events import PaymentRefunded, PaymentSucceeded
from microshop.shared.models.cart import CartDTO
from microshop.shared.models.catalog import ProductDTO
from microshop.shared.models.common import PaginatedResponse, PaginationParams, is_valid_uuid
from microshop.shared.models.inventory import ReservationItem
from microshop.shared.models.order import (
    CreateOrderRequest,
    OrderDTO,
    OrderItemRequest,
    OrderStatus,
)

if TYPE_CHECKING:
    from microshop.infra.event_bus import EventBus
    from microshop.infra.http_client import ServiceClient
    from microshop.services.orders.idempotency import IdempotencyStore
    from microshop.services.orders.repository import OrderRepository


def _json_field(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def row_to_order(row: Mapping[str, Any]) -> OrderDTO:
    data = dict(row)
    data["id"] = str(data["id"])
    data["items"] = _json_field(data["items"])
    data["shipping_address"] = _json_field(data["shipping_address"])
    return OrderDTO.model_validate(data)


class OrderService:
    """
    Сервис заказов.

    Ответственности:
    - Оформление заказа (идемпотентность, расчёт цен, резерв склада)
    - Жизненный цикл заказа по OrderStateMachine
    - Реакция на события оплаты
    """

    def __init__(
        self,
        repository: "OrderRepository",
        event_bus: "EventBus",
        idempotency: "IdempotencyStore",
        catalog: "ServiceClient",
        cart: "ServiceClient",
        inventory: "ServiceClient",
        pricing: PricingRules | None = None,
    ) -> None:
        self.repository = repository
        self.event_bus = event_bus
        self.idempotency = idempotency
        self.catalog = catalog
        self.cart = cart
        self.inventory = inventory
        self.pricing = pricing or PricingRules()

    # =========================================================================
    # ОФОРМЛЕНИЕ
    # =========================================================================

    async def create_order(
        self,
        request: CreateOrderRequest,
        idempotency_key: str | None = None,
    ) -> tuple[OrderDTO, bool]:
        """
        Оформляет заказ.

        Returns:
            (заказ, True) для нового заказа; (заказ, False) для повтора
            запроса с тем же ключом идемпотентности

        Raises:
            IdempotencyConflictError: idempotency_key_reused, request_in_progress
            ValidationFailedError: empty_order, product_unavailable
            InsufficientStockError: insufficient_stock
            ServiceUnavailableError: каталог, корзина или склад недоступны
        """
        if not idempotency_key:
            return await self._place_order(request, None, None)

        fingerprint = request_fingerprint(request.model_dump(mode="json"))
        existing_id = await self.idempotency.begin(idempotency_key, fingerprint)
        if existing_id is not None:
            await log_info(f"Повтор запроса с ключом {idempotency_key}: заказ {existing_id}")
            return await self.get_order(existing_id), False

        try:
            # Ключ мог истечь в Redis, а заказ остаться в базе
            row = await self.repository.get_by_idempotency_key(idempotency_key)
            if row is not None:
                if row["request_fingerprint"] != fingerprint:
                    raise key_reused_error(idempotency_key)
                order, created = row_to_order(row), False
            else:
                order, created = await self._place_order(request, idempotency_key, fingerprint)
        except Exception:
            await self.idempotency.abandon(idempotency_key)
            raise

        await self.idempotency.complete(idempotency_key, fingerprint, order.id)
        return order, created

    async def _place_order(
        self,
        request: CreateOrderRequest,
        idempotency_key: str | None,
        fingerprint: str | None,
    ) -> tuple[OrderDTO, bool]:
        from_cart = request.items is None
        lines = await self._cart_lines(request.user_id) if from_cart else request.items
        lines = merge_lines(lines or [])
        if not lines:
            raise ValidationFailedError(
                "Корзина пуста" if from_cart else "Заказ не содержит товаров",
                error_code="empty_order",
            )

        products = await self._fetch_products([line.product_id for line in lines])
        priced = price_order(lines, products, self.pricing)

        order_id = str(uuid4())
        reservation_items = [
            ReservationItem(product_id=item.product_id, quantity=item.quantity)
            for item in priced.items
        ]
        await self.inventory.post_json(
            "/api/inventory/reservations",
            json={"order_id": order_id, "items": [item.model_dump() for item in reservation_items]},
            idempotent=True,
        )

        try:
            row = await self.repository.create(
                order_id=order_id,
                user_id=request.user_id,
                items=[item.model_dump(mode="json") for item in priced.items],
                subtotal=priced.subtotal,
                tax=priced.tax,
                shipping=priced.shipping,
                total=priced.total,
                currency=priced.currency,
                shipping_address=request.shipping_address.model_dump(mode="json"),
                idempotency_key=idempotency_key,
                request_fingerprint=fingerprint,
            )
        except asyncpg.UniqueViolationError:
            # Параллельный запрос с тем же ключом успел сохранить заказ
            await self._release_after_failure(order_id)
            existing = await self.repository.get_by_idempotency_key(idempotency_key or "")
            if existing is None:
                raise
            if existing["request_fingerprint"] != fingerprint:
                raise key_reused_error(idempotency_key or "")
            return row_to_order(existing), False
        except Exception:
            await self._release_after_failure(order_id)
            raise

        order = row_to_order(row)
        await log_info(
            f"Заказ {order.id} оформлен: {len(order.items)} поз., {order.total} {order.currency}"
        )

        await self.event_bus.publish(OrderPlaced(
            order_id=order.id,
            user_id=order.user_id,
            total=order.total,
            currency=order.currency,
            items=reservation_items,
            from_cart=from_cart,
        ))
        return order, True

    async def _cart_lines(self, user_id: str) -> list[OrderItemRequest]:
        data = await self.cart.get_json(f"/api/cart/{user_id}")
        cart = CartDTO.model_validate(data)
        return [
            OrderItemRequest(product_id=item.product_id, quantity=item.quantity)
            for item in cart.items
        ]

    async def _fetch_products(self, product_ids: list[str]) -> dict[str, ProductDTO]:
        data = await self.catalog.post_json(
            "/api/catalog/items/batch",
            json={"ids": product_ids},
            idempotent=True,
        )
        products = [ProductDTO.model_validate(item) for item in data]
        return {product.id: product for product in products}

    async def _release_reservation(self, order_id: str) -> None:
        """
        Снимает резерв склада (повтор для снятого резерва ничего не меняет).

        Raises:
            ServiceUnavailableError: склад недоступен
        """
        await self.inventory.post_json(
            f"/api/inventory/reservations/{order_id}/release",
            idempotent=True,
        )

    async def _release_after_failure(self, order_id: str) -> None:
        """Компенсация при неудачном создании заказа: наружу уходит исходная ошибка."""
        try:
            await self._release_reservation(order_id)
        except ShopError as e:
            await log_error(f"Не удалось снять резерв заказа {order_id}: {e.error_code} {e.message}")

    async def _commit_reservation(self, order_id: str) -> None:
        """
        Raises:
            ServiceUnavailableError: склад недоступен
        """
        await self.inventory.post_json(
            f"/api/inventory/reservations/{order_id}/commit",
            idempotent=True,
        )

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_order(self, order_id: str) -> OrderDTO:
        """
        Raises:
            NotFoundError: order_not_found
        """
        row = await self.repository.get_by_id(order_id) if is_valid_uuid(order_id) else None
        if row is None:
            raise NotFoundError(f"Заказ {order_id} не найден", error_code="order_not_found")
        return row_to_order(row)

    async def list_orders(
        self,
        pagination: PaginationParams,
        user_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> PaginatedResponse[OrderDTO]:
        rows, total = await self.repository.list_orders(
            limit=pagination.limit,
            offset=pagination.offset,
            user_id=user_id,
            status=status.value if status else None,
        )
        return PaginatedResponse[OrderDTO].create(
            items=[row_to_order(row) for row in rows],
            total=total,
            pagination=pagination,
        )

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def cancel_order(self, order_id: str, reason: str | None = None) -> OrderDTO:
        """
        Отменяет заказ (из pending или paid).

        Резерв снимается только для неоплаченного заказа: оплаченный товар
        уже списан со склада.
        Склад вызывается до смены статуса: если он недоступен, заказ
        остаётся pending и отмену можно повторить.

        Raises:
            NotFoundError: order_not_found
            InvalidTransitionError: invalid_status_transition
            ServiceUnavailableError: склад недоступен
        """
        order = await self.get_order(order_id)
        OrderStateMachine.ensure_transition(order.status, OrderStatus.CANCELLED)
        if order.status == OrderStatus.PENDING:
            await self._release_reservation(order_id)

        previous, cancelled = await self._transition(order, OrderStatus.CANCELLED, cancellation_reason=reason)

        await log_info(f"Заказ {order_id} отменён ({previous.status.value}): {reason or '-'}")
        await self._publish_cancelled(previous, cancelled, reason)
        return cancelled

    async def update_status(self, order_id: str, new_status: OrderStatus) -> OrderDTO:
        """
        Ручная смена статуса.

        Raises:
            NotFoundError: order_not_found
            InvalidTransitionError: invalid_status_transition
            ServiceUnavailableError: склад недоступен (статус не меняется)
        """
        if new_status == OrderStatus.CANCELLED:
            return await self.cancel_order(order_id)

        order = await self.get_order(order_id)
        OrderStateMachine.ensure_transition(order.status, new_status)
        if new_status == OrderStatus.PAID:
            await self._commit_reservation(order_id)

        previous, updated = await self._transition(order, new_status)

        await log_info(f"Заказ {order_id}: {previous.status.value} -> {updated.status.value}")
        await self._publish_status_changed(previous, updated)
        return updated

    async def _transition(
        self,
        order: OrderDTO,
        new_status: OrderStatus,
        payment_id: str | None = None,
        cancellation_reason: str | None = None,
    ) -> tuple[OrderDTO, OrderDTO]:
        """
        Переводит заказ в new_status с оптимистичной проверкой текущего статуса.

        Returns:
            (заказ до перехода, заказ после перехода)
        """
        while True:
            OrderStateMachine.ensure_transition(order.status, new_status)
            row = await self.repository.update_status(
                order.id,
                expected_status=order.status.value,
                new_status=new_status.value,
                timestamp_column=OrderStateMachine.TIMESTAMP_COLUMNS[new_status],
                payment_id=payment_id,
                cancellation_reason=cancellation_reason,
            )
            if row is not None:
                return order, row_to_order(row)
            # Статус изменился параллельно, проверяем переход заново
            order = await self.get_order(order.id)

    async def _publish_status_changed(self, previous: OrderDTO, updated: OrderDTO) -> None:
        await self.event_bus.publish(OrderStatusChanged(
            order_id=updated.id,
            old_status=previous.status.value,
            new_status=updated.status.value,
        ))

    async def _publish_cancelled(self, previous: OrderDTO, cancelled: OrderDTO, reason: str | None) -> None:
        await self.event_bus.publish(OrderCancelled(
            order_id=cancelled.id,
            user_id=cancelled.user_id,
            previous_status=previous.status.value,
            reason=reason,
        ))
        await self._publish_status_changed(previous, cancelled)

    # =========================================================================
    # ОБРАБОТЧИКИ СОБЫТИЙ
    # =========================================================================

    async def handle_payment_succeeded(self, data: dict[str, Any]) -> None:
        """
        payment.succeeded -> резерв списывается, заказ оплачен.

        Если склад недоступен, статус не меняется, а ServiceUnavailableError
        возвращает событие в очередь.
        """
        event = PaymentSucceeded.model_validate(data)
        order = await self.get_order(event.order_id)

        if order.status == OrderStatus.PAID and order.payment_id == event.payment_id:
            return

        if not OrderStateMachine.can_transition(order.status, OrderStatus.PAID):
            await log_warning(
                f"Оплата {event.payment_id} пришла для заказа {order.id} в статусе {order.status.value}"
            )
            return

        await self._commit_reservation(order.id)
        previous, paid = await self._transition(order, OrderStatus.PAID, payment_id=event.payment_id)

        await log_info(f"Заказ {order.id} оплачен (платёж {event.payment_id})")
        await self._publish_status_changed(previous, paid)

    async def handle_payment_refunded(self, data: dict[str, Any]) -> None:
        """payment.refunded -> оплаченный заказ отменяется."""
        event = PaymentRefunded.model_validate(data)
        order = await self.get_order(event.order_id)

        if order.status != OrderStatus.PAID:
            await log_warning(
                f"Возврат {event.payment_id} для заказа {order.id} в статусе {order.status.value} пропущен"
            )
            return

        reason = event.reason or "refunded"
        previous, cancelled = await self._transition(order, OrderStatus.CANCELLED, cancellation_reason=reason)

        await log_info(f"Заказ {order.id} отменён после возврата {event.payment_id}")
        await self._publish_cancelled(previous, cancelled, reason)
