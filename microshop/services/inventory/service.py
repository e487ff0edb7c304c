# microshop/services/inventory/service.py
"""
Бизнес-логика склада.

Резервирование выполняется «всё или ничего» в одной транзакции:
строки остатков блокируются в порядке product_id, при нехватке
хотя бы одного товара ничего не резервируется.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Mapping

import asyncpg

from microshop.common.exceptions import ConflictError, InsufficientStockError, NotFoundError
from microshop.common.logger import log_info, log_warning
from microshop.shared.events.catalog_events import ProductCreated
from microshop.shared.events.inventory_events import (
    StockCommitted,
    StockLow,
    StockReleased,
    StockReserved,
)
from microshop.shared.models.inventory import (
    ReservationDTO,
    ReservationItem,
    ReservationStatus,
    ReserveStockRequest,
    StockDTO,
)

if TYPE_CHECKING:
    from microshop.infra.event_bus import EventBus
    from microshop.services.inventory.repository import InventoryRepository


def row_to_stock(row: Mapping[str, Any]) -> StockDTO:
    return StockDTO(
        product_id=row["product_id"],
        quantity_on_hand=row["quantity_on_hand"],
        quantity_reserved=row["quantity_reserved"],
        updated_at=row.get("updated_at"),
    )


def row_to_reservation(row: Mapping[str, Any]) -> ReservationDTO:
    items = row["items"]
    if isinstance(items, str):
        items = json.loads(items)
    return ReservationDTO(
        order_id=row["order_id"],
        items=[ReservationItem.model_validate(item) for item in items],
        status=ReservationStatus(row["status"]),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def merge_items(items: list[ReservationItem]) -> list[ReservationItem]:
    """Складывает повторяющиеся позиции; результат отсортирован по product_id."""
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return [ReservationItem(product_id=pid, quantity=qty) for pid, qty in sorted(totals.items())]


class InventoryService:
    """
    Сервис склада.

    Ответственности:
    - Учёт остатков (on hand / reserved / available)
    - Резервы под заказы: reserve, commit, release
    - События stock.* и предупреждение о низком остатке
    """

    def __init__(
        self,
        repository: "InventoryRepository",
        event_bus: "EventBus",
        low_stock_threshold: int = 5,
    ) -> None:
        self.repository = repository
        self.event_bus = event_bus
        self.low_stock_threshold = low_stock_threshold

    # === ОСТАТКИ ===

    async def get_stock(self, product_id: str) -> StockDTO:
        """Остаток товара; для неизвестного товара нулевой."""
        row = await self.repository.get_stock(product_id)
        if row is None:
            return StockDTO(product_id=product_id)
        return row_to_stock(row)

    async def set_stock(self, product_id: str, quantity_on_hand: int) -> StockDTO:
        """
        Устанавливает абсолютный остаток.

        Raises:
            ConflictError: stock_conflict (меньше зарезервированного)
        """
        async with self.repository.transaction() as conn:
            await self.repository.ensure_stock(product_id, conn)
            current = (await self.repository.lock_stock(conn, [product_id]))[product_id]
            self._check_not_below_reserved(product_id, quantity_on_hand, current["quantity_reserved"])

            row = await self.repository.update_stock(
                conn, product_id, quantity_on_hand, current["quantity_reserved"]
            )
            delta = quantity_on_hand - current["quantity_on_hand"]
            if delta:
                await self.repository.add_movement(conn, product_id, delta, "set")

        stock = row_to_stock(row)
        await self._check_low_stock(stock)
        return stock

    async def adjust_stock(self, product_id: str, delta: int, reason: str | None = None) -> StockDTO:
        """
        Изменяет остаток на delta (приход > 0, списание < 0).

        Raises:
            ConflictError: stock_conflict (результат меньше зарезервированного)
        """
        async with self.repository.transaction() as conn:
            await self.repository.ensure_stock(product_id, conn)
            current = (await self.repository.lock_stock(conn, [product_id]))[product_id]
            new_on_hand = current["quantity_on_hand"] + delta
            self._check_not_below_reserved(product_id, new_on_hand, current["quantity_reserved"])

            row = await self.repository.update_stock(
                conn, product_id, new_on_hand, current["quantity_reserved"]
            )
            if delta:
                await self.repository.add_movement(conn, product_id, delta, reason or "adjust")

        stock = row_to_stock(row)
        await log_info(f"Остаток {product_id} изменён на {delta:+d}: {stock.quantity_on_hand}")
        await self._check_low_stock(stock)
        return stock

    @staticmethod
    def _check_not_below_reserved(product_id: str, on_hand: int, reserved: int) -> None:
        if on_hand < 0 or on_hand < reserved:
            raise ConflictError(
                f"Остаток {product_id} не может быть меньше зарезервированного ({reserved})",
                error_code="stock_conflict",
                details={"product_id": product_id, "quantity_on_hand": on_hand, "quantity_reserved": reserved},
            )

    # === РЕЗЕРВЫ ===

    async def get_reservation(self, order_id: str) -> ReservationDTO:
        row = await self.repository.get_reservation(order_id)
        if row is None:
            raise NotFoundError(f"Резерв для заказа {order_id} не найден", error_code="reservation_not_found")
        return row_to_reservation(row)

    async def reserve(self, request: ReserveStockRequest) -> ReservationDTO:
        """
        Резервирует товары под заказ (всё или ничего).

        Повторный вызов с тем же order_id возвращает существующий резерв.

        Raises:
            InsufficientStockError: insufficient_stock, в details.items нехватка по товарам
        """
        items = merge_items(request.items)

        try:
            async with self.repository.transaction() as conn:
                existing = await self.repository.lock_reservation(conn, request.order_id)
                if existing is not None:
                    return row_to_reservation(existing)

                stock = await self.repository.lock_stock(conn, [item.product_id for item in items])

                shortages = []
                for item in items:
                    row = stock.get(item.product_id)
                    available = row["quantity_on_hand"] - row["quantity_reserved"] if row else 0
                    if available < item.quantity:
                        shortages.append({
                            "product_id": item.product_id,
                            "requested": item.quantity,
                            "available": max(available, 0),
                        })
                if shortages:
                    raise InsufficientStockError(
                        "Недостаточно товара на складе",
                        details={"items": shortages},
                    )

                for item in items:
                    row = stock[item.product_id]
                    await self.repository.update_stock(
                        conn,
                        item.product_id,
                        row["quantity_on_hand"],
                        row["quantity_reserved"] + item.quantity,
                    )

                reservation_row = await self.repository.create_reservation(
                    conn,
                    request.order_id,
                    [item.model_dump() for item in items],
                )
        except asyncpg.UniqueViolationError:
            # Параллельный запрос с тем же order_id успел раньше
            return await self.get_reservation(request.order_id)

        reservation = row_to_reservation(reservation_row)
        await log_info(f"Резерв создан для заказа {request.order_id}: {len(items)} поз.")
        await self.event_bus.publish(StockReserved(order_id=request.order_id, items=reservation.items))
        return reservation

    async def commit(self, order_id: str) -> ReservationDTO:
        """Списывает зарезервированный товар. Для неактивного резерва ничего не делает."""
        updated_stock: list[StockDTO] = []

        async with self.repository.transaction() as conn:
            row = await self.repository.lock_reservation(conn, order_id)
            if row is None:
                raise NotFoundError(f"Резерв для заказа {order_id} не найден", error_code="reservation_not_found")

            reservation = row_to_reservation(row)
            if reservation.status != ReservationStatus.ACTIVE:
                return reservation

            stock = await self.repository.lock_stock(conn, [item.product_id for item in reservation.items])
            for item in reservation.items:
                current = stock[item.product_id]
                new_row = await self.repository.update_stock(
                    conn,
                    item.product_id,
                    current["quantity_on_hand"] - item.quantity,
                    current["quantity_reserved"] - item.quantity,
                )
                await self.repository.add_movement(conn, item.product_id, -item.quantity, "commit", order_id)
                updated_stock.append(row_to_stock(new_row))

            row = await self.repository.set_reservation_status(conn, order_id, ReservationStatus.COMMITTED.value)

        reservation = row_to_reservation(row)
        await log_info(f"Резерв заказа {order_id} списан")
        await self.event_bus.publish(StockCommitted(order_id=order_id, items=reservation.items))
        for stock_item in updated_stock:
            await self._check_low_stock(stock_item)
        return reservation

    async def release(self, order_id: str) -> ReservationDTO:
        """Снимает резерв. Для неактивного резерва ничего не делает."""
        async with self.repository.transaction() as conn:
            row = await self.repository.lock_reservation(conn, order_id)
            if row is None:
                raise NotFoundError(f"Резерв для заказа {order_id} не найден", error_code="reservation_not_found")

            reservation = row_to_reservation(row)
            if reservation.status != ReservationStatus.ACTIVE:
                return reservation

            stock = await self.repository.lock_stock(conn, [item.product_id for item in reservation.items])
            for item in reservation.items:
                current = stock[item.product_id]
                await self.repository.update_stock(
                    conn,
                    item.product_id,
                    current["quantity_on_hand"],
                    current["quantity_reserved"] - item.quantity,
                )

            row = await self.repository.set_reservation_status(conn, order_id, ReservationStatus.RELEASED.value)

        reservation = row_to_reservation(row)
        await log_info(f"Резерв заказа {order_id} снят")
        await self.event_bus.publish(StockReleased(order_id=order_id, items=reservation.items))
        return reservation

    async def _check_low_stock(self, stock: StockDTO) -> None:
        if stock.available <= self.low_stock_threshold:
            await log_warning(f"Низкий остаток {stock.product_id}: {stock.available}")
            await self.event_bus.publish(StockLow(
                product_id=stock.product_id,
                available=stock.available,
                threshold=self.low_stock_threshold,
            ))

    # === ОБРАБОТЧИКИ СОБЫТИЙ ===

    async def handle_product_created(self, data: dict[str, Any]) -> None:
        """product.created -> нулевая запись остатка."""
        event = ProductCreated.model_validate(data)
        await self.repository.ensure_stock(event.product_id)
        await log_info(f"Создан учёт остатка для товара {event.product_id}")
