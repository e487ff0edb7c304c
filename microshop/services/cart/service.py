# microshop/services/cart/service.py
"""
Бизнес-логика корзины.

Корзина хранится в Redis-хеше cart:{user_id}: поле product_id,
значение JSON позиции. TTL продлевается при каждой записи.
Чтение-проверка-запись позиции выполняется под блокировкой корзины.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncIterator

from microshop.common.exceptions import ConflictError, NotFoundError, ValidationFailedError
from microshop.common.logger import log_info
from microshop.shared.events.order_events import OrderPlaced
from microshop.shared.models.cart import (
    AddCartItemRequest,
    CartDTO,
    CartItemDTO,
)
from microshop.shared.models.catalog import ProductDTO

if TYPE_CHECKING:
    from microshop.infra.http_client import ServiceClient
    from microshop.infra.redis_client import RedisClient

# Время жизни блокировки корзины и сколько ждать её захвата, секунды
CART_LOCK_TIMEOUT = 5.0
CART_LOCK_WAIT = 2.0


def cart_key(user_id: str) -> str:
    return f"cart:{user_id}"


def cart_updated_key(user_id: str) -> str:
    return f"cart:{user_id}:updated_at"


def cart_lock_key(user_id: str) -> str:
    return f"cart:{user_id}:lock"


class CartService:
    """Сервис корзины."""

    def __init__(
        self,
        redis: "RedisClient",
        catalog: "ServiceClient",
        cart_ttl: int = 604800,
        max_items: int = 50,
        max_quantity: int = 99,
        currency: str = "EUR",
    ) -> None:
        self.redis = redis
        self.catalog = catalog
        self.cart_ttl = cart_ttl
        self.max_items = max_items
        self.max_quantity = max_quantity
        self.currency = currency

    async def get_cart(self, user_id: str) -> CartDTO:
        """Корзина пользователя (пустая, если её нет)."""
        raw = await self.redis.hgetall(cart_key(user_id))
        items = sorted(
            (CartItemDTO.model_validate_json(value) for value in raw.values()),
            key=lambda item: item.name,
        )
        updated_at = await self.redis.get(cart_updated_key(user_id)) if items else None
        return CartDTO(
            user_id=user_id,
            items=items,
            currency=self.currency,
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    async def add_item(self, user_id: str, request: AddCartItemRequest) -> CartDTO:
        """
        Добавляет товар (или увеличивает количество). Цена фиксируется
        по каталогу на момент добавления.

        Raises:
            NotFoundError: product_not_found (нет в каталоге или снят с продажи)
            ValidationFailedError: cart_limit_exceeded
            ConflictError: cart_busy (блокировка корзины не получена)
        """
        product = await self._fetch_product(request.product_id)

        async with self._locked(user_id):
            existing_raw = await self.redis.hget(cart_key(user_id), product.id)
            existing = CartItemDTO.model_validate_json(existing_raw) if existing_raw else None

            quantity = request.quantity + (existing.quantity if existing else 0)
            self._check_quantity(product.id, quantity)

            if existing is None:
                items_count = await self.redis.hlen(cart_key(user_id))
                if items_count >= self.max_items:
                    raise ValidationFailedError(
                        f"В корзине не может быть больше {self.max_items} разных товаров",
                        error_code="cart_limit_exceeded",
                        details={"max_cart_items": self.max_items},
                    )

            item = CartItemDTO(
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                quantity=quantity,
                unit_price=product.price,
            )
            await self._save_item(user_id, item)
        return await self.get_cart(user_id)

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> CartDTO:
        """Устанавливает количество позиции; 0 удаляет её."""
        async with self._locked(user_id):
            existing_raw = await self.redis.hget(cart_key(user_id), product_id)
            if existing_raw is None:
                raise self._item_not_found(product_id)

            if quantity == 0:
                await self.redis.hdel(cart_key(user_id), product_id)
            else:
                self._check_quantity(product_id, quantity)
                item = CartItemDTO.model_validate_json(existing_raw).model_copy(update={"quantity": quantity})
                await self._save_item(user_id, item)
        return await self.get_cart(user_id)

    async def remove_item(self, user_id: str, product_id: str) -> CartDTO:
        removed = await self.redis.hdel(cart_key(user_id), product_id)
        if not removed:
            raise self._item_not_found(product_id)
        return await self.get_cart(user_id)

    async def clear_cart(self, user_id: str) -> CartDTO:
        await self.redis.delete(cart_key(user_id), cart_updated_key(user_id))
        return CartDTO(user_id=user_id, currency=self.currency)

    # === ОБРАБОТЧИКИ СОБЫТИЙ ===

    async def handle_order_placed(self, data: dict[str, Any]) -> None:
        """order.placed -> из корзины покупателя убираются заказанные товары."""
        event = OrderPlaced.model_validate(data)
        product_ids = [item.product_id for item in event.items]
        if event.from_cart or not product_ids:
            await self.redis.delete(cart_key(event.user_id), cart_updated_key(event.user_id))
        else:
            await self.redis.hdel(cart_key(event.user_id), *product_ids)
        await log_info(f"Корзина {event.user_id} очищена после заказа {event.order_id}")

    # === ВСПОМОГАТЕЛЬНЫЕ ===

    @asynccontextmanager
    async def _locked(self, user_id: str) -> AsyncIterator[None]:
        lock = self.redis.lock(cart_lock_key(user_id), timeout=CART_LOCK_TIMEOUT, blocking_timeout=CART_LOCK_WAIT)
        if not await lock.acquire():
            raise ConflictError(
                "Корзина изменяется параллельным запросом, повторите позже",
                error_code="cart_busy",
            )
        try:
            yield
        finally:
            await lock.release()

    async def _fetch_product(self, product_id: str) -> ProductDTO:
        data = await self.catalog.get_json(f"/api/catalog/items/{product_id}")
        product = ProductDTO.model_validate(data)
        if not product.is_active:
            raise NotFoundError(f"Товар {product_id} снят с продажи", error_code="product_not_found")
        return product

    async def _save_item(self, user_id: str, item: CartItemDTO) -> None:
        await self.redis.hset(cart_key(user_id), item.product_id, item.model_dump_json(), ttl=self.cart_ttl)
        await self.redis.set(
            cart_updated_key(user_id),
            datetime.now(timezone.utc).isoformat(),
            ttl=self.cart_ttl,
        )

    def _check_quantity(self, product_id: str, quantity: int) -> None:
        if quantity > self.max_quantity:
            raise ValidationFailedError(
                f"Количество товара не может превышать {self.max_quantity}",
                error_code="cart_limit_exceeded",
                details={"product_id": product_id, "max_item_quantity": self.max_quantity},
            )

    @staticmethod
    def _item_not_found(product_id: str) -> NotFoundError:
        return NotFoundError(
            f"Товара {product_id} нет в корзине",
            error_code="cart_item_not_found",
        )
