# microshop/services/orders/pricing.py
"""
Расчёт стоимости заказа на сервере.

Цены берутся только из каталога. Все суммы округляются до центов half-up:
    subtotal = Σ unit_price × quantity
    tax      = subtotal × TAX_RATE_PERCENT / 100
    shipping = 0, если subtotal ≥ FREE_SHIPPING_THRESHOLD, иначе SHIPPING_FEE
    total    = subtotal + tax + shipping
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from microshop.common.exceptions import ValidationFailedError
from microshop.shared.models.catalog import ProductDTO
from microshop.shared.models.common import quantize_money
from microshop.shared.models.order import OrderItemDTO, OrderItemRequest


@dataclass(frozen=True)
class PricingRules:
    tax_rate_percent: Decimal = Decimal("20")
    free_shipping_threshold: Decimal = Decimal("50.00")
    shipping_fee: Decimal = Decimal("4.99")
    currency: str = "EUR"


@dataclass(frozen=True)
class PricedOrder:
    items: list[OrderItemDTO]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    currency: str


def merge_lines(lines: list[OrderItemRequest]) -> list[OrderItemRequest]:
    """Объединяет повторяющиеся товары, сохраняя порядок первого появления."""
    totals: dict[str, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return [OrderItemRequest(product_id=pid, quantity=qty) for pid, qty in totals.items()]


def price_order(
    lines: list[OrderItemRequest],
    products: dict[str, ProductDTO],
    rules: PricingRules,
) -> PricedOrder:
    """
    Считает позиции и итоги заказа.

    Raises:
        ValidationFailedError: empty_order, product_unavailable
    """
    merged = merge_lines(lines)
    if not merged:
        raise ValidationFailedError("Заказ не содержит товаров", error_code="empty_order")

    unavailable = [
        line.product_id
        for line in merged
        if line.product_id not in products
        or not products[line.product_id].is_active
        or products[line.product_id].currency != rules.currency
    ]
    if unavailable:
        raise ValidationFailedError(
            "Некоторые товары недоступны для заказа",
            error_code="product_unavailable",
            details={"product_ids": unavailable},
        )

    items: list[OrderItemDTO] = []
    for line in merged:
        product = products[line.product_id]
        unit_price = quantize_money(product.price)
        items.append(OrderItemDTO(
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            quantity=line.quantity,
            unit_price=unit_price,
            line_total=quantize_money(unit_price * line.quantity),
        ))

    subtotal = quantize_money(sum((item.line_total for item in items), Decimal("0")))
    tax = quantize_money(subtotal * rules.tax_rate_percent / Decimal(100))
    shipping = Decimal("0.00") if subtotal >= rules.free_shipping_threshold else quantize_money(rules.shipping_fee)
    total = quantize_money(subtotal + tax + shipping)

    return PricedOrder(
        items=items,
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=total,
        currency=rules.currency,
    )
