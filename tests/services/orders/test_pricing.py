# tests/services/orders/test_pricing.py
"""
Тесты расчёта стоимости заказа.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from microshop.common.exceptions import ValidationFailedError
from microshop.services.orders.pricing import PricingRules, merge_lines, price_order
from microshop.shared.models.catalog import ProductDTO
from microshop.shared.models.order import OrderItemRequest


def _product(product_id: str, price: str, active: bool = True, currency: str = "EUR") -> ProductDTO:
    return ProductDTO(
        id=product_id,
        sku=f"SKU-{product_id}",
        name=f"Товар {product_id}",
        price=Decimal(price),
        currency=currency,
        is_active=active,
    )


def _line(product_id: str, quantity: int) -> OrderItemRequest:
    return OrderItemRequest(product_id=product_id, quantity=quantity)


@pytest.fixture
def rules() -> PricingRules:
    return PricingRules(
        tax_rate_percent=Decimal("20"),
        free_shipping_threshold=Decimal("50.00"),
        shipping_fee=Decimal("4.99"),
        currency="EUR",
    )


class TestMergeLines:
    def test_keeps_first_occurrence_order(self) -> None:
        merged = merge_lines([_line("b", 1), _line("a", 2), _line("b", 3)])

        assert [(line.product_id, line.quantity) for line in merged] == [("b", 4), ("a", 2)]

    def test_empty(self) -> None:
        assert merge_lines([]) == []


class TestPriceOrder:
    """Тесты итогов заказа."""

    def test_totals_with_shipping(self, rules: PricingRules) -> None:
        priced = price_order([_line("p1", 2)], {"p1": _product("p1", "12.50")}, rules)

        assert priced.subtotal == Decimal("25.00")
        assert priced.tax == Decimal("5.00")
        assert priced.shipping == Decimal("4.99")
        assert priced.total == Decimal("34.99")
        assert priced.currency == "EUR"
        assert priced.items[0].line_total == Decimal("25.00")

    def test_free_shipping_at_threshold(self, rules: PricingRules) -> None:
        priced = price_order([_line("p1", 4)], {"p1": _product("p1", "12.50")}, rules)

        assert priced.subtotal == Decimal("50.00")
        assert priced.shipping == Decimal("0.00")
        assert priced.total == Decimal("60.00")

    def test_tax_rounds_half_up(self, rules: PricingRules) -> None:
        """Цена 0.625 округляется до 0.63 (half-up)."""
        priced = price_order([_line("p1", 1)], {"p1": _product("p1", "0.625")}, rules)

        assert priced.items[0].unit_price == Decimal("0.63")
        assert priced.tax == Decimal("0.13")

    def test_duplicate_lines_merged(self, rules: PricingRules) -> None:
        priced = price_order(
            [_line("p1", 1), _line("p1", 2)],
            {"p1": _product("p1", "1.00")},
            rules,
        )

        assert len(priced.items) == 1
        assert priced.items[0].quantity == 3

    def test_empty_order(self, rules: PricingRules) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            price_order([], {}, rules)

        assert exc_info.value.error_code == "empty_order"

    @pytest.mark.parametrize("product", [
        None,
        _product("p1", "1.00", active=False),
        _product("p1", "1.00", currency="USD"),
    ])
    def test_product_unavailable(self, rules: PricingRules, product: ProductDTO | None) -> None:
        products = {"p1": product} if product else {}

        with pytest.raises(ValidationFailedError) as exc_info:
            price_order([_line("p1", 1)], products, rules)

        assert exc_info.value.error_code == "product_unavailable"
        assert exc_info.value.details == {"product_ids": ["p1"]}
