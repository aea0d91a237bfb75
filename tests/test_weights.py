"""Weight calculator tests."""

from decimal import Decimal

from conftest import make_item

from cactilia.services.weights import (
    cart_quantity,
    cart_subtotal,
    cart_weight,
    item_price,
    item_weight,
    normalize_missing_weights,
)


class TestTotals:
    def test_item_totals(self):
        item = make_item("a", price=120, weight="0.75", quantity=4)
        assert item_weight(item) == Decimal("3.00")
        assert item_price(item) == Decimal("480")

    def test_cart_totals(self):
        items = [make_item("a", price=100, weight=1, quantity=2), make_item("b", price=50, weight=2)]
        assert cart_weight(items) == Decimal("4")
        assert cart_subtotal(items) == Decimal("250")
        assert cart_quantity(items) == 3

    def test_empty_cart(self):
        assert cart_weight([]) == Decimal("0")
        assert cart_subtotal([]) == Decimal("0")


class TestMissingWeights:
    def test_fallback_applied_to_weightless_products(self):
        items = [make_item("a", weight=0), make_item("b", weight=2)]
        result = normalize_missing_weights(items, Decimal("0.5"))
        assert result[0].product.weight == Decimal("0.5")
        assert result[1].product.weight == Decimal("2")

    def test_inputs_untouched(self):
        items = [make_item("a", weight=0)]
        normalize_missing_weights(items, Decimal("0.5"))
        assert items[0].product.weight == Decimal("0")

    def test_default_fallback_from_settings(self):
        result = normalize_missing_weights([make_item("a", weight=0)])
        assert result[0].product.weight == Decimal("0.5")
