"""Cart weight and price totals."""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Optional

from cactilia.config import get_settings
from cactilia.services.normalize import CartItem


def item_weight(item: CartItem) -> Decimal:
    return item.product.weight * item.quantity


def item_price(item: CartItem) -> Decimal:
    return item.product.price * item.quantity


def cart_weight(items: Iterable[CartItem]) -> Decimal:
    return sum((item_weight(i) for i in items), Decimal("0"))


def cart_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((item_price(i) for i in items), Decimal("0"))


def cart_quantity(items: Iterable[CartItem]) -> int:
    return sum(i.quantity for i in items)


def normalize_missing_weights(
    items: Iterable[CartItem],
    fallback: Optional[Decimal] = None,
) -> list[CartItem]:
    """Give products saved without a weight the configured fallback weight.

    Returns new cart items; the originals are left untouched.
    """
    if fallback is None:
        fallback = get_settings().fallback_product_weight
    result = []
    for item in items:
        if item.product.weight > 0:
            result.append(item)
        else:
            result.append(replace(item, product=replace(item.product, weight=fallback)))
    return result
