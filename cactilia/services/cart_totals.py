"""Checkout totals with tax-inclusive prices.

Catalog prices already include IVA, so the tax is backed out of the total
instead of added on top.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from cactilia.config import get_settings
from cactilia.services.normalize import CartItem
from cactilia.services.weights import cart_subtotal

CENTS = Decimal("0.01")


@dataclass
class CartTotals:
    subtotal: Decimal
    taxes: Decimal
    shipping: Decimal
    total: Decimal
    final_total: Decimal
    is_free_shipping: bool

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "taxes": str(self.taxes),
            "shipping": str(self.shipping),
            "total": str(self.total),
            "final_total": str(self.final_total),
            "is_free_shipping": self.is_free_shipping,
        }


def _cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_cart_totals(
    items: Iterable[CartItem],
    tax_rate: Optional[Decimal] = None,
    min_free_shipping: Optional[Decimal] = None,
    shipping_cost: Decimal = Decimal("0"),
) -> CartTotals:
    settings = get_settings()
    if tax_rate is None:
        tax_rate = settings.tax_rate
    if min_free_shipping is None:
        min_free_shipping = settings.min_free_shipping

    total = cart_subtotal(items)
    subtotal = total / (1 + tax_rate)
    taxes = total - subtotal
    is_free = total >= min_free_shipping
    shipping = Decimal("0") if is_free else shipping_cost

    return CartTotals(
        subtotal=_cents(subtotal),
        taxes=_cents(taxes),
        shipping=_cents(shipping),
        total=_cents(total),
        final_total=_cents(total + shipping),
        is_free_shipping=is_free,
    )
