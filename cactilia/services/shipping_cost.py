"""Package and option pricing.

Free shipping is decided in this order:

1. ``envio_gratis`` on the rule
2. the order subtotal against ``envio_variable`` (when it applies)
3. each package's own subtotal against the rule's minimum amount
   (root ``envio_gratis_monto_minimo``, else the ``envio_variable`` one)
4. otherwise base price plus the extra weight surcharge
"""

import math
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, Optional

from cactilia.services.delivery_time import pick_days
from cactilia.services.normalize import (
    MAX_DAYS_FIELDS,
    MIN_DAYS_FIELDS,
    CartItem,
    PackageConfig,
    ShippingRule,
)
from cactilia.services.packaging import Package, default_package_config
from cactilia.services.weights import cart_quantity, cart_subtotal, cart_weight

ZERO = Decimal("0")


@dataclass
class PackageCost:
    base_cost: Decimal = ZERO
    extra_cost: Decimal = ZERO
    total_cost: Decimal = ZERO
    is_free: bool = False
    free_shipping_reason: Optional[str] = None
    details: dict = field(default_factory=dict)


@dataclass
class GroupCost:
    total_option_cost: Decimal
    updated_packages: list[Package]

    @property
    def is_free(self) -> bool:
        return self.total_option_cost == 0


@dataclass
class ShippingDetails:
    cost: Decimal = ZERO
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    is_free: bool = False


def _surcharge_terms(
    rule: ShippingRule,
    defaults: Optional[PackageConfig] = None,
) -> tuple[Optional[Decimal], Decimal]:
    """(max_weight, cost per extra kg) used for the overweight surcharge."""
    if defaults is None:
        defaults = default_package_config()
    config = rule.effective_package_config() or PackageConfig()
    max_weight = config.max_weight if config.max_weight and config.max_weight > 0 else defaults.max_weight
    per_kg = config.extra_kg_cost if config.extra_kg_cost and config.extra_kg_cost > 0 else defaults.extra_kg_cost
    if max_weight is not None and max_weight <= 0:
        max_weight = None
    return max_weight, per_kg or ZERO


def extra_weight_cost(weight: Decimal, max_weight: Optional[Decimal], per_kg: Decimal) -> Decimal:
    """Surcharge for weight over the ceiling, charged per started kilogram."""
    if max_weight is None or per_kg <= 0 or weight <= max_weight:
        return ZERO
    return Decimal(math.ceil(weight - max_weight)) * per_kg


def _order_threshold_met(rule: ShippingRule, order_subtotal: Decimal) -> bool:
    variable = rule.variable
    if not variable or not variable.applies:
        return False
    minimum = variable.min_free_amount
    return minimum is not None and minimum > 0 and order_subtotal >= minimum


def should_apply_free_shipping(subtotal: Decimal, rule: Optional[ShippingRule]) -> bool:
    if rule is None:
        return False
    return rule.free_shipping or _order_threshold_met(rule, subtotal)


def calculate_package_cost(
    package: Optional[Package],
    rule: Optional[ShippingRule],
    order_subtotal: Decimal = ZERO,
    defaults: Optional[PackageConfig] = None,
) -> PackageCost:
    if package is None or rule is None:
        return PackageCost()

    if rule.free_shipping:
        return PackageCost(is_free=True, free_shipping_reason="free_shipping")

    if _order_threshold_met(rule, order_subtotal):
        return PackageCost(is_free=True, free_shipping_reason="minimum_amount")

    base = rule.effective_base_price()
    max_weight, per_kg = _surcharge_terms(rule, defaults)
    extra = extra_weight_cost(package.total_weight, max_weight, per_kg)
    return PackageCost(
        base_cost=base,
        extra_cost=extra,
        total_cost=base + extra,
        details={
            "weight": package.total_weight,
            "max_weight": max_weight,
            "extra_weight_cost": per_kg,
        },
    )


def package_subtotal(package: Package) -> Decimal:
    return cart_subtotal(package.items)


def calculate_group_cost(
    packages: Iterable[Package],
    rule: ShippingRule,
    order_subtotal: Optional[Decimal] = None,
    defaults: Optional[PackageConfig] = None,
) -> GroupCost:
    """Price every package of one option; returns annotated copies.

    A package whose own subtotal reaches the rule's minimum amount ships free
    even when its siblings do not. When ``order_subtotal`` meets the rule's
    ``envio_variable`` minimum every package ships free.
    """
    threshold = rule.free_threshold()
    order_free = order_subtotal is not None and _order_threshold_met(rule, order_subtotal)
    updated = []
    total = ZERO

    for pkg in packages:
        subtotal = package_subtotal(pkg)
        is_free = (
            rule.free_shipping
            or order_free
            or (threshold is not None and subtotal >= threshold)
        )
        price = ZERO if is_free else calculate_package_cost(pkg, rule, defaults=defaults).total_cost
        updated.append(replace(pkg, subtotal=subtotal, is_free=is_free, price=price))
        total += price

    if updated and all(p.is_free for p in updated):
        total = ZERO
    return GroupCost(total_option_cost=total, updated_packages=updated)


def calculate_total_shipping_cost(
    packages: Iterable[Package],
    rule: Optional[ShippingRule],
    order_subtotal: Decimal = ZERO,
    defaults: Optional[PackageConfig] = None,
) -> Decimal:
    """Order-level variant: a qualifying order makes every package free."""
    packages = list(packages or [])
    if not packages or rule is None:
        return ZERO
    if should_apply_free_shipping(order_subtotal, rule):
        return ZERO
    return sum(
        (calculate_package_cost(pkg, rule, defaults=defaults).total_cost for pkg in packages),
        ZERO,
    )


def calculate_shipping_details(
    rule: Optional[ShippingRule],
    items: Optional[Iterable[CartItem]],
) -> ShippingDetails:
    """Quote a whole set of items against one rule as a single shipment.

    Uses the cheapest messaging option when the rule has any. Extra kilograms
    are rounded up; units over the per-package count are charged
    ``costo_por_producto_extra`` each.
    """
    items = list(items or [])
    if rule is None or not items:
        return ShippingDetails()

    option = rule.cheapest_option()
    if option is not None:
        cost = option.price
        config = option.package_config
    else:
        cost = rule.base_price or ZERO
        config = rule.package_config

    if config is not None:
        weight = cart_weight(items)
        if config.max_weight is not None and config.extra_kg_cost is not None:
            cost += extra_weight_cost(weight, config.max_weight, config.extra_kg_cost)
        if config.max_items is not None and config.extra_item_cost is not None:
            extra_units = cart_quantity(items) - config.max_items
            if extra_units > 0:
                cost += extra_units * config.extra_item_cost

    min_days = pick_days(rule.days, MIN_DAYS_FIELDS)
    max_days = pick_days(rule.days, MAX_DAYS_FIELDS)
    if option is not None:
        option_min = pick_days(option.days, MIN_DAYS_FIELDS)
        option_max = pick_days(option.days, MAX_DAYS_FIELDS)
        if option_min is not None:
            min_days = option_min
        if option_max is not None:
            max_days = option_max
    if min_days is not None and max_days is not None and max_days < min_days:
        max_days = min_days

    subtotal = cart_subtotal(items)
    is_free = rule.free_shipping or (
        rule.min_free_amount is not None
        and rule.min_free_amount > 0
        and subtotal >= rule.min_free_amount
    )
    if is_free:
        cost = ZERO

    return ShippingDetails(cost=cost, min_days=min_days, max_days=max_days, is_free=is_free)
