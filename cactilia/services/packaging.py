"""Package builder: split cart items into parcels under a rule's weight and item limits."""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, Optional

from cactilia.config import get_settings
from cactilia.services.normalize import CartItem, PackageConfig, ShippingRule

logger = logging.getLogger(__name__)


@dataclass
class Package:
    """One physical parcel of a shipping option."""
    id: str
    rule_id: str
    items: list[CartItem] = field(default_factory=list)
    total_weight: Decimal = Decimal("0")
    total_quantity: int = 0
    exceeds_limits: bool = False
    # Set by the cost calculator on its own copies
    subtotal: Optional[Decimal] = None
    is_free: Optional[bool] = None
    price: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "items": [
                {"product_id": i.product.id, "name": i.product.name, "quantity": i.quantity}
                for i in self.items
            ],
            "total_weight": str(self.total_weight),
            "total_quantity": self.total_quantity,
            "exceeds_limits": self.exceeds_limits,
            "subtotal": None if self.subtotal is None else str(self.subtotal),
            "is_free": self.is_free,
            "price": None if self.price is None else str(self.price),
        }


def default_package_config() -> PackageConfig:
    settings = get_settings()
    return PackageConfig(
        max_weight=settings.default_max_package_weight,
        max_items=settings.default_max_items_per_package,
        extra_kg_cost=settings.default_extra_kg_cost,
    )


def resolve_limits(
    rule: ShippingRule,
    defaults: Optional[PackageConfig] = None,
) -> tuple[Optional[Decimal], Optional[int]]:
    """Effective (max_weight, max_items); ``None`` means unconstrained."""
    if defaults is None:
        defaults = default_package_config()
    config = rule.effective_package_config() or PackageConfig()

    max_weight = config.max_weight
    if max_weight is None or max_weight <= 0:
        max_weight = defaults.max_weight
    if max_weight is not None and max_weight <= 0:
        max_weight = None

    max_items = config.max_items
    if max_items is None or max_items <= 0:
        max_items = defaults.max_items
    if max_items is not None and max_items <= 0:
        max_items = None

    return max_weight, max_items


def _single_package(items: list[CartItem], rule: ShippingRule) -> list[Package]:
    return [Package(
        id="package-0",
        rule_id=rule.id,
        items=[replace(i) for i in items],
        total_weight=sum((i.product.weight * i.quantity for i in items), Decimal("0")),
        total_quantity=sum(i.quantity for i in items),
    )]


def _weight_capacity(max_weight: Optional[Decimal], used: Decimal, unit_weight: Decimal) -> Optional[int]:
    if max_weight is None or unit_weight <= 0:
        return None
    return int((max_weight - used) // unit_weight)


def group_into_packages(
    cart_items: Iterable[CartItem],
    rule: Optional[ShippingRule],
    defaults: Optional[PackageConfig] = None,
) -> list[Package]:
    """Pack items heaviest-first, topping off open packages before opening new ones.

    A unit heavier than the weight ceiling travels alone in a package flagged
    ``exceeds_limits``; every other package stays within both ceilings.
    """
    items = list(cart_items or [])
    if not items or rule is None:
        return []

    max_weight, max_items = resolve_limits(rule, defaults)
    if max_weight is None and max_items is None:
        return _single_package(items, rule)

    # sorted() is stable, so equal weights keep cart order
    ordered = sorted(items, key=lambda i: i.product.weight, reverse=True)
    packages: list[Package] = []

    for item in ordered:
        unit_weight = item.product.weight
        remaining = item.quantity

        if max_weight is not None and unit_weight > max_weight:
            for _ in range(remaining):
                packages.append(Package(
                    id=f"package-{len(packages)}",
                    rule_id=rule.id,
                    items=[replace(item, quantity=1)],
                    total_weight=unit_weight,
                    total_quantity=1,
                    exceeds_limits=True,
                ))
            logger.warning(
                f"Product {item.product.id} weighs {unit_weight} kg, over the "
                f"{max_weight} kg limit of rule {rule.id}; shipped as separate packages"
            )
            continue

        for pkg in packages:
            if remaining <= 0:
                break
            if pkg.exceeds_limits or pkg.rule_id != rule.id:
                continue
            limits = [remaining]
            by_weight = _weight_capacity(max_weight, pkg.total_weight, unit_weight)
            if by_weight is not None:
                limits.append(by_weight)
            if max_items is not None:
                limits.append(max_items - pkg.total_quantity)
            to_add = min(limits)
            if to_add <= 0:
                continue

            line = next((i for i in pkg.items if i.product.id == item.product.id), None)
            if line is not None:
                line.quantity += to_add
            else:
                pkg.items.append(replace(item, quantity=to_add))
            pkg.total_weight += unit_weight * to_add
            pkg.total_quantity += to_add
            remaining -= to_add

        while remaining > 0:
            limits = [remaining]
            by_weight = _weight_capacity(max_weight, Decimal("0"), unit_weight)
            if by_weight is not None:
                limits.append(by_weight)
            if max_items is not None:
                limits.append(max_items)
            quantity = max(min(limits), 1)
            packages.append(Package(
                id=f"package-{len(packages)}",
                rule_id=rule.id,
                items=[replace(item, quantity=quantity)],
                total_weight=unit_weight * quantity,
                total_quantity=quantity,
            ))
            remaining -= quantity

    return packages
