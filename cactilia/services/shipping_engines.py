"""Shipping option engines.

Both engines take the output of ``filter_shippable_products`` and turn it into
priced ``ShippingOption`` objects:

- the greedy engine assigns every product to its most specific, cheapest rule,
  reusing already opened rule groups while they have room
- the combination engine looks for the smallest sets of rules (up to three)
  that together cover the cart, prices each set and keeps the best few
"""

import itertools
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional

from cactilia.config import get_settings
from cactilia.services.coverage import EligibleItem, ShippableSplit
from cactilia.services.delivery_time import (
    describe_option,
    format_delivery_time,
    get_delivery_time_info,
)
from cactilia.services.normalize import NATIONAL_TOKEN, STATE_PREFIX, CartItem, PackageConfig, ShippingRule
from cactilia.services.packaging import Package, group_into_packages, resolve_limits
from cactilia.services.shipping_cost import calculate_group_cost
from cactilia.services.weights import cart_quantity, cart_subtotal, cart_weight, item_weight

logger = logging.getLogger(__name__)

DEFAULT_RULE_PRICE = Decimal("100")  # ranking price for rules saved without precio_base


@dataclass
class ShippingOption:
    """One shipping offer shown at checkout."""
    id: str
    rule_id: Optional[str]
    name: str
    total_cost: Decimal = Decimal("0")
    carrier: str = ""
    description: str = ""
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    delivery_time: str = ""
    is_free: bool = False
    zone_type: str = "standard"
    type: str = ""
    product_ids: list[str] = field(default_factory=list)
    packages: list[Package] = field(default_factory=list)
    # Never set by the engines; callers that append a store-wide default
    # option flag it so group_shipping_options files it under fallback_shipping.
    is_fallback: bool = False
    covers_all_products: bool = False
    combination: Optional[dict] = None

    @property
    def calculated_cost(self) -> Decimal:
        return self.total_cost

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "name": self.name,
            "carrier": self.carrier,
            "description": self.description,
            "total_cost": str(self.total_cost),
            "calculated_cost": str(self.total_cost),
            "min_days": self.min_days,
            "max_days": self.max_days,
            "delivery_time": self.delivery_time,
            "is_free": self.is_free,
            "zone_type": self.zone_type,
            "type": self.type,
            "product_ids": list(self.product_ids),
            "packages": [p.to_dict() for p in self.packages],
            "is_fallback": self.is_fallback,
            "covers_all_products": self.covers_all_products,
            "combination": self.combination,
        }


def _option_id(rule_id: Optional[str]) -> str:
    return f"ship_{rule_id or 'combined'}_{uuid.uuid4().hex[:8]}"


# ── Greedy ──────────────────────────────────────────────

def coverage_priority(rule: ShippingRule) -> int:
    """Higher is more specific: postal code 3, state 2, local zone 1, national 0."""
    coverage = rule.coverage_type
    if coverage in ("por_codigo_postal", "postal_code", "zip"):
        return 3
    if coverage in ("por_estado", "state"):
        return 2
    if rule.zone.lower() == "local":
        return 1
    if coverage in ("nacional", "national"):
        return 0
    if coverage:
        return -1
    if NATIONAL_TOKEN in rule.zipcodes:
        return 0
    if any(z.lower().startswith(STATE_PREFIX) for z in rule.zipcodes):
        return 2
    return 3 if rule.zipcodes else -1


def rank_rules(rules: list[ShippingRule]) -> list[ShippingRule]:
    return sorted(
        rules,
        key=lambda r: (-coverage_priority(r), r.base_price or DEFAULT_RULE_PRICE),
    )


@dataclass
class _RuleGroup:
    rule: ShippingRule
    items: list[CartItem] = field(default_factory=list)


def can_add_to_group(
    group: _RuleGroup,
    item: CartItem,
    defaults: Optional[PackageConfig] = None,
) -> bool:
    """Whether the item still fits in one package of the group's rule."""
    if group.rule.effective_package_config() is None:
        return True
    max_weight, max_items = resolve_limits(group.rule, defaults)
    if max_items is not None and cart_quantity(group.items) >= max_items:
        return False
    if max_weight is not None and cart_weight(group.items) + item_weight(item) > max_weight:
        return False
    return True


def build_option(
    rule: ShippingRule,
    items: list[CartItem],
    all_product_ids: set[str],
    defaults: Optional[PackageConfig] = None,
    order_subtotal: Optional[Decimal] = None,
) -> ShippingOption:
    """Pack, price and describe one rule's share of the cart.

    ``order_subtotal`` is the value of everything shipped in the order; it
    drives the rule's ``envio_variable`` threshold across all packages.
    """
    packages = group_into_packages(items, rule, defaults)
    cost = calculate_group_cost(packages, rule, order_subtotal=order_subtotal, defaults=defaults)
    timing = get_delivery_time_info(rule)
    product_ids = [i.product.id for i in items]

    option = ShippingOption(
        id=_option_id(rule.id),
        rule_id=rule.id,
        name=rule.zone or "Envío Estándar",
        carrier=rule.carrier or (rule.messaging_options[0].name if rule.messaging_options else ""),
        total_cost=cost.total_option_cost,
        min_days=timing.min_days,
        max_days=timing.max_days,
        delivery_time=timing.delivery_time_text,
        is_free=cost.is_free,
        zone_type=rule.zone_type,
        type=rule.zone_type,
        product_ids=product_ids,
        packages=cost.updated_packages,
        covers_all_products=all_product_ids <= set(product_ids),
    )
    option.description = describe_option(option, [i.product for i in items])
    return option


def find_options_greedy(
    split: ShippableSplit,
    defaults: Optional[PackageConfig] = None,
) -> list[ShippingOption]:
    if not split.eligible:
        return []

    all_ids = {e.item.product.id for e in split.eligible} | {i.product.id for i in split.ineligible}
    groups: list[_RuleGroup] = []

    for entry in split.eligible:
        ranked = rank_rules(entry.applicable_rules)
        rule_ids = {r.id for r in ranked}
        target = next(
            (g for g in groups if g.rule.id in rule_ids and can_add_to_group(g, entry.item, defaults)),
            None,
        )
        if target is None:
            target = _RuleGroup(rule=ranked[0])
            groups.append(target)
        target.items.append(entry.item)

    order_subtotal = cart_subtotal(e.item for e in split.eligible)
    options = [build_option(g.rule, g.items, all_ids, defaults, order_subtotal) for g in groups]

    if split.ineligible:
        logger.warning(
            f"Partial shipping: {len(split.ineligible)} product(s) cannot be shipped "
            f"({', '.join(i.product.name or i.product.id for i in split.ineligible)})"
        )
    logger.info(f"Greedy engine produced {len(options)} option(s) from {len(groups)} rule group(s)")
    return options


# ── Combinations ────────────────────────────────────────

MAX_RULES_PER_COMBINATION = 3


def _distinct_rules(entries: list[EligibleItem]) -> list[ShippingRule]:
    seen: dict[str, ShippingRule] = {}
    for entry in entries:
        for rule in entry.applicable_rules:
            seen.setdefault(rule.id, rule)
    return list(seen.values())


def covering_rule_sets(
    entries: list[EligibleItem],
    max_size: int = MAX_RULES_PER_COMBINATION,
) -> list[tuple[ShippingRule, ...]]:
    """Smallest sets of rules that together reach every product.

    Sets of one rule are tried first, then pairs, then triples; the first size
    with any covering set wins. Empty when no set of ``max_size`` rules or
    fewer covers the cart.
    """
    rules = _distinct_rules(entries)
    allowed = [{r.id for r in e.applicable_rules} for e in entries]

    for size in range(1, min(max_size, len(rules)) + 1):
        found = [
            combo for combo in itertools.combinations(rules, size)
            if all(ids.intersection(r.id for r in combo) for ids in allowed)
        ]
        if found:
            return found
    return []


def _assignment_groups(
    entries: list[EligibleItem],
    rule_set: tuple[ShippingRule, ...],
) -> list[_RuleGroup]:
    """Send each product to the best ranked rule of the set that reaches it."""
    groups: dict[str, _RuleGroup] = {}
    for entry in entries:
        ids = {r.id for r in entry.applicable_rules}
        rule = rank_rules([r for r in rule_set if r.id in ids])[0]
        groups.setdefault(rule.id, _RuleGroup(rule=rule)).items.append(entry.item)
    return list(groups.values())


def find_options_combined(
    split: ShippableSplit,
    defaults: Optional[PackageConfig] = None,
    limit: Optional[int] = None,
) -> list[ShippingOption]:
    """Price every minimal covering rule set; complete coverage first, then cost.

    When no three rules cover the cart, each product goes to its own best
    ranked rule and that single assignment is returned.
    """
    if not split.eligible:
        return []
    if limit is None:
        limit = get_settings().max_combination_options

    entries = split.eligible
    all_ids = {e.item.product.id for e in entries} | {i.product.id for i in split.ineligible}
    complete = not split.ineligible
    order_subtotal = cart_subtotal(e.item for e in entries)

    rule_sets = covering_rule_sets(entries)
    if not rule_sets:
        best = {}
        for entry in entries:
            rule = rank_rules(entry.applicable_rules)[0]
            best.setdefault(rule.id, rule)
        rule_sets = [tuple(best.values())]
        logger.warning(
            f"No set of {MAX_RULES_PER_COMBINATION} rules covers the cart, "
            f"using {len(best)} rule(s) one per product"
        )

    evaluated = []
    for rule_set in rule_sets:
        parts = [
            build_option(g.rule, g.items, all_ids, defaults, order_subtotal)
            for g in _assignment_groups(entries, rule_set)
        ]
        total = sum((p.total_cost for p in parts), Decimal("0"))
        evaluated.append((not complete, total, parts))

    evaluated.sort(key=lambda e: (e[0], e[1]))
    options = [_combined_option(parts, total, complete) for _, total, parts in evaluated[:limit]]
    logger.info(f"Combination engine ranked {len(evaluated)} rule set(s), kept {len(options)}")
    return options


def _combined_option(parts: list[ShippingOption], total: Decimal, complete: bool) -> ShippingOption:
    first = parts[0]
    packages = [
        replace(pkg, id=f"package-{n}")
        for n, pkg in enumerate(pkg for p in parts for pkg in p.packages)
    ]
    mins = [p.min_days for p in parts if p.min_days is not None]
    maxes = [p.max_days for p in parts if p.max_days is not None]
    min_days = min(mins) if mins else None
    max_days = max(maxes) if maxes else None
    if min_days is not None and max_days is not None and max_days < min_days:
        max_days = min_days

    multi_rule = len(parts) > 1
    option = ShippingOption(
        id=_option_id(None if multi_rule else first.rule_id),
        rule_id=None if multi_rule else first.rule_id,
        name="Envío Combinado" if len(packages) > 1 else first.name,
        carrier=first.carrier or "Servicio de envío",
        total_cost=total,
        min_days=min_days,
        max_days=max_days,
        delivery_time=format_delivery_time(min_days, max_days) if multi_rule else first.delivery_time,
        is_free=total == 0,
        zone_type=first.zone_type,
        type="combined" if multi_rule else first.type,
        product_ids=[pid for p in parts for pid in p.product_ids],
        packages=packages,
        covers_all_products=complete,
        combination={
            "is_complete": complete,
            "options": [
                {
                    "rule_id": p.rule_id,
                    "zone_type": p.zone_type,
                    "zone_name": p.name,
                    "carrier_name": p.carrier or "Servicio de envío",
                    "price": str(p.total_cost),
                    "is_free": p.is_free,
                    "min_days": p.min_days,
                    "max_days": p.max_days,
                    "product_ids": list(p.product_ids),
                }
                for p in parts
            ],
        },
    )
    option.description = describe_option(option)
    return option
