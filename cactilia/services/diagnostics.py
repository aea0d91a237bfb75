"""Shipping diagnostics.

``ShippingInspector`` is handed to ``ShippingService.get_shipping_options`` to
record what happened at each step of one calculation. ``diagnose`` explains,
without pricing anything, why each product of a cart can or cannot ship.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from cactilia.services.coverage import get_coverage_type, is_rule_valid_for_address
from cactilia.services.normalize import Address, CartItem, ShippingRule


@dataclass
class InspectionEvent:
    step: str
    data: dict = field(default_factory=dict)


class ShippingInspector:
    """Collects step events of a shipping calculation."""

    def __init__(self):
        self.events: list[InspectionEvent] = []

    def record(self, step: str, **data: Any):
        self.events.append(InspectionEvent(step=step, data=data))

    def steps(self) -> list[str]:
        return [e.step for e in self.events]

    def last(self, step: str) -> Optional[InspectionEvent]:
        for event in reversed(self.events):
            if event.step == step:
                return event
        return None

    def clear(self):
        self.events.clear()


@dataclass
class ProductDiagnosis:
    product_id: str
    name: str
    assigned_rule_ids: list[str]
    matching_rule_ids: list[str]
    missing_rule_ids: list[str]
    reason: str = ""

    @property
    def shippable(self) -> bool:
        return bool(self.matching_rule_ids)


@dataclass
class DiagnosticReport:
    postal_code: str
    active_rules: int
    products: list[ProductDiagnosis] = field(default_factory=list)

    @property
    def shippable_product_ids(self) -> list[str]:
        return [p.product_id for p in self.products if p.shippable]

    @property
    def blocked_product_ids(self) -> list[str]:
        return [p.product_id for p in self.products if not p.shippable]

    def to_dict(self) -> dict:
        return {
            "postal_code": self.postal_code,
            "active_rules": self.active_rules,
            "products": [
                {
                    "product_id": p.product_id,
                    "name": p.name,
                    "assigned_rule_ids": p.assigned_rule_ids,
                    "matching_rule_ids": p.matching_rule_ids,
                    "missing_rule_ids": p.missing_rule_ids,
                    "shippable": p.shippable,
                    "reason": p.reason,
                }
                for p in self.products
            ],
        }


def diagnose(
    address: Address,
    cart_items: Iterable[CartItem],
    rules: Iterable[ShippingRule],
) -> DiagnosticReport:
    rules = list(rules)
    by_id = {r.id: r for r in rules}
    report = DiagnosticReport(
        postal_code=address.postal_code if address else "",
        active_rules=sum(1 for r in rules if r.active),
    )

    for item in cart_items:
        product = item.product
        assigned = list(product.shipping_rule_ids)
        missing = [rid for rid in assigned if rid not in by_id]
        matching = [
            rid for rid in assigned
            if rid in by_id and by_id[rid].active and is_rule_valid_for_address(by_id[rid], address)
        ]

        if not assigned:
            reason = "El producto no tiene reglas de envío asignadas"
        elif len(missing) == len(assigned):
            reason = "Ninguna de las reglas asignadas existe o está activa"
        elif not matching:
            coverage = ", ".join(
                f"{rid} ({get_coverage_type(by_id[rid])})" for rid in assigned if rid in by_id
            )
            reason = f"Ninguna regla cubre esta dirección: {coverage}"
        else:
            reason = ""

        report.products.append(ProductDiagnosis(
            product_id=product.id,
            name=product.name,
            assigned_rule_ids=assigned,
            matching_rule_ids=matching,
            missing_rule_ids=missing,
            reason=reason,
        ))
    return report
