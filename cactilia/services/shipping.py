"""Shipping options for a cart and a destination address.

Entry point of the shipping core: normalizes the checkout payload, loads the
active rules and hands the eligible products to one of the engines.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable, Optional

from cactilia.config import get_settings
from cactilia.services.coverage import filter_shippable_products
from cactilia.services.diagnostics import DiagnosticReport, ShippingInspector, diagnose
from cactilia.services.normalize import (
    Address,
    PackageConfig,
    normalize_cart,
    normalize_postal_code,
)
from cactilia.services.option_groups import OptionGroup, group_shipping_options
from cactilia.services.rule_catalog import FirestoreRuleCatalog, RuleCatalog
from cactilia.services.shipping_engines import (
    ShippingOption,
    find_options_combined,
    find_options_greedy,
)
from cactilia.services.weights import normalize_missing_weights

logger = logging.getLogger(__name__)

POSTAL_CODE_REQUIRED = "Se requiere un código postal para calcular opciones de envío"


class PostalCodeRequiredError(ValueError):
    def __init__(self, message: str = POSTAL_CODE_REQUIRED):
        super().__init__(message)


def resolve_address(address_info: Any) -> Address:
    """Canonical address with a clean postal code, or ``PostalCodeRequiredError``."""
    address = Address.from_dict(address_info)
    postal_code = normalize_postal_code(address.postal_code if address else "")
    if not postal_code:
        raise PostalCodeRequiredError()
    return replace(address, postal_code=postal_code)


class ShippingService:
    """Computes shipping options from the active rule catalog."""

    def __init__(
        self,
        catalog: Optional[RuleCatalog] = None,
        defaults: Optional[PackageConfig] = None,
        fallback_weight: Optional[Decimal] = None,
    ):
        self._catalog = catalog
        self.defaults = defaults
        self.fallback_weight = fallback_weight

    @property
    def catalog(self) -> RuleCatalog:
        if self._catalog is None:
            self._catalog = FirestoreRuleCatalog()
        return self._catalog

    async def get_shipping_options(
        self,
        cart_items: Optional[Iterable[Any]],
        address_info: Any,
        use_greedy: bool = True,
        inspector: Optional[ShippingInspector] = None,
    ) -> list[ShippingOption]:
        """Options for every product that can ship to the address.

        Raises ``PostalCodeRequiredError`` when the address has no postal code.
        Errors from the rule catalog propagate; any other failure yields ``[]``.
        """
        address = resolve_address(address_info)
        cart = normalize_cart(cart_items)
        if inspector:
            inspector.record("input", postal_code=address.postal_code, items=len(cart))
        if not cart:
            return []

        rules = await self.catalog.get_active_shipping_rules()
        if inspector:
            inspector.record("rules_loaded", rule_ids=[r.id for r in rules])
        if not rules:
            logger.warning("No active shipping rules available")
            return []

        try:
            fallback = self.fallback_weight
            if fallback is None:
                fallback = get_settings().fallback_product_weight
            cart = normalize_missing_weights(cart, fallback)

            split = filter_shippable_products(cart, address, rules)
            if inspector:
                inspector.record(
                    "products_filtered",
                    eligible=[e.item.product.id for e in split.eligible],
                    ineligible=[i.product.id for i in split.ineligible],
                )
            if not split.eligible:
                logger.warning(f"No product in the cart ships to postal code {address.postal_code}")
                return []

            if use_greedy:
                options = find_options_greedy(split, self.defaults)
            else:
                options = find_options_combined(split, self.defaults)
        except Exception as e:
            logger.exception(f"Shipping calculation failed: {e}")
            if inspector:
                inspector.record("error", message=str(e))
            return []

        if inspector:
            inspector.record(
                "options",
                engine="greedy" if use_greedy else "combined",
                option_ids=[o.id for o in options],
            )
        return options

    async def get_shipping_groups(
        self,
        cart_items: Optional[Iterable[Any]],
        address_info: Any,
        use_greedy: bool = True,
    ) -> list[OptionGroup]:
        options = await self.get_shipping_options(cart_items, address_info, use_greedy)
        return group_shipping_options(options)

    async def diagnose(self, cart_items: Optional[Iterable[Any]], address_info: Any) -> DiagnosticReport:
        address = resolve_address(address_info)
        rules = await self.catalog.get_active_shipping_rules()
        return diagnose(address, normalize_cart(cart_items), rules)

    @staticmethod
    def get_coverage_summary(
        options: Iterable[ShippingOption],
        cart_items: Optional[Iterable[Any]],
    ) -> dict:
        """Which cart products the options cover, for checkout warnings."""
        covered = {pid for o in options for pid in o.product_ids}
        cart_ids = [item.product.id for item in normalize_cart(cart_items)]
        unavailable = [pid for pid in cart_ids if pid not in covered]
        return {
            "covered_product_ids": [pid for pid in cart_ids if pid in covered],
            "unavailable_product_ids": unavailable,
            "has_partial_coverage": bool(unavailable) and len(unavailable) < len(cart_ids),
        }


# Module-level singleton
shipping_service = ShippingService()
