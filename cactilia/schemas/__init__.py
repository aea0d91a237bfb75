"""Pydantic schemas for the shipping API."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


# ── Requests ────────────────────────────────────────────
class ShippingRequest(BaseModel):
    """Cart entries and address are passed through as stored by the storefront."""
    items: list[dict[str, Any]] = Field(default_factory=list)
    address: dict[str, Any] = Field(default_factory=dict)
    use_greedy: bool = True


class CartTotalsRequest(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    shipping_cost: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None
    min_free_shipping: Optional[Decimal] = None


class RuleValidationRequest(BaseModel):
    rule: dict[str, Any]


# ── Responses ───────────────────────────────────────────
class PackageItemOut(BaseModel):
    product_id: str
    name: str
    quantity: int


class PackageOut(BaseModel):
    id: str
    rule_id: str
    items: list[PackageItemOut]
    total_weight: Decimal
    total_quantity: int
    exceeds_limits: bool
    subtotal: Optional[Decimal] = None
    is_free: Optional[bool] = None
    price: Optional[Decimal] = None


class ShippingOptionOut(BaseModel):
    id: str
    rule_id: Optional[str] = None
    name: str
    carrier: str = ""
    description: str = ""
    total_cost: Decimal
    calculated_cost: Decimal
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    delivery_time: str = ""
    is_free: bool
    zone_type: str
    type: str = ""
    product_ids: list[str] = Field(default_factory=list)
    packages: list[PackageOut] = Field(default_factory=list)
    is_fallback: bool = False
    covers_all_products: bool = False
    combination: Optional[dict[str, Any]] = None


class CoverageOut(BaseModel):
    covered_product_ids: list[str]
    unavailable_product_ids: list[str]
    has_partial_coverage: bool


class ShippingOptionsOut(BaseModel):
    options: list[ShippingOptionOut]
    coverage: CoverageOut


class OptionGroupOut(BaseModel):
    id: str
    title: str
    subtitle: str
    icon: str
    options: list[ShippingOptionOut]


class CartTotalsOut(BaseModel):
    subtotal: Decimal
    taxes: Decimal
    shipping: Decimal
    total: Decimal
    final_total: Decimal
    is_free_shipping: bool


class RuleValidationOut(BaseModel):
    valid: bool
    message: str = ""
    coverage_type: str
