"""Canonical shipping records.

Firestore documents and checkout payloads spell the same field several ways
(zip / zipCode / postalCode, state / provincia / estado, a cart entry holding a
``product`` or being the product itself). They are converted here, once, at the
entry boundary; every other service works on these dataclasses only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

NATIONAL_TOKEN = "nacional"
STATE_PREFIX = "estado_"

ZIP_FIELDS = ("zip", "zipCode", "zipcode", "postalCode", "postal_code")
STATE_FIELDS = ("state", "provincia", "estado")
CITY_FIELDS = ("city", "ciudad", "localidad")

MIN_DAYS_FIELDS = ("tiempo_minimo", "min_days", "minDays")
MAX_DAYS_FIELDS = ("tiempo_maximo", "max_days", "maxDays")

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")


# ── Coercion ────────────────────────────────────────────

def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Parse admin/user entered numbers; anything unparseable becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Integer parsing that accepts leading digits ("3 días" -> 3)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            return int(value)
        except (ValueError, OverflowError, InvalidOperation):
            return default
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else default


def first_present(data: dict, keys: Iterable[str]) -> Any:
    """First value under ``keys`` that is neither missing nor an empty string."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_postal_code(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"[-\s]", "", str(value))


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _day_fields(data: dict) -> dict:
    return {
        key: data[key]
        for key in MIN_DAYS_FIELDS + MAX_DAYS_FIELDS
        if data.get(key) is not None
    }


# ── Records ─────────────────────────────────────────────

@dataclass
class Address:
    """Destination address."""
    postal_code: str = ""
    state: str = ""
    city: str = ""
    country: str = "MX"

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Address"]:
        if data is None:
            return None
        if isinstance(data, Address):
            return data
        return cls(
            postal_code=_text(first_present(data, ZIP_FIELDS)),
            state=_text(first_present(data, STATE_FIELDS)),
            city=_text(first_present(data, CITY_FIELDS)),
            country=_text(data.get("country")) or "MX",
        )


def extract_rule_ids(data: dict) -> list[str]:
    """Rule ids assigned to a product document, in their stored order."""
    ids = data.get("shippingRuleIds")
    if isinstance(ids, (list, tuple)) and ids:
        raw = list(ids)
    elif isinstance(data.get("shippingRuleId"), str):
        raw = [data["shippingRuleId"]]
    elif isinstance(data.get("shippingRules"), (list, tuple)):
        raw = [
            r.get("id") or r.get("ruleId")
            for r in data["shippingRules"]
            if isinstance(r, dict)
        ]
    else:
        raw = []
    return [str(rid).strip() for rid in raw if rid is not None and str(rid).strip()]


@dataclass
class Product:
    """Catalog product, read-only for shipping purposes."""
    id: str
    name: str = ""
    price: Decimal = Decimal("0")
    weight: Decimal = Decimal("0")  # kg, 0 means unspecified
    shipping_rule_ids: list[str] = field(default_factory=list)
    category: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Product":
        if isinstance(data, Product):
            return data
        price = to_decimal(data.get("price"))
        weight = to_decimal(first_present(data, ("weight", "peso")))
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name") or data.get("title")),
            price=max(price, Decimal("0")),
            weight=max(weight, Decimal("0")),
            shipping_rule_ids=extract_rule_ids(data),
            category=_text(data.get("category") or data.get("categoria")),
        )


@dataclass
class CartItem:
    """A product and how many units of it are being bought."""
    product: Product
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: Any) -> "CartItem":
        if isinstance(data, CartItem):
            return data
        raw_product = data.get("product")
        if not raw_product or not isinstance(raw_product, (dict, Product)):
            raw_product = data
        quantity = to_int(data.get("quantity"), 1)
        if quantity is None or quantity < 1:
            quantity = 1
        return cls(product=Product.from_dict(raw_product), quantity=quantity)


def normalize_cart(items: Optional[Iterable[Any]]) -> list[CartItem]:
    if not items:
        return []
    return [
        CartItem.from_dict(item)
        for item in items
        if item and isinstance(item, (dict, CartItem))
    ]


@dataclass
class PackageConfig:
    """Per-package ceilings and surcharges (``configuracion_paquetes``)."""
    max_weight: Optional[Decimal] = None
    max_items: Optional[int] = None
    extra_kg_cost: Optional[Decimal] = None
    extra_item_cost: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["PackageConfig"]:
        if isinstance(data, PackageConfig):
            return data
        if not isinstance(data, dict):
            return None
        return cls(
            max_weight=to_decimal(data.get("peso_maximo_paquete"), None),
            max_items=to_int(data.get("maximo_productos_por_paquete")),
            extra_kg_cost=to_decimal(data.get("costo_por_kg_extra"), None),
            extra_item_cost=to_decimal(data.get("costo_por_producto_extra"), None),
        )


@dataclass
class MessagingOption:
    """Carrier sub-option of a rule (``opciones_mensajeria`` entry)."""
    name: str = ""
    label: str = ""
    price: Decimal = Decimal("0")
    package_config: Optional[PackageConfig] = None
    delivery_time: str = ""
    days: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "MessagingOption":
        if isinstance(data, MessagingOption):
            return data
        return cls(
            name=_text(data.get("nombre") or data.get("name")),
            label=_text(data.get("label")),
            price=to_decimal(data.get("precio")),
            package_config=PackageConfig.from_dict(data.get("configuracion_paquetes")),
            delivery_time=_text(data.get("tiempo_entrega")),
            days=_day_fields(data),
        )


@dataclass
class VariableShipping:
    """Conditional free shipping (``envio_variable``)."""
    applies: bool = False
    min_free_amount: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["VariableShipping"]:
        if isinstance(data, VariableShipping):
            return data
        if not isinstance(data, dict):
            return None
        return cls(
            applies=bool(data.get("aplica")),
            min_free_amount=to_decimal(data.get("envio_gratis_monto_minimo"), None),
        )


@dataclass
class ShippingRule:
    """Shipping rule (regla de envío) as stored in the ``zonas_envio`` collection."""
    id: str
    zone: str = ""
    active: bool = True
    zipcodes: list[str] = field(default_factory=list)
    free_shipping: bool = False
    min_free_amount: Optional[Decimal] = None
    variable: Optional[VariableShipping] = None
    base_price: Optional[Decimal] = None
    package_config: Optional[PackageConfig] = None
    messaging_options: list[MessagingOption] = field(default_factory=list)
    carrier: str = ""
    description: str = ""
    coverage_type: str = ""
    days: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ShippingRule":
        if isinstance(data, ShippingRule):
            return data
        zipcodes = data.get("zipcodes") or []
        if isinstance(zipcodes, str):
            zipcodes = [zipcodes]
        options = data.get("opciones_mensajeria") or []
        return cls(
            id=_text(data.get("id")),
            zone=_text(data.get("zona") or data.get("nombre") or data.get("name")),
            active=data.get("activo", data.get("active")) is True,
            zipcodes=[_text(z) for z in zipcodes if _text(z)],
            free_shipping=data.get("envio_gratis") is True or data.get("free_shipping") is True,
            min_free_amount=to_decimal(data.get("envio_gratis_monto_minimo"), None),
            variable=VariableShipping.from_dict(data.get("envio_variable")),
            base_price=to_decimal(
                first_present(data, ("precio_base", "base_price", "precio")), None
            ),
            package_config=PackageConfig.from_dict(data.get("configuracion_paquetes")),
            messaging_options=[
                MessagingOption.from_dict(o) for o in options if isinstance(o, dict)
            ],
            carrier=_text(data.get("carrier") or data.get("proveedor")),
            description=_text(data.get("descripcion") or data.get("description")),
            coverage_type=_text(
                data.get("coverage_type") or data.get("tipo_cobertura") or data.get("tipo")
            ).lower(),
            days=_day_fields(data),
        )

    def cheapest_option(self) -> Optional[MessagingOption]:
        """Lowest-priced messaging option; on ties the first one listed wins."""
        if not self.messaging_options:
            return None
        return min(self.messaging_options, key=lambda o: o.price)

    def effective_package_config(self) -> Optional[PackageConfig]:
        if self.package_config is not None:
            return self.package_config
        option = self.cheapest_option()
        return option.package_config if option else None

    def effective_base_price(self) -> Decimal:
        option = self.cheapest_option()
        if option is not None:
            return option.price
        return self.base_price or Decimal("0")

    def free_threshold(self) -> Optional[Decimal]:
        """Subtotal above which a package ships free, if any."""
        for amount in (
            self.min_free_amount,
            self.variable.min_free_amount if self.variable and self.variable.applies else None,
        ):
            if amount is not None and amount > 0:
                return amount
        return None

    @property
    def zone_type(self) -> str:
        if self.coverage_type:
            return self.coverage_type
        if NATIONAL_TOKEN in self.zipcodes:
            return "nacional"
        zone = self.zone.lower()
        if zone in ("local", "nacional", "internacional"):
            return zone
        if any(z.lower().startswith(STATE_PREFIX) for z in self.zipcodes):
            return "regional"
        return "local" if self.zipcodes else "standard"


def normalize_rules(rules: Optional[Iterable[Any]]) -> list[ShippingRule]:
    if not rules:
        return []
    return [ShippingRule.from_dict(r) for r in rules if r]
