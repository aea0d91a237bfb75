"""Rule coverage: does a shipping rule reach an address, and which rules apply to a product.

Coverage tokens stored in ``rule.zipcodes``:

- ``"nacional"``: the whole country
- ``"estado_<CODE>"``: a state, by its three letter code (``estado_PUE``)
- ``"72000"``: an explicit postal code
- ``"72000-72999"``: an inclusive postal code range
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Optional

from cactilia.services.normalize import (
    NATIONAL_TOKEN,
    STATE_PREFIX,
    Address,
    CartItem,
    Product,
    ShippingRule,
    normalize_postal_code,
)

logger = logging.getLogger(__name__)


# ── States ──────────────────────────────────────────────

# Two digit postal code prefixes per state
STATE_ZIP_PREFIXES: dict[str, tuple[str, ...]] = {
    "AGU": ("20",),
    "BCN": ("21", "22"),
    "BCS": ("23",),
    "CAM": ("24",),
    "CHP": ("29", "30"),
    "CHH": ("31", "32", "33"),
    "CMX": tuple(f"{n:02d}" for n in range(1, 17)),
    "COA": ("25", "26", "27"),
    "COL": ("28",),
    "DUR": ("34", "35"),
    "GUA": ("36", "37", "38"),
    "GRO": ("39", "40", "41"),
    "HID": ("42", "43"),
    "JAL": ("44", "45", "46", "47", "48", "49"),
    "MEX": ("50", "51", "52", "53", "54", "55", "56", "57"),
    "MIC": ("58", "59", "60"),
    "MOR": ("62",),
    "NAY": ("63",),
    "NLE": ("64", "65", "66", "67"),
    "OAX": ("68", "69", "70", "71"),
    "PUE": ("72", "73", "74", "75"),
    "QUE": ("76",),
    "ROO": ("77",),
    "SLP": ("78", "79"),
    "SIN": ("80", "81", "82"),
    "SON": ("83", "84", "85"),
    "TAB": ("86",),
    "TAM": ("87", "88", "89"),
    "TLA": ("90",),
    "VER": ("91", "92", "93", "94", "95", "96"),
    "YUC": ("97",),
    "ZAC": ("98", "99"),
}

STATE_ABBREVIATIONS: dict[str, str] = {
    "aguascalientes": "AGU",
    "baja california": "BCN",
    "baja california norte": "BCN",
    "baja california sur": "BCS",
    "campeche": "CAM",
    "chiapas": "CHP",
    "chihuahua": "CHH",
    "ciudad de mexico": "CMX",
    "cdmx": "CMX",
    "distrito federal": "CMX",
    "coahuila": "COA",
    "coahuila de zaragoza": "COA",
    "colima": "COL",
    "durango": "DUR",
    "guanajuato": "GUA",
    "guerrero": "GRO",
    "hidalgo": "HID",
    "jalisco": "JAL",
    "estado de mexico": "MEX",
    "mexico": "MEX",
    "michoacan": "MIC",
    "michoacan de ocampo": "MIC",
    "morelos": "MOR",
    "nayarit": "NAY",
    "nuevo leon": "NLE",
    "oaxaca": "OAX",
    "puebla": "PUE",
    "queretaro": "QUE",
    "quintana roo": "ROO",
    "san luis potosi": "SLP",
    "sinaloa": "SIN",
    "sonora": "SON",
    "tabasco": "TAB",
    "tamaulipas": "TAM",
    "tlaxcala": "TLA",
    "veracruz": "VER",
    "veracruz de ignacio de la llave": "VER",
    "yucatan": "YUC",
    "zacatecas": "ZAC",
}


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).strip().lower()


def get_state_code(state_name: str) -> str:
    """Three letter code for a state name; unknown names come back uppercased as given."""
    if not state_name:
        return ""
    folded = _fold(state_name)
    return STATE_ABBREVIATIONS.get(folded, state_name.strip().upper())


def get_state_from_zip(zip_code: str) -> Optional[str]:
    if not zip_code or len(zip_code) < 2:
        return None
    prefix = zip_code[:2]
    for code, prefixes in STATE_ZIP_PREFIXES.items():
        if prefix in prefixes:
            return code
    return None


# ── Address matching ────────────────────────────────────

def _in_range(token: str, zip_code: str) -> bool:
    start, sep, end = token.partition("-")
    if not sep or not zip_code.isdigit():
        return False
    start, end = start.strip(), end.strip()
    if not (start.isdigit() and end.isdigit()):
        return False
    return int(start) <= int(zip_code) <= int(end)


def is_rule_valid_for_address(rule: Optional[ShippingRule], address: Optional[Address]) -> bool:
    """True when any of the rule's coverage tokens reaches the address."""
    if rule is None or address is None:
        return False
    if not rule.zipcodes:
        return False
    if NATIONAL_TOKEN in rule.zipcodes:
        return True

    zip_code = normalize_postal_code(address.postal_code)
    if zip_code and zip_code in rule.zipcodes:
        return True

    state_code = get_state_code(address.state)
    if state_code:
        state_token = f"{STATE_PREFIX}{state_code}".lower()
        if any(token.lower().startswith(state_token) for token in rule.zipcodes):
            return True

    if zip_code:
        return any(_in_range(token, zip_code) for token in rule.zipcodes if "-" in token)
    return False


def find_most_specific_rule(zip_code: str, rules: Iterable[ShippingRule]) -> Optional[ShippingRule]:
    """Pick the rule that names the postal code, else its state, else national coverage."""
    zip_code = normalize_postal_code(zip_code)
    if not zip_code:
        return None
    active = [r for r in rules if r.active and r.zipcodes]

    for rule in active:
        if zip_code in rule.zipcodes:
            return rule

    state = get_state_from_zip(zip_code)
    if state:
        token = f"{STATE_PREFIX}{state}".lower()
        for rule in active:
            if token in (z.lower() for z in rule.zipcodes):
                return rule

    for rule in active:
        if NATIONAL_TOKEN in rule.zipcodes:
            return rule
    return None


def get_coverage_type(rule: ShippingRule) -> str:
    if not rule.zipcodes:
        return "No definido"
    if NATIONAL_TOKEN in rule.zipcodes:
        return "Nacional"
    if any(z.lower().startswith(STATE_PREFIX) for z in rule.zipcodes):
        return "Regional"
    return "CP"


def validate_shipping_rule(rule: ShippingRule) -> tuple[bool, str]:
    """Check a rule's coverage list before it is saved."""
    if not rule.zipcodes:
        return False, "Debe definir al menos un código postal o área de cobertura"

    if NATIONAL_TOKEN in rule.zipcodes and len(rule.zipcodes) > 1:
        return False, "Si selecciona cobertura nacional, no debe incluir otros códigos o estados"

    states = [
        z[len(STATE_PREFIX):].upper()
        for z in rule.zipcodes
        if z.lower().startswith(STATE_PREFIX)
    ]
    if len(states) != len(set(states)):
        return False, "Hay estados duplicados en la configuración"

    for zip_code in rule.zipcodes:
        if zip_code.isdigit():
            state = get_state_from_zip(zip_code)
            if state and state in states:
                return False, f"El código postal {zip_code} ya está incluido en el estado {state}"

    return True, ""


# ── Product eligibility ─────────────────────────────────

@dataclass
class EligibleItem:
    item: CartItem
    applicable_rules: list[ShippingRule]


@dataclass
class ShippableSplit:
    eligible: list[EligibleItem] = field(default_factory=list)
    ineligible: list[CartItem] = field(default_factory=list)


def get_applicable_rules_for_product(
    product: Optional[Product],
    address: Optional[Address],
    all_rules: Iterable[ShippingRule],
) -> list[ShippingRule]:
    """Rules assigned to the product that also cover the address.

    A product with no assigned rules never ships; no default rule is substituted.
    """
    if product is None or address is None:
        return []
    if not product.shipping_rule_ids:
        logger.warning(f"Product {product.id} ({product.name}) has no shipping rules assigned")
        return []

    assigned = set(product.shipping_rule_ids)
    applicable = [
        rule for rule in all_rules
        if rule.id in assigned and is_rule_valid_for_address(rule, address)
    ]
    if not applicable:
        logger.warning(
            f"No shipping rule of product {product.id} covers postal code {address.postal_code}"
        )
    return applicable


def filter_shippable_products(
    cart_items: Iterable[CartItem],
    address: Optional[Address],
    all_rules: Iterable[ShippingRule],
) -> ShippableSplit:
    rules = list(all_rules)
    split = ShippableSplit()
    for item in cart_items:
        applicable = get_applicable_rules_for_product(item.product, address, rules)
        if applicable:
            split.eligible.append(EligibleItem(item=item, applicable_rules=applicable))
        else:
            split.ineligible.append(item)
    return split
