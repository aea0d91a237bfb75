"""Delivery time estimates for shipping rules and options."""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from cactilia.services.normalize import (
    MAX_DAYS_FIELDS,
    MIN_DAYS_FIELDS,
    ShippingRule,
    to_int,
)

_RANGE = re.compile(r"(\d+)[-\s]+(\d+)")
_SINGLE = re.compile(r"(\d+)")


@dataclass
class DeliveryTimeInfo:
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    delivery_time_text: str = ""


def pick_days(days: dict, keys: tuple[str, ...]) -> Optional[int]:
    """First alias present in ``days``, parsed as an integer."""
    for key in keys:
        if days.get(key) is not None:
            return to_int(days[key])
    return None


def extract_days_range(text: str) -> tuple[Optional[int], Optional[int]]:
    """Pull "N-M" or a single "N" out of free text like "3-5 días hábiles"."""
    if not text:
        return None, None
    match = _RANGE.search(text)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _SINGLE.search(text)
    if match:
        days = int(match.group(1))
        return days, days
    return None, None


def format_delivery_time(min_days: Optional[int], max_days: Optional[int]) -> str:
    if min_days is None or max_days is None:
        return ""
    if min_days == max_days:
        if min_days == 1:
            return "Entrega en 1 día hábil"
        return f"Entrega en {min_days} días hábiles"
    return f"Entrega en {min_days}-{max_days} días hábiles"


def get_delivery_time_info(rule: Optional[ShippingRule]) -> DeliveryTimeInfo:
    """Resolve min/max days and display text.

    The rule's own day fields are read first; the first messaging option, when
    there is one, overrides them field by field.
    """
    if rule is None:
        return DeliveryTimeInfo()

    min_days = pick_days(rule.days, MIN_DAYS_FIELDS)
    max_days = pick_days(rule.days, MAX_DAYS_FIELDS)
    text = ""

    if rule.messaging_options:
        option = rule.messaging_options[0]
        option_min = pick_days(option.days, MIN_DAYS_FIELDS)
        option_max = pick_days(option.days, MAX_DAYS_FIELDS)
        if option_min is not None:
            min_days = option_min
        if option_max is not None:
            max_days = option_max
        if option.delivery_time:
            text = option.delivery_time
            if min_days is None or max_days is None:
                parsed_min, parsed_max = extract_days_range(text)
                if min_days is None:
                    min_days = parsed_min
                if max_days is None:
                    max_days = parsed_max

    if min_days is not None and max_days is not None and max_days < min_days:
        max_days = min_days

    if not text:
        text = format_delivery_time(min_days, max_days)

    return DeliveryTimeInfo(min_days=min_days, max_days=max_days, delivery_time_text=text)


def format_price(amount: Decimal) -> str:
    """MXN price as shown at checkout, e.g. ``$1,250.00``."""
    return f"${amount:,.2f}"


def describe_option(option, products=None) -> str:
    """Multi-line description shown under a shipping option."""
    if option is None:
        return ""
    products = products or []

    zone_type = (option.zone_type or "").lower()
    if zone_type in ("nacional", "national"):
        text = "Envío nacional"
    elif zone_type == "local":
        text = "Envío local"
    elif zone_type == "express":
        text = "Envío express"
    else:
        text = "Envío estándar"

    delivery = option.delivery_time or format_delivery_time(option.min_days, option.max_days)
    if delivery:
        text += f" - {delivery}"

    if option.is_free or option.total_cost == 0:
        text += " - GRATIS"
    else:
        text += f" - {format_price(option.total_cost)}"

    if len(option.packages) > 1:
        text += (
            f"\nSe dividirá en {len(option.packages)} paquetes "
            "debido a restricciones de tamaño o peso"
        )

    if len(products) == 1:
        text += f"\nProducto: {products[0].name or 'Producto único'}"
    elif products:
        text += f"\nIncluye envío para {len(products)} productos"

    if option.carrier:
        text += f"\nTransportista: {option.carrier}"

    return text
