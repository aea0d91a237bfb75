"""Group shipping options for the checkout selector.

Each option lands in at most one group, in this order: fallback, free,
per zone type, local + national, combined.
"""

from dataclasses import dataclass, field

SPECIAL_TYPES = ("combined", "local_national")


@dataclass
class OptionGroup:
    id: str
    title: str
    subtitle: str
    icon: str
    options: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "subtitle": self.subtitle,
            "icon": self.icon,
            "options": [o.to_dict() for o in self.options],
        }


def _zone_key(option) -> str:
    return (option.type or option.zone_type or "").lower()


def _zone_group(zone: str, options: list) -> OptionGroup:
    if "local" in zone:
        title, subtitle, icon = (
            "Envío local", "Opciones para productos con envío en tu zona", "bi-pin-map",
        )
    elif "nacional" in zone or "national" in zone:
        title, subtitle, icon = (
            "Envío nacional", "Opciones para productos con envío a nivel nacional", "bi-truck",
        )
    elif "internacional" in zone or "international" in zone:
        title, subtitle, icon = (
            "Envío internacional", "Opciones para envío fuera del país", "bi-globe",
        )
    else:
        name = zone.capitalize()
        title, subtitle, icon = (
            f"Envío {name}", f"Opciones de envío para servicio {name}", "bi-box",
        )
    return OptionGroup(id=f"zone_{zone}", title=title, subtitle=subtitle, icon=icon, options=options)


def _is_free_for_everything(option) -> bool:
    complete = option.covers_all_products or bool(
        option.combination and option.combination.get("is_complete")
    )
    return not option.is_fallback and option.total_cost == 0 and complete


def _is_combined(option) -> bool:
    if option.type == "combined":
        return True
    parts = (option.combination or {}).get("options") or []
    return len(parts) > 1


def group_shipping_options(options) -> list[OptionGroup]:
    options = list(options or [])
    if not options:
        return []

    claimed: set[str] = set()
    groups: list[OptionGroup] = []

    def claim(selected: list, group: OptionGroup):
        if not selected:
            return
        claimed.update(o.id for o in selected)
        groups.append(group)

    fallback = [o for o in options if o.is_fallback]
    claim(fallback, OptionGroup(
        id="fallback_shipping",
        title="Opción de Envío",
        subtitle="Esta opción garantiza la entrega de todos tus productos",
        icon="bi-truck",
        options=fallback,
    ))

    free = [o for o in options if o.id not in claimed and _is_free_for_everything(o)]
    claim(free, OptionGroup(
        id="free_shipping",
        title="Envío gratuito",
        subtitle="Todas tus compras sin costo de envío",
        icon="bi-gift",
        options=free,
    ))

    zones: list[str] = []
    for option in options:
        zone = _zone_key(option)
        if zone and zone not in SPECIAL_TYPES and zone not in zones:
            zones.append(zone)

    for zone in zones:
        matched = [
            o for o in options
            if o.id not in claimed and not o.is_fallback and _zone_key(o) == zone
        ]
        claim(matched, _zone_group(zone, matched))

    local_national = [
        o for o in options
        if o.id not in claimed and not o.is_fallback and o.type == "local_national"
    ]
    claim(local_national, OptionGroup(
        id="local_national_shipping",
        title="Envío Local y Nacional",
        subtitle="Combinaciones que incluyen múltiples servicios de envío",
        icon="bi-truck",
        options=local_national,
    ))

    combined = [
        o for o in options
        if o.id not in claimed and not o.is_fallback and _is_combined(o)
    ]
    claim(combined, OptionGroup(
        id="combined_shipping",
        title="Combinaciones de envío",
        subtitle="Opciones que combinan diferentes métodos para todos tus productos",
        icon="bi-box-seam",
        options=combined,
    ))

    if not groups:
        groups.append(OptionGroup(
            id="all_options",
            title="Todas las opciones de envío",
            subtitle="Todos los métodos disponibles para tus productos",
            icon="bi-box2",
            options=options,
        ))
    return groups
