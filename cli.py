"""Cactilia shipping CLI tool.

Usage:
    python -m cli shipping quote cart.json --rules rules.json --zip 72000
    python -m cli shipping quote cart.json --rules rules.json --zip 72000 --combined
    python -m cli shipping groups cart.json --rules rules.json --zip 72000 --state Puebla
    python -m cli shipping diagnose cart.json --rules rules.json --zip 72000
    python -m cli rules validate rules.json
    python -m cli cart totals cart.json --shipping-cost 99
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal
from pathlib import Path

from cactilia.services.cart_totals import calculate_cart_totals
from cactilia.services.coverage import get_coverage_type, validate_shipping_rule
from cactilia.services.normalize import normalize_cart, normalize_rules
from cactilia.services.option_groups import group_shipping_options
from cactilia.services.rule_catalog import InMemoryRuleCatalog
from cactilia.services.shipping import PostalCodeRequiredError, ShippingService


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="cactilia-shipping",
        description="Cactilia shipping CLI",
    )
    sub = parser.add_subparsers(dest="command", help="Top-level command")

    # ── Shipping ─────────────────────────────────────────
    ship_parser = sub.add_parser("shipping", help="Shipping options")
    ship_sub = ship_parser.add_subparsers(dest="action")

    for name, help_text in (
        ("quote", "List shipping options for a cart"),
        ("groups", "Shipping options grouped as shown at checkout"),
        ("diagnose", "Explain which products can ship to an address"),
    ):
        cmd = ship_sub.add_parser(name, help=help_text)
        cmd.add_argument("cart", help="Cart JSON file")
        cmd.add_argument("--rules", required=True, help="Shipping rules JSON file")
        cmd.add_argument("--zip", required=True, help="Destination postal code")
        cmd.add_argument("--state", default="", help="Destination state")
        cmd.add_argument("--combined", action="store_true", help="Use the combination engine")

    # ── Rules ────────────────────────────────────────────
    rules_parser = sub.add_parser("rules", help="Shipping rules")
    rules_sub = rules_parser.add_subparsers(dest="action")

    validate = rules_sub.add_parser("validate", help="Validate rule coverage")
    validate.add_argument("file", help="Shipping rules JSON file")

    # ── Cart ─────────────────────────────────────────────
    cart_parser = sub.add_parser("cart", help="Cart totals")
    cart_sub = cart_parser.add_subparsers(dest="action")

    totals = cart_sub.add_parser("totals", help="Tax-inclusive cart totals")
    totals.add_argument("file", help="Cart JSON file")
    totals.add_argument("--shipping-cost", type=float, default=0, help="Shipping cost (MXN)")
    totals.add_argument("--tax-rate", type=float, help="Tax rate included in prices")
    totals.add_argument("--min-free-shipping", type=float, help="Free shipping minimum (MXN)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    handlers = {
        "shipping": handle_shipping,
        "rules": handle_rules,
        "cart": handle_cart,
    }
    handler = handlers.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


def _load_json(file: str):
    path = Path(file)
    if not path.exists():
        print(f"File not found: {file}")
        sys.exit(1)
    return json.loads(path.read_text(encoding="utf-8"))


def _decimal(value):
    return None if value is None else Decimal(str(value))


# ── Command Handlers ────────────────────────────────────

def handle_shipping(args):
    if args.action not in ("quote", "groups", "diagnose"):
        print("Usage: cactilia-shipping shipping {quote|groups|diagnose}")
        return

    cart = _load_json(args.cart)
    service = ShippingService(catalog=InMemoryRuleCatalog(_load_json(args.rules)))
    address = {"zip": args.zip, "state": args.state}

    try:
        if args.action == "diagnose":
            report = asyncio.run(service.diagnose(cart, address))
            print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
            return
        options = asyncio.run(
            service.get_shipping_options(cart, address, use_greedy=not args.combined)
        )
    except PostalCodeRequiredError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if not options:
        print("No shipping options available for this address.")
        return

    if args.action == "groups":
        groups = group_shipping_options(options)
        print(json.dumps([g.to_dict() for g in groups], indent=2, ensure_ascii=False))
        return

    print(f"{'Option':<28} {'Cost':<10} {'Days':<8} {'Pkgs':<5} {'Products'}")
    print("-" * 70)
    for o in options:
        days = f"{o.min_days}-{o.max_days}" if o.min_days is not None else "?"
        cost = "GRATIS" if o.is_free else f"${o.total_cost}"
        print(f"{o.name[:27]:<28} {cost:<10} {days:<8} {len(o.packages):<5} {', '.join(o.product_ids)}")

    summary = service.get_coverage_summary(options, cart)
    if summary["unavailable_product_ids"]:
        print(f"⚠️  Not shippable: {', '.join(summary['unavailable_product_ids'])}")


def handle_rules(args):
    if args.action == "validate":
        rules = normalize_rules(_load_json(args.file))
        failed = 0
        for rule in rules:
            ok, message = validate_shipping_rule(rule)
            status = "✅" if ok else "❌"
            label = rule.zone or rule.id
            print(f"{status} {label} [{get_coverage_type(rule)}] {message}".rstrip())
            failed += 0 if ok else 1
        if failed:
            sys.exit(1)
    else:
        print("Usage: cactilia-shipping rules validate rules.json")


def handle_cart(args):
    if args.action == "totals":
        items = normalize_cart(_load_json(args.file))
        totals = calculate_cart_totals(
            items,
            tax_rate=_decimal(args.tax_rate),
            min_free_shipping=_decimal(args.min_free_shipping),
            shipping_cost=Decimal(str(args.shipping_cost)),
        )
        print(f"  Subtotal:        ${totals.subtotal}")
        print(f"  IVA:             ${totals.taxes}")
        print(f"  Envío:           {'GRATIS' if totals.is_free_shipping else f'${totals.shipping}'}")
        print(f"  Total:           ${totals.final_total}")
    else:
        print("Usage: cactilia-shipping cart totals cart.json")


if __name__ == "__main__":
    main()
