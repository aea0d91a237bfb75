"""Greedy and combination engine tests."""

import time
from decimal import Decimal

from conftest import make_item, make_rule

from cactilia.services.coverage import EligibleItem, ShippableSplit
from cactilia.services.shipping_engines import (
    _RuleGroup,
    can_add_to_group,
    coverage_priority,
    covering_rule_sets,
    find_options_combined,
    find_options_greedy,
    rank_rules,
)

LIMITS = {"peso_maximo_paquete": 5, "maximo_productos_por_paquete": 10}


class TestRanking:
    def test_priorities(self):
        assert coverage_priority(make_rule(zipcodes=["72000"])) == 3
        assert coverage_priority(make_rule(zipcodes=["estado_PUE"])) == 2
        assert coverage_priority(make_rule(zona="Local", zipcodes=["nacional"])) == 1
        assert coverage_priority(make_rule(zipcodes=["nacional"])) == 0
        assert coverage_priority(make_rule(zipcodes=[])) == -1

    def test_explicit_coverage_type(self):
        assert coverage_priority(make_rule(tipo_cobertura="por_codigo_postal")) == 3
        assert coverage_priority(make_rule(tipo_cobertura="por_estado")) == 2
        assert coverage_priority(make_rule(tipo_cobertura="nacional")) == 0
        assert coverage_priority(make_rule(tipo_cobertura="otro")) == -1

    def test_specific_first_then_cheapest(self):
        national = make_rule(id="mx", zipcodes=["nacional"], precio_base=10)
        cheap_zip = make_rule(id="cp1", zipcodes=["72000"], precio_base=40)
        pricey_zip = make_rule(id="cp2", zipcodes=["72000"], precio_base=90)
        no_price = make_rule(id="cp3", zipcodes=["72000"])
        ranked = rank_rules([national, pricey_zip, no_price, cheap_zip])
        assert [r.id for r in ranked] == ["cp1", "cp2", "cp3", "mx"]


class TestCanAddToGroup:
    def test_rule_without_limits_accepts_anything(self):
        group = _RuleGroup(rule=make_rule(), items=[make_item("a", weight=100, quantity=50)])
        assert can_add_to_group(group, make_item("b", weight=100)) is True

    def test_item_count_ceiling(self):
        group = _RuleGroup(rule=make_rule(configuracion_paquetes=LIMITS), items=[make_item("a", quantity=10)])
        assert can_add_to_group(group, make_item("b")) is False

    def test_weight_ceiling(self):
        group = _RuleGroup(rule=make_rule(configuracion_paquetes=LIMITS), items=[make_item("a", weight=4)])
        assert can_add_to_group(group, make_item("b", weight=1)) is True
        assert can_add_to_group(group, make_item("b", weight="1.5")) is False


def split_of(*entries, ineligible=()):
    return ShippableSplit(
        eligible=[EligibleItem(item=item, applicable_rules=rules) for item, rules in entries],
        ineligible=list(ineligible),
    )


class TestGreedy:
    def setup_method(self):
        self.local = make_rule(id="local", zona="Local", zipcodes=["72000"], precio_base=50,
                               configuracion_paquetes=LIMITS)
        self.national = make_rule(id="mx", zona="Nacional", zipcodes=["nacional"], precio_base=200,
                                  carrier="DHL")

    def test_empty(self):
        assert find_options_greedy(ShippableSplit()) == []

    def test_products_share_the_most_specific_rule(self):
        split = split_of(
            (make_item("a"), [self.national, self.local]),
            (make_item("b"), [self.local]),
        )
        options = find_options_greedy(split)
        assert len(options) == 1
        assert options[0].rule_id == "local"
        assert options[0].product_ids == ["a", "b"]
        assert options[0].covers_all_products is True
        assert options[0].total_cost == Decimal("50")

    def test_full_group_opens_another(self):
        split = split_of(
            (make_item("a", quantity=10, weight="0.1"), [self.local]),
            (make_item("b"), [self.local]),
        )
        options = find_options_greedy(split)
        assert [o.product_ids for o in options] == [["a"], ["b"]]

    def test_partial_coverage(self, caplog):
        blocked = make_item("c", name="Maceta")
        split = split_of((make_item("a"), [self.national]), ineligible=[blocked])
        options = find_options_greedy(split)
        assert options[0].covers_all_products is False
        assert "Partial shipping" in caplog.text

    def test_option_fields(self):
        options = find_options_greedy(split_of((make_item("a", name="Taza"), [self.national])))
        opt = options[0]
        assert opt.id.startswith("ship_mx_")
        assert opt.name == "Nacional"
        assert opt.carrier == "DHL"
        assert opt.zone_type == "nacional"
        assert opt.packages[0].price == Decimal("200")
        assert opt.description == "Envío nacional - $200.00\nProducto: Taza\nTransportista: DHL"

    def test_carrier_from_messaging_option(self):
        rule = make_rule(id="r", opciones_mensajeria=[{"nombre": "Estafeta", "precio": 99}])
        options = find_options_greedy(split_of((make_item("a"), [rule])))
        assert options[0].carrier == "Estafeta"
        assert options[0].total_cost == Decimal("99")

    def test_order_threshold_reaches_every_group(self):
        rule = make_rule(
            id="var", precio_base=100, configuracion_paquetes=LIMITS,
            envio_variable={"aplica": True, "envio_gratis_monto_minimo": 500},
        )
        split = split_of(
            (make_item("a", price=300, weight=4), [rule]),
            (make_item("b", price=300, weight=4), [rule]),
        )
        options = find_options_greedy(split)
        assert [o.product_ids for o in options] == [["a"], ["b"]]
        assert all(o.total_cost == Decimal("0") and o.is_free for o in options)


class TestCombinations:
    def setup_method(self):
        self.local = make_rule(id="local", zona="Local", zipcodes=["72000"], precio_base=50,
                               tiempo_minimo=1, tiempo_maximo=2)
        self.national = make_rule(id="mx", zona="Nacional", zipcodes=["nacional"], precio_base=200,
                                  tiempo_minimo=3, tiempo_maximo=7)

    def test_single_rule_covering_cart_wins(self):
        split = split_of(
            (make_item("a"), [self.local, self.national]),
            (make_item("b"), [self.national]),
        )
        options = find_options_combined(split)
        assert [o.total_cost for o in options] == [Decimal("200")]
        assert options[0].rule_id == "mx"
        assert options[0].product_ids == ["a", "b"]

    def test_combined_option(self):
        split = split_of(
            (make_item("a"), [self.local]),
            (make_item("b"), [self.national]),
        )
        options = find_options_combined(split)
        assert len(options) == 1

        combined = options[0]
        assert combined.total_cost == Decimal("250")
        assert combined.rule_id is None
        assert combined.type == "combined"
        assert combined.name == "Envío Combinado"
        assert [p.id for p in combined.packages] == ["package-0", "package-1"]
        assert (combined.min_days, combined.max_days) == (1, 7)
        assert combined.delivery_time == "Entrega en 1-7 días hábiles"
        assert combined.combination["is_complete"] is True
        assert [p["rule_id"] for p in combined.combination["options"]] == ["local", "mx"]

    def test_pairs_ranked_by_cost(self):
        cheap = make_rule(id="cp", zona="Centro", zipcodes=["72000"], precio_base=30)
        split = split_of(
            (make_item("a"), [self.local, cheap]),
            (make_item("b"), [self.national]),
        )
        options = find_options_combined(split)
        assert [o.total_cost for o in options] == [Decimal("230"), Decimal("250")]
        assert [p["rule_id"] for p in options[0].combination["options"]] == ["cp", "mx"]

    def test_product_goes_to_best_ranked_rule_of_the_set(self):
        split = split_of(
            (make_item("a"), [self.national, self.local]),
            (make_item("b"), [self.national]),
            (make_item("c"), [self.local]),
        )
        options = find_options_combined(split)
        assert len(options) == 1
        parts = options[0].combination["options"]
        assert [(p["rule_id"], p["product_ids"]) for p in parts] == [("local", ["a", "c"]), ("mx", ["b"])]

    def test_limit(self):
        rules = [make_rule(id=f"r{n}", precio_base=n) for n in range(1, 7)]
        split = split_of((make_item("a"), rules), (make_item("b"), rules))
        options = find_options_combined(split)
        assert [o.rule_id for o in options] == ["r1", "r2", "r3", "r4", "r5"]
        assert len(find_options_combined(split, limit=2)) == 2

    def test_uncoverable_cart_uses_best_rule_per_product(self, caplog):
        rules = [make_rule(id=f"z{n}", zipcodes=[f"7200{n}"], precio_base=10) for n in range(4)]
        split = split_of(*((make_item(f"p{n}"), [rule]) for n, rule in enumerate(rules)))
        options = find_options_combined(split)
        assert len(options) == 1
        assert options[0].total_cost == Decimal("40")
        assert [p["rule_id"] for p in options[0].combination["options"]] == ["z0", "z1", "z2", "z3"]
        assert "No set of 3 rules covers the cart" in caplog.text

    def test_large_cart_stays_fast(self):
        third = make_rule(id="estado", zona="Puebla", zipcodes=["estado_PUE"], precio_base=120)
        rules = [self.local, self.national, third]
        split = split_of(*((make_item(f"p{n}", weight="0.1"), rules) for n in range(15)))
        started = time.perf_counter()
        options = find_options_combined(split)
        assert time.perf_counter() - started < 2
        assert [o.rule_id for o in options] == ["local", "estado", "mx"]
        assert len(options[0].product_ids) == 15

    def test_order_threshold_spans_packages(self):
        rule = make_rule(
            id="var", precio_base=100, configuracion_paquetes=LIMITS,
            envio_variable={"aplica": True, "envio_gratis_monto_minimo": 500},
        )
        split = split_of(
            (make_item("a", price=300, weight=4), [rule]),
            (make_item("b", price=300, weight=4), [rule]),
        )
        options = find_options_combined(split)
        assert len(options[0].packages) == 2
        assert options[0].total_cost == Decimal("0")
        assert options[0].is_free is True

    def test_incomplete_flagged(self):
        split = split_of((make_item("a"), [self.local]), ineligible=[make_item("z")])
        options = find_options_combined(split)
        assert options[0].covers_all_products is False
        assert options[0].combination["is_complete"] is False

    def test_empty(self):
        assert find_options_combined(ShippableSplit()) == []


class TestCoveringRuleSets:
    def test_smallest_size_wins(self):
        a = make_rule(id="a", zipcodes=["72000"])
        b = make_rule(id="b", zipcodes=["72001"])
        both = make_rule(id="both")
        entries = split_of((make_item("x"), [a, both]), (make_item("y"), [b, both])).eligible
        assert [[r.id for r in s] for s in covering_rule_sets(entries)] == [["both"]]

    def test_pairs_when_no_single_rule_covers(self):
        a = make_rule(id="a", zipcodes=["72000"])
        b = make_rule(id="b", zipcodes=["72001"])
        c = make_rule(id="c", zipcodes=["72002"])
        entries = split_of((make_item("x"), [a, c]), (make_item("y"), [b])).eligible
        assert [[r.id for r in s] for s in covering_rule_sets(entries)] == [["a", "b"], ["c", "b"]]

    def test_nothing_within_the_size_cap(self):
        rules = [make_rule(id=f"z{n}") for n in range(3)]
        entries = split_of(*((make_item(f"p{n}"), [rule]) for n, rule in enumerate(rules))).eligible
        assert covering_rule_sets(entries, max_size=2) == []
