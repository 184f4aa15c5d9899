import math

import pytest

from mangedabord.models.catalog import CatalogItem, ExtraList, ExtraOption, Quartier
from mangedabord.models.order import LineItem, Order
from mangedabord.services.pricing import (
    compute_totals,
    format_price,
    normalize_price,
    parse_price,
    resolve_delivery_fee,
)

SIDES = ExtraList(extra_list_id="sides", name="Accompagnements", options=[
    ExtraOption(name="Plantain", price=500),
    ExtraOption(name="Frites", price="1.000"),
])


class TestNormalizePrice:
    """价格规范化测试"""

    @pytest.mark.parametrize("raw, expected", [
        ("1.234", 1234),
        ("12.500", 12500),
        ("12\u202f500", 12500),
        ("12\u00a0500", 12500),
        ("2500 FCFA", 2500),
        (3000, 3000),
        (1500.0, 1500),
        (None, 0),
        ("", 0),
        ("abc", 0),
        (float("nan"), 0),
        (float("inf"), 0),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_price(raw) == expected

    @pytest.mark.parametrize("raw", ["1.234", "12 500", 42, None, "x", float("nan"), -300])
    def test_idempotent(self, raw):
        once = normalize_price(raw)
        assert normalize_price(once) == once

    def test_parse_distinguishes_missing_from_zero(self):
        assert parse_price(None) is None
        assert parse_price("n/a") is None
        assert parse_price(0) == 0

    def test_format_price(self):
        assert format_price(12500) == "12\u202f500"
        assert format_price("1.000") == "1\u202f000"
        assert format_price(None) == "0"


class TestResolveDeliveryFee:
    """配送区域查找测试"""

    QUARTIERS = [Quartier(name="Bonapriso", fee=1500), Quartier(name="Akwa", fee=800)]

    def test_case_insensitive_match(self):
        assert resolve_delivery_fee(" bonapriso ", self.QUARTIERS) == 1500

    def test_unknown_area_uses_default(self):
        assert resolve_delivery_fee("Bali", self.QUARTIERS) == 1000
        assert resolve_delivery_fee("Bali", self.QUARTIERS, default=700) == 700

    def test_missing_area_uses_default(self):
        assert resolve_delivery_fee(None, self.QUARTIERS) == 1000


class TestComputeTotals:
    """订单金额计算测试"""

    def test_simple_order(self):
        """两份单价 1000 的菜加 500 配送费"""
        order = Order(items=[LineItem(dish_id="x", price=1000, quantity=2)], delivery_fee=500)
        totals = compute_totals(order, {}, {})
        assert totals.subtotal == 2000
        assert totals.total == 2500

    def test_empty_order(self):
        order = Order(items=[], delivery_fee=1500, points_reduction=200)
        totals = compute_totals(order, {}, {})
        assert totals.subtotal == 0
        assert totals.total == 1300

    def test_extras_added_per_unit(self):
        item = LineItem(dish_id="x", price=1000, quantity=2, selected_extras={"sides": [0, 1]})
        order = Order(items=[item], delivery_fee=0)
        totals = compute_totals(order, {"sides": SIDES}, {})
        assert totals.subtotal == (1000 + 500 + 1000) * 2

    def test_missing_extra_list_counts_zero(self):
        with_missing = Order(items=[
            LineItem(dish_id="x", price=1000, selected_extras={"gone": [0, 3]})
        ], delivery_fee=500)
        without = Order(items=[LineItem(dish_id="x", price=1000)], delivery_fee=500)
        assert compute_totals(with_missing, {}, {}).total == compute_totals(without, {}, {}).total

    def test_out_of_range_option_counts_zero(self):
        item = LineItem(dish_id="x", price=1000, selected_extras={"sides": [0, 7]})
        totals = compute_totals(Order(items=[item], delivery_fee=0), {"sides": SIDES}, {})
        assert totals.subtotal == 1500

    def test_unit_price_falls_back_to_catalog(self):
        catalog = {"poulet": CatalogItem(item_id="poulet", name="Poulet DG", price="3.500")}
        order = Order(items=[LineItem(dish_id="poulet")], delivery_fee=0)
        assert compute_totals(order, {}, catalog).subtotal == 3500

    def test_legacy_dish_price(self):
        order = Order(items=[LineItem(dish_id="x", dish_price="2.000")], delivery_fee=0)
        assert compute_totals(order, {}, {}).subtotal == 2000

    def test_missing_dish_counts_zero(self):
        order = Order(items=[LineItem(dish_id="ghost", quantity=3)], delivery_fee=500)
        totals = compute_totals(order, {}, {})
        assert totals.subtotal == 0
        assert totals.total == 500

    def test_delivery_fee_defaults_when_missing(self):
        order = Order(items=[LineItem(dish_id="x", price=1000)])
        assert compute_totals(order, {}, {}).delivery_fee == 1000
        assert compute_totals(order, {}, {}, default_delivery_fee=600).total == 1600

    def test_zero_delivery_fee_is_kept(self):
        order = Order(items=[LineItem(dish_id="x", price=1000)], delivery_fee=0)
        assert compute_totals(order, {}, {}).total == 1000

    def test_points_reduction_can_make_total_negative(self):
        order = Order(items=[LineItem(dish_id="x", price=1000)], delivery_fee=0,
                      points_reduction=1500)
        assert compute_totals(order, {}, {}).total == -500

    def test_input_not_mutated(self):
        order = Order(items=[LineItem(dish_id="x", price="1.000", selected_extras={"sides": [1]})],
                      delivery_fee=None)
        before = order.model_dump()
        compute_totals(order, {"sides": SIDES}, {})
        assert order.model_dump() == before

    def test_results_are_finite(self):
        order = Order(items=[LineItem(dish_id="x", price=float("nan"))], delivery_fee=0)
        totals = compute_totals(order, {}, {})
        assert all(math.isfinite(v) for v in totals.to_dict().values())
