from decimal import Decimal

import pytest

from tests.builders import D, day, line, purchase
from tradeledger.core.errors import ValidationFailure
from tradeledger.services.costing import (
    CostSource,
    line_value,
    quote_cost,
    snapshot_weight_per_unit,
    unit_cost,
)
from tradeledger.services.records import Basis, CostMode, ProductInfo, StockSnapshot


def two_lots():
    return [
        purchase(1, day(2024, 1, 5), lines=[line(lot="L1", weight=100, rate=10)]),
        purchase(2, day(2024, 1, 20), lines=[line(lot="L2", weight=50, rate=16)]),
    ]


class TestLineValue:
    def test_rate_times_basis_measure(self):
        assert line_value(line(quantity=4, weight=100, rate=10)) == D(1000)
        assert line_value(line(quantity=4, weight=100, rate=10, basis=Basis.QUANTITY)) == D(40)

    def test_explicit_value_wins(self):
        assert line_value(line(weight=100, rate=10, value=900)) == D(900)

    def test_zero_value_falls_back_to_rate(self):
        assert line_value(line(weight=100, rate=10, value=0)) == D(1000)


class TestWeightedAverage:
    def test_two_lots_average_per_kg(self):
        quote = quote_cost(two_lots(), "S1", "P1")

        assert quote.per_weight == D(12)
        assert quote.source is CostSource.WAC

    def test_lot_filter(self):
        assert unit_cost(two_lots(), "S1", "P1", lot="L2", basis=Basis.WEIGHT) == D(16)

    def test_average_times_measure_conserves_value(self):
        purchases = [
            purchase(1, day(2024, 1, 1), lines=[line(quantity=3, weight=70, rate=11)]),
            purchase(2, day(2024, 1, 2), lines=[line(quantity=7, weight=30, rate=13)]),
            purchase(3, day(2024, 1, 3), lines=[line(quantity=5, weight=25, rate=7, value=180)]),
        ]
        quote = quote_cost(purchases, "S1", "P1")

        assert quote.per_weight * D(125) == D(770 + 390 + 180)

    def test_as_of_excludes_later_purchases(self):
        quote = quote_cost(two_lots(), "S1", "P1", as_of=day(2024, 1, 10))

        assert quote.per_weight == D(10)

    def test_store_filter(self):
        purchases = two_lots() + [purchase(3, day(2024, 1, 6), lines=[line(store="S2", weight=10, rate=100)])]

        assert unit_cost(purchases, "S1", "P1", basis="Weight") == D(12)
        assert unit_cost(purchases, "S2", "P1", basis="Weight") == D(100)
        assert unit_cost(purchases, None, "P1", basis="Weight") == D(2800) / D(160)

    def test_repeated_quotes_are_identical(self):
        purchases = two_lots()

        assert quote_cost(purchases, "S1", "P1") == quote_cost(list(reversed(purchases)), "S1", "P1")


class TestLatest:
    def test_latest_purchase_line(self):
        assert unit_cost(two_lots(), "S1", "P1", mode=CostMode.LATEST, basis=Basis.WEIGHT) == D(16)

    def test_same_day_tie_goes_to_higher_id(self):
        purchases = [
            purchase(8, day(2024, 2, 1), lines=[line(weight=10, rate=30)]),
            purchase(5, day(2024, 2, 1), lines=[line(weight=10, rate=20)]),
        ]
        quote = quote_cost(purchases, "S1", "P1", mode="latest")

        assert quote.per_weight == D(30)
        assert quote.source is CostSource.LATEST

    def test_latest_respects_as_of(self):
        assert unit_cost(two_lots(), "S1", "P1", mode="latest", as_of=day(2024, 1, 10), basis="kg") == D(10)


class TestCrossBasis:
    def test_quantity_only_history_with_snapshot_ratio(self):
        purchases = [purchase(1, day(2024, 3, 1), lines=[line(quantity=10, rate=50, basis=Basis.QUANTITY)])]
        quote = quote_cost(purchases, "S1", "P1", snapshot_ratio=D(2))

        assert quote.per_quantity == D(50)
        assert quote.per_weight == D(25)
        assert quote.source is CostSource.CROSS_BASIS

    def test_ratio_from_live_snapshots(self):
        purchases = [purchase(1, day(2024, 3, 1), lines=[line(quantity=10, rate=50, basis=Basis.QUANTITY)])]
        snapshots = [
            StockSnapshot("S1", "P1", "R1", quantity=D(3), weight=D(5)),
            StockSnapshot("S1", "P1", "R2", quantity=D(1), weight=D(3)),
            StockSnapshot("S2", "P1", None, quantity=D(1), weight=D(100)),
        ]
        ratio = snapshot_weight_per_unit(snapshots, "S1", "P1")

        assert ratio == D(2)
        assert unit_cost(purchases, "S1", "P1", basis=Basis.WEIGHT, snapshot_ratio=ratio) == D(25)

    def test_weight_only_history_derives_per_packet(self):
        purchases = [purchase(1, day(2024, 3, 1), lines=[line(weight=100, rate=10)])]
        info = ProductInfo("P1", length=D(2), width=D(1), grams=D(1))

        assert unit_cost(purchases, "S1", "P1", basis=Basis.QUANTITY, product_info=info) == D(20)

    def test_single_basis_without_ratio_leaves_other_at_zero(self):
        purchases = [purchase(1, day(2024, 3, 1), lines=[line(weight=100, rate=10)])]
        quote = quote_cost(purchases, "S1", "P1")

        assert quote.per_weight == D(10)
        assert quote.per_quantity == D(0)

    def test_no_snapshot_stock_gives_no_ratio(self):
        assert snapshot_weight_per_unit([StockSnapshot("S1", "P1", quantity=D(0), weight=D(5))], "S1", "P1") is None


class TestFallbacks:
    def test_default_cost_from_product(self):
        info = ProductInfo("P1", default_cost_per_quantity=D(40))
        quote = quote_cost([], "S1", "P1", snapshot_ratio=D(2), product_info=info)

        assert quote.per_quantity == D(40)
        assert quote.per_weight == D(20)
        assert quote.source is CostSource.DEFAULT

    def test_unpriced_history_converts_default_through_its_own_ratio(self):
        purchases = [purchase(1, day(2024, 1, 5), lines=[line(quantity=4, weight=8, rate=0)])]
        info = ProductInfo("P1", default_cost_per_quantity=D(40))

        quote = quote_cost(purchases, "S1", "P1", snapshot_ratio=D(10), product_info=info)

        assert quote.per_quantity == D(40)
        assert quote.per_weight == D(20)
        assert quote.source is CostSource.DEFAULT

    def test_no_history_and_no_default(self):
        quote = quote_cost([], "S1", "P1")

        assert quote.per_quantity == Decimal("0")
        assert quote.per_weight == Decimal("0")
        assert quote.source is CostSource.NONE

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValidationFailure):
            quote_cost(two_lots(), "S1", "P1", mode="fifo")
