"""
Tests: warranty claim totals calculator.

Pure functions, no database; the autouse session fixture still runs but
nothing here touches it.
"""

from decimal import Decimal

import pytest

from dealer_portal.services.warranty_totals import (
    calculate_totals,
    line_total,
    round_money,
)


class TestRoundMoney:
    @pytest.mark.parametrize("raw, expected", [
        ("10.005", "10.01"),
        ("10.004", "10.00"),
        ("36.999", "37.00"),
        ("0.125", "0.13"),
        (0, "0.00"),
        (None, "0.00"),
    ])
    def test_half_up_to_cents(self, raw, expected):
        assert round_money(raw) == Decimal(expected)

    def test_float_input_uses_decimal_text(self):
        # 1.005 as a binary float is 1.00499…; going through str keeps 1.005
        assert round_money(1.005) == Decimal("1.01")


class TestCalculateTotals:
    def test_reference_claim(self):
        totals = calculate_totals(
            labor_hours=2,
            labor_rate=75,
            shipping_amount=10.005,
            items=[{"quantity": 3, "unit_cost": 12.333}],
        )
        assert totals.labor_amount == Decimal("150.00")
        assert totals.parts_amount == Decimal("37.00")
        assert totals.shipping_amount == Decimal("10.01")
        assert totals.total_requested == Decimal("197.01")

    def test_total_is_sum_of_rounded_components(self):
        # Each component rounds up by half a cent; the unrounded sum would round differently
        totals = calculate_totals(
            labor_hours=1, labor_rate="0.005",
            parts_amount="0.005",
            shipping_amount="0.005",
        )
        assert totals.total_requested == Decimal("0.03")
        assert totals.total_requested == (
            totals.labor_amount + totals.parts_amount + totals.shipping_amount
        )

    def test_absent_inputs_are_zero(self):
        totals = calculate_totals()
        assert totals.as_columns() == {
            "labor_amount": Decimal("0.00"),
            "parts_amount": Decimal("0.00"),
            "shipping_amount": Decimal("0.00"),
            "total_requested": Decimal("0.00"),
        }

    def test_labor_needs_both_hours_and_rate(self):
        assert calculate_totals(labor_hours=3).labor_amount == Decimal("0.00")
        assert calculate_totals(labor_rate=80).labor_amount == Decimal("0.00")

    def test_items_override_parts_amount(self):
        totals = calculate_totals(
            parts_amount=999,
            items=[{"quantity": 2, "unit_cost": "15.50"}, {"quantity": 1, "unit_cost": 4}],
        )
        assert totals.parts_amount == Decimal("35.00")

    def test_empty_item_list_still_overrides(self):
        totals = calculate_totals(parts_amount=50, items=[])
        assert totals.parts_amount == Decimal("0.00")

    def test_none_items_keeps_parts_amount(self):
        totals = calculate_totals(parts_amount="49.999", items=None)
        assert totals.parts_amount == Decimal("50.00")


def test_line_total_is_exact():
    assert line_total(3, "12.333") == Decimal("36.999")
