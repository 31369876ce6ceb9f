"""
Tests for bill-level totals.
"""
import pytest
from decimal import Decimal
from tripsplit.core.errors import ValidationError
from tripsplit.services.bill_aggregator import BillTotals, aggregate_bill, recompute
from tripsplit.services.item_calculator import DraftItem


def items():
    return [
        DraftItem("a", "Salmon", Decimal("2"), Decimal("10.00")),
        DraftItem("b", "Tea", Decimal("1"), Decimal("10.00"), discount=Decimal("1.00")),
    ]


def test_recompute_rolls_up_items():
    calculated, totals = recompute(items(), Decimal("6"), Decimal("0"))
    assert [i.total_price for i in calculated] == [Decimal("21.20"), Decimal("9.54")]
    assert totals.subtotal == Decimal("30.00")
    assert totals.total_discount == Decimal("1.00")
    assert totals.tax == Decimal("1.74")
    assert totals.total_amount == Decimal("30.74")


def test_rounding_adjustment_is_applied():
    _, totals = recompute(items(), Decimal("6"), Decimal("-0.04"))
    assert totals.rounding == Decimal("-0.04")
    assert totals.total_amount == Decimal("30.70")


def test_total_equals_components():
    _, totals = recompute(items(), Decimal("7.5"), Decimal("0.03"))
    assert totals.total_amount == (
        totals.subtotal - totals.total_discount + totals.tax + totals.rounding
    )


def test_empty_bill_keeps_only_rounding():
    totals = aggregate_bill([], Decimal("0.05"))
    assert totals.total_amount == Decimal("0.05")
    assert totals.subtotal == Decimal("0.00")


def test_differences_names_drifted_fields():
    _, totals = recompute(items(), Decimal("6"), Decimal("0"))
    submitted = BillTotals(
        subtotal=Decimal("30"), total_discount=Decimal("1"), tax=Decimal("1.74"),
        rounding=Decimal("0"), total_amount=Decimal("30.75"),
    )
    assert totals.differences(submitted) == ["total_amount"]


def test_fractional_rounding_is_rejected():
    with pytest.raises(ValidationError) as exc:
        recompute(items(), Decimal("6"), Decimal("0.004"))
    assert exc.value.details[0]["field"] == "rounding"
