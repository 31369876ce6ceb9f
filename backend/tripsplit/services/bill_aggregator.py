"""
Bill-level totals rolled up from calculated items.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple
from tripsplit.core.money import ZERO, money_sum, qround, to_decimal
from tripsplit.services.item_calculator import DraftItem, calculate_items, check_rounding, check_tax_rate


@dataclass(frozen=True)
class BillTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    tax: Decimal = ZERO
    tax_percentage: Decimal = ZERO
    rounding: Decimal = ZERO
    total_amount: Decimal = ZERO

    def differences(self, other: "BillTotals") -> List[str]:
        """Names of the fields whose values differ from ``other``."""
        fields = ("subtotal", "total_discount", "tax", "rounding", "total_amount")
        return [f for f in fields if getattr(self, f) != to_decimal(getattr(other, f))]


def aggregate_bill(items: Iterable[DraftItem], rounding, tax_percentage=ZERO) -> BillTotals:
    """Sum already-calculated items into bill totals.

    Each component is rounded to cents before the grand total is formed so the
    stored row satisfies ``total = subtotal - discount + tax + rounding``.
    """
    items = list(items)
    rounding = check_rounding(rounding)
    subtotal = money_sum(item.line_subtotal for item in items)
    total_discount = money_sum(item.discount for item in items)
    tax = money_sum(item.tax for item in items)
    return BillTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        tax=tax,
        tax_percentage=to_decimal(tax_percentage),
        rounding=rounding,
        total_amount=qround(subtotal - total_discount + tax + rounding),
    )


def recompute(items: Iterable[DraftItem], tax_rate, rounding) -> Tuple[List[DraftItem], BillTotals]:
    """Recalculate items then aggregate. The single entry point for the editor."""
    rate = check_tax_rate(tax_rate)
    calculated = calculate_items(items, rate)
    return calculated, aggregate_bill(calculated, rounding, rate)
