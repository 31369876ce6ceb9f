"""
Per-item tax and total price derivation.

    item_subtotal  = quantity * unit_price
    taxable_amount = item_subtotal - discount
    tax            = round(taxable_amount * tax_rate / 100, 2)
    total_price    = round(taxable_amount + tax, 2)

Rounding is ROUND_HALF_UP at cents (see ``tripsplit.core.money``).
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, List, Optional
from tripsplit.core.errors import ValidationError
from tripsplit.core.money import ZERO, has_places, qround, to_decimal

HUNDRED = Decimal(100)

# Decimal places the bill columns store
MONEY_PLACES = 2
QUANTITY_PLACES = 3
RATE_PLACES = 3


@dataclass(frozen=True)
class DraftItem:
    """A line item as edited on the client, keyed by its stable temp id."""
    temp_item_id: str
    name: str = ""
    quantity: Decimal = Decimal(1)
    unit_price: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    total_price: Decimal = ZERO
    description: Optional[str] = None
    manual_override: bool = False

    @property
    def line_subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def taxable_amount(self) -> Decimal:
        return self.line_subtotal - self.discount


def _check_places(field: str, value, places: int, item: Optional[str] = None) -> None:
    if not has_places(value, places):
        raise ValidationError.for_field(
            field, f"{field} must have at most {places} decimal places", item=item
        )


def _check_item(item: DraftItem) -> None:
    for field, value, places in (
        ("quantity", item.quantity, QUANTITY_PLACES),
        ("unitPrice", item.unit_price, MONEY_PLACES),
        ("discount", item.discount, MONEY_PLACES),
    ):
        if value < 0:
            raise ValidationError.for_field(field, f"{field} must not be negative", item=item.temp_item_id)
        _check_places(field, value, places, item=item.temp_item_id)
    if item.manual_override:
        _check_places("tax", item.tax, MONEY_PLACES, item=item.temp_item_id)
        _check_places("totalPrice", item.total_price, MONEY_PLACES, item=item.temp_item_id)
    if item.discount > item.line_subtotal:
        raise ValidationError.for_field(
            "discount", "discount must not exceed quantity * unitPrice", item=item.temp_item_id
        )


def check_tax_rate(tax_rate) -> Decimal:
    rate = to_decimal(tax_rate)
    if rate < 0:
        raise ValidationError.for_field("taxPercentage", "tax rate must not be negative")
    _check_places("taxPercentage", rate, RATE_PLACES)
    return rate


def check_rounding(rounding) -> Decimal:
    """Rounding adjustments are signed whole cents."""
    rounding = to_decimal(rounding)
    _check_places("rounding", rounding, MONEY_PLACES)
    return qround(rounding)


def calculate_item(item: DraftItem, tax_rate) -> DraftItem:
    """Return a copy of ``item`` with tax and total_price derived from its inputs.

    Items flagged ``manual_override`` keep their submitted tax and total.
    """
    rate = check_tax_rate(tax_rate)
    _check_item(item)
    if item.manual_override:
        return replace(item, tax=qround(item.tax), total_price=qround(item.total_price))

    taxable = item.taxable_amount
    tax = qround(taxable * rate / HUNDRED)
    return replace(item, tax=tax, total_price=qround(taxable + tax))


def calculate_items(items: Iterable[DraftItem], tax_rate) -> List[DraftItem]:
    """Recalculate every item, preserving order."""
    rate = check_tax_rate(tax_rate)
    return [calculate_item(item, rate) for item in items]
