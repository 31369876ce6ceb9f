"""
Unconfirmed bill state passed explicitly between calculator, aggregator and allocator.
"""
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
from tripsplit.core.errors import NotFoundError, ValidationError
from tripsplit.core.money import ZERO, to_decimal
from tripsplit.services.bill_aggregator import BillTotals, recompute
from tripsplit.services.item_calculator import DraftItem, check_rounding, check_tax_rate
from tripsplit.services.split_allocator import SplitAllocator


class BillDraft:
    """Items, tax rate, rounding and split allocations of a bill being edited.

    Every mutation recomputes the derived item fields and totals, and
    refreshes the item totals the allocator validates against.
    """

    def __init__(self, items: Iterable[DraftItem] = (), tax_rate=ZERO, rounding=ZERO):
        self.tax_rate: Decimal = check_tax_rate(tax_rate)
        self.rounding: Decimal = check_rounding(rounding)
        self.items: List[DraftItem] = []
        self.totals = BillTotals()
        self.allocator = SplitAllocator()
        self._set_items(list(items))

    def _set_items(self, items: List[DraftItem]) -> None:
        seen = set()
        for item in items:
            if item.temp_item_id in seen:
                raise ValidationError.for_field(
                    "tempItemId", f"Duplicate item id {item.temp_item_id}", item=item.temp_item_id
                )
            seen.add(item.temp_item_id)
        self.items, self.totals = recompute(items, self.tax_rate, self.rounding)
        self.allocator.track(self.items)

    def _recompute(self) -> None:
        self._set_items(self.items)

    def item(self, temp_item_id: str) -> DraftItem:
        for item in self.items:
            if item.temp_item_id == temp_item_id:
                return item
        raise NotFoundError(f"Item {temp_item_id} not found")

    def add_item(self, item: DraftItem) -> DraftItem:
        self._set_items(self.items + [item])
        return self.item(item.temp_item_id)

    def update_item(self, temp_item_id: str, **changes) -> DraftItem:
        current = self.item(temp_item_id)
        changes.pop("temp_item_id", None)
        self._set_items([replace(current, **changes) if i is current else i for i in self.items])
        return self.item(temp_item_id)

    def remove_item(self, temp_item_id: str) -> None:
        self.item(temp_item_id)
        self.allocator.forget(temp_item_id)
        self._set_items([i for i in self.items if i.temp_item_id != temp_item_id])

    def set_tax_rate(self, tax_rate) -> None:
        self.tax_rate = check_tax_rate(tax_rate)
        self._recompute()

    def set_rounding(self, rounding) -> None:
        self.rounding = check_rounding(rounding)
        self._recompute()

    def load_splits(self, splits: Iterable[Tuple[str, str, Decimal]]) -> None:
        splits = list(splits)
        known = {item.temp_item_id for item in self.items}
        unknown = sorted({item_id for item_id, _, _ in splits if item_id not in known})
        if unknown:
            raise ValidationError(
                "Splits reference unknown items",
                [{"field": "splits", "item": item_id, "message": "unknown tempItemId"} for item_id in unknown],
            )
        self.allocator.load(splits)

    def validate(self) -> None:
        self.allocator.validate_all()

    def check_submitted(self, submitted_items: Optional[Iterable[DraftItem]], submitted_totals: BillTotals) -> None:
        """Reject submitted derived values that drift from what the inputs imply."""
        details = []
        for submitted in submitted_items or ():
            computed = self.item(submitted.temp_item_id)
            for field, label in (("tax", "tax"), ("total_price", "totalPrice")):
                if to_decimal(getattr(submitted, field)) != getattr(computed, field):
                    details.append({
                        "field": label,
                        "item": submitted.temp_item_id,
                        "message": f"expected {getattr(computed, field)}, got {to_decimal(getattr(submitted, field))}",
                    })
        for field in self.totals.differences(submitted_totals):
            details.append({
                "field": f"bill.{field}",
                "message": f"expected {getattr(self.totals, field)}, got {to_decimal(getattr(submitted_totals, field))}",
            })
        if details:
            raise ValidationError("Submitted amounts do not match the recalculated bill", details)
