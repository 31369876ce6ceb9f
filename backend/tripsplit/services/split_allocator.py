"""
Split allocation of line items across participants.

Allocations are keyed by the item's stable temp id, never by list position,
so reordering or removing items cannot shift splits onto the wrong item.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from tripsplit.core.errors import NotFoundError, SplitMismatchError, ValidationError
from tripsplit.core.money import ZERO, has_places, money_sum, qround, to_decimal
from tripsplit.services.item_calculator import DraftItem


@dataclass
class Allocation:
    participant_id: str
    amount: Decimal = ZERO


def even_shares(total, count: int) -> List[Decimal]:
    """Split ``total`` into ``count`` cent amounts summing exactly to it.

    Every share is round(total / count, 2) except the last, which takes
    whatever is left over.
    """
    if count <= 0:
        return []
    total = qround(total)
    share = qround(total / count)
    shares = [share] * (count - 1)
    shares.append(total - share * (count - 1))
    return shares


def check_split_amount(amount, participant_id: str, item_id: Optional[str] = None) -> Decimal:
    """A split is a non-negative amount of whole cents, stored exactly as given."""
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError.for_field(
            "amount", f"Split for {participant_id} must not be negative", item=item_id
        )
    if not has_places(amount, 2):
        raise ValidationError.for_field(
            "amount", f"Split for {participant_id} must be whole cents", item=item_id
        )
    return qround(amount)


def check_item_splits(item_id: str, expected_total, amounts: Iterable, item_name: Optional[str] = None) -> Decimal:
    """Raise SplitMismatchError unless amounts sum exactly to expected_total."""
    submitted = money_sum(amounts)
    expected = qround(expected_total)
    if submitted != expected:
        raise SplitMismatchError(item_id, submitted, expected, item_name=item_name)
    return submitted


class SplitAllocator:
    """Mapping temp item id -> ordered list of (participant, amount)."""

    def __init__(self, items: Iterable[DraftItem] = ()):
        self._items: Dict[str, DraftItem] = {}
        self._allocations: Dict[str, List[Allocation]] = {}
        self.track(items)

    def track(self, items: Iterable[DraftItem]) -> None:
        """Register items or refresh their totals after a recalculation."""
        for item in items:
            self._items[item.temp_item_id] = item
            self._allocations.setdefault(item.temp_item_id, [])

    def forget(self, item_id: str) -> None:
        """Drop an item and only its allocations."""
        self._item(item_id)
        del self._items[item_id]
        del self._allocations[item_id]

    def _item(self, item_id: str) -> DraftItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(f"Item {item_id} not found")

    def _find(self, item_id: str, participant_id: str) -> Optional[Allocation]:
        self._item(item_id)
        for allocation in self._allocations[item_id]:
            if allocation.participant_id == participant_id:
                return allocation
        return None

    def assign(self, item_id: str, participant_id: str) -> None:
        if self._find(item_id, participant_id) is None:
            self._allocations[item_id].append(Allocation(participant_id))

    def unassign(self, item_id: str, participant_id: str) -> None:
        self._item(item_id)
        self._allocations[item_id] = [
            a for a in self._allocations[item_id] if a.participant_id != participant_id
        ]

    def set_amount(self, item_id: str, participant_id: str, amount) -> None:
        allocation = self._find(item_id, participant_id)
        if allocation is None:
            raise NotFoundError(f"Participant {participant_id} is not assigned to item {item_id}")
        allocation.amount = check_split_amount(amount, participant_id, item_id)

    def split_evenly(self, item_id: str) -> None:
        item = self._item(item_id)
        allocations = self._allocations[item_id]
        shares = even_shares(item.total_price, len(allocations))
        checked = [check_split_amount(s, a.participant_id, item_id) for a, s in zip(allocations, shares)]
        for allocation, share in zip(allocations, checked):
            allocation.amount = share

    def allocations(self, item_id: str) -> List[Allocation]:
        self._item(item_id)
        return [Allocation(a.participant_id, a.amount) for a in self._allocations[item_id]]

    def allocated_total(self, item_id: str) -> Decimal:
        return money_sum(a.amount for a in self.allocations(item_id))

    def validate(self, item_id: str) -> None:
        """Items without any allocation are left unallocated and pass."""
        item = self._item(item_id)
        allocations = self._allocations[item_id]
        if not allocations:
            return
        check_item_splits(item_id, item.total_price, (a.amount for a in allocations), item.name)

    def validate_all(self) -> None:
        for item_id in self._items:
            self.validate(item_id)

    def splits(self) -> List[Tuple[str, str, Decimal]]:
        """Flatten to (temp item id, participant id, amount) in item order."""
        return [
            (item_id, a.participant_id, a.amount)
            for item_id in self._items
            for a in self._allocations[item_id]
        ]

    def load(self, splits: Iterable[Tuple[str, str, Decimal]]) -> None:
        """Bulk load (temp item id, participant id, amount) triples."""
        for item_id, participant_id, amount in splits:
            if self._find(item_id, participant_id) is not None:
                raise ValidationError.for_field(
                    "splits", f"Participant {participant_id} appears twice for item {item_id}", item=item_id
                )
            amount = check_split_amount(amount, participant_id, item_id)
            self._allocations[item_id].append(Allocation(participant_id, amount))
