"""
Balance service: net position of every participant across a trip's bills.
"""
from sqlalchemy.orm import Session, selectinload
from typing import Dict, Iterable, List, Tuple
from decimal import Decimal
from tripsplit.core.money import ZERO, qround
from tripsplit.models.bill import Bill


class Transfer:
    """Represents a single transfer between users."""
    def __init__(self, from_user_id: str, to_user_id: str, amount: Decimal):
        self.from_user_id = from_user_id
        self.to_user_id = to_user_id
        self.amount = amount

    def __repr__(self):
        return f"Transfer({self.from_user_id!r} -> {self.to_user_id!r}: {self.amount})"


def compute_balances(bills: Iterable[Bill]) -> Dict[str, Decimal]:
    """
    Net balance per user (positive = is owed, negative = owes).
    The payer fronted ``total_amount``; each split user owes their split amount.
    """
    balances: Dict[str, Decimal] = {}
    for bill in bills:
        balances[bill.paid_by_id] = balances.get(bill.paid_by_id, ZERO) + qround(bill.total_amount)
        for split in bill.splits:
            balances[split.user_id] = balances.get(split.user_id, ZERO) - qround(split.amount)
    return balances


def get_trip_balances(trip_id: int, db: Session) -> Dict[str, Decimal]:
    """Recompute balances from every committed bill of the trip."""
    bills = db.query(Bill).options(selectinload(Bill.splits)).filter(Bill.trip_id == trip_id).all()
    return compute_balances(bills)


def suggest_transfers(balances: Dict[str, Decimal]) -> List[Transfer]:
    """
    Minimize the number of transfers needed to settle debts.
    Uses a greedy algorithm: largest debtor pays largest creditor.
    """
    creditors: List[Tuple[str, Decimal]] = [(uid, bal) for uid, bal in balances.items() if bal > 0]
    debtors: List[Tuple[str, Decimal]] = [(uid, -bal) for uid, bal in balances.items() if bal < 0]

    # Ties broken by user id so the plan is deterministic
    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    transfers = []
    cred_idx = 0
    debt_idx = 0

    while cred_idx < len(creditors) and debt_idx < len(debtors):
        creditor_id, cred_amount = creditors[cred_idx]
        debtor_id, debt_amount = debtors[debt_idx]

        transfer_amount = min(cred_amount, debt_amount)
        transfers.append(Transfer(debtor_id, creditor_id, transfer_amount))

        creditors[cred_idx] = (creditor_id, cred_amount - transfer_amount)
        debtors[debt_idx] = (debtor_id, debt_amount - transfer_amount)

        if creditors[cred_idx][1] == 0:
            cred_idx += 1
        if debtors[debt_idx][1] == 0:
            debt_idx += 1

    return transfers
