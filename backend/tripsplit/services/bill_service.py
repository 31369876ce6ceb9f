"""
Bill service: bill shells, lookups and the confirm (reconciliation) transaction.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from typing import Dict, List, Optional
from tripsplit.core.config import settings
from tripsplit.core.errors import NotFoundError, TransactionError, TripSplitError, ValidationError
from tripsplit.models.bill import Bill, BillItem, BillParticipant, BillSplit
from tripsplit.models.user import User
from tripsplit.schemas.bill import BillItemIn, BillParticipantIn, ConfirmBillRequest
from tripsplit.services.bill_aggregator import BillTotals
from tripsplit.services.bill_draft import BillDraft
from tripsplit.services.item_calculator import DraftItem
from tripsplit.services.trip_service import check_trip_access, is_member

logger = logging.getLogger(__name__)


def get_bill_or_404(bill_id: int, db: Session) -> Bill:
    bill = db.get(Bill, bill_id)
    if not bill:
        raise NotFoundError("Bill not found")
    return bill


def get_bill_for_user(bill_id: int, user_id: str, db: Session) -> Bill:
    """Load a bill with its items, participants, splits and receipt."""
    bill = db.query(Bill).options(
        selectinload(Bill.items),
        selectinload(Bill.participants),
        selectinload(Bill.splits),
        selectinload(Bill.receipt),
    ).filter(Bill.id == bill_id).first()
    if not bill:
        raise NotFoundError("Bill not found")
    check_trip_access(bill.trip_id, user_id, db)
    return bill


def create_bill(trip_id: int, creator: User, title: str, db: Session, paid_by_id: Optional[str] = None) -> Bill:
    """Create the near-empty shell a receipt upload attaches to."""
    check_trip_access(trip_id, creator.id, db)
    payer_id = paid_by_id or creator.id
    if not is_member(trip_id, payer_id, db):
        raise ValidationError.for_field("paidById", "Payer must be a member of the trip")
    bill = Bill(
        trip_id=trip_id,
        title=title,
        paid_by_id=payer_id,
        created_by_id=creator.id,
        currency=settings.DEFAULT_CURRENCY,
    )
    db.add(bill)
    db.commit()
    db.refresh(bill)
    logger.info(f"Bill {bill.id} created in trip {trip_id}")
    return bill


def list_trip_bills(trip_id: int, db: Session) -> List[Bill]:
    return db.query(Bill).filter(Bill.trip_id == trip_id).order_by(
        Bill.created_at.desc(), Bill.id.desc()
    ).all()


def delete_bill(bill_id: int, user_id: str, db: Session) -> None:
    """Delete a bill with its items, splits, participants and receipt."""
    bill = get_bill_or_404(bill_id, db)
    check_trip_access(bill.trip_id, user_id, db)
    db.delete(bill)
    db.commit()
    logger.info(f"Bill {bill_id} deleted by {user_id}")


def draft_item_from_schema(item: BillItemIn) -> DraftItem:
    return DraftItem(
        temp_item_id=item.temp_item_id,
        name=item.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        discount=item.discount,
        tax=item.tax,
        total_price=item.total_price,
        description=item.description,
        manual_override=item.manual_override,
    )


def build_draft(payload: ConfirmBillRequest) -> BillDraft:
    """Recompute the submitted bill and check it against what was sent.

    Raises ValidationError on malformed items, drifted totals or splits
    pointing at unknown items. Split sums are checked later, inside the
    transaction.
    """
    submitted_items = [draft_item_from_schema(item) for item in payload.items]
    draft = BillDraft(submitted_items, payload.bill.tax_percentage, payload.bill.rounding)
    draft.check_submitted(submitted_items, BillTotals(
        subtotal=payload.bill.subtotal,
        total_discount=payload.bill.total_discount,
        tax=payload.bill.tax,
        tax_percentage=payload.bill.tax_percentage,
        rounding=payload.bill.rounding,
        total_amount=payload.bill.total_amount,
    ))
    draft.load_splits((s.temp_item_id, s.user_id, s.amount) for s in payload.splits)
    return draft


def _participants_snapshot(payload: ConfirmBillRequest, db: Session) -> List[BillParticipantIn]:
    """Use submitted participants, or derive them from the split users."""
    if payload.participants:
        return payload.participants
    user_ids = list(dict.fromkeys(s.user_id for s in payload.splits))
    users = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}
    return [
        BillParticipantIn(
            user_id=uid,
            display_name=users[uid].display_name if uid in users else uid[:8],
        )
        for uid in user_ids
    ]


def confirm_bill(bill_id: int, payload: ConfirmBillRequest, user: User, db: Session) -> int:
    """
    Atomically replace the bill's financial state with ``payload``.

    Items, participants and splits are deleted and reinserted; the split sums
    are validated against the freshly inserted items before commit. Any
    failure rolls back every step and the bill keeps its prior state.
    """
    bill = get_bill_or_404(bill_id, db)
    check_trip_access(bill.trip_id, user.id, db)
    if payload.trip_id is not None and payload.trip_id != bill.trip_id:
        raise ValidationError.for_field("tripId", "Bill does not belong to this trip")
    if not is_member(bill.trip_id, payload.paid_by_id, db):
        raise ValidationError.for_field("paidById", "Payer must be a member of the trip")

    draft = build_draft(payload)
    participants = _participants_snapshot(payload, db)
    totals = draft.totals
    logger.info(f"Confirming bill {bill_id}: {len(draft.items)} items, {len(payload.splits)} splits")

    try:
        # 1. Bill scalars
        bill.title = payload.title
        bill.merchant_name = payload.merchant_name
        bill.paid_by_id = payload.paid_by_id
        bill.subtotal = totals.subtotal
        bill.tax = totals.tax
        bill.tax_percentage = totals.tax_percentage
        bill.total_discount = totals.total_discount
        bill.rounding = totals.rounding
        bill.total_amount = totals.total_amount

        # 2. Clean slate
        db.query(BillSplit).filter(BillSplit.bill_id == bill_id).delete(synchronize_session="fetch")
        db.query(BillParticipant).filter(BillParticipant.bill_id == bill_id).delete(synchronize_session="fetch")
        db.query(BillItem).filter(BillItem.bill_id == bill_id).delete(synchronize_session="fetch")

        # 3. Items, remembering temp id -> server id
        rows: Dict[str, BillItem] = {}
        for position, item in enumerate(draft.items):
            row = BillItem(
                bill_id=bill_id,
                temp_item_id=item.temp_item_id,
                position=position,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                tax=item.tax,
                total_price=item.total_price,
                description=item.description,
            )
            db.add(row)
            rows[item.temp_item_id] = row
        db.flush()
        id_map = {temp_id: row.id for temp_id, row in rows.items()}

        # 4. Participants snapshot
        for p in participants:
            db.add(BillParticipant(bill_id=bill_id, user_id=p.user_id, display_name=p.display_name))

        # 5. Every item's splits must reconcile exactly
        draft.validate()

        # 6. Splits against server item ids
        for temp_id, user_id, amount in draft.allocator.splits():
            db.add(BillSplit(bill_id=bill_id, bill_item_id=id_map[temp_id], user_id=user_id, amount=amount))

        # 7. Commit
        db.commit()
    except TripSplitError as e:
        db.rollback()
        logger.warning(f"Confirm of bill {bill_id} aborted: {e.message}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Confirm of bill {bill_id} failed in storage: {e}", exc_info=True)
        raise TransactionError() from e

    logger.info(f"Bill {bill_id} confirmed, total {totals.total_amount}")
    return bill_id
