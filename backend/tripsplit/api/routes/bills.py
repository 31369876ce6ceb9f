"""
Bill routes: shells, detail, delete, confirm and the editor helpers.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from tripsplit.db.session import get_db
from tripsplit.models.user import User
from tripsplit.schemas.bill import (
    BillCreate, BillResponse, BillItemIn, ConfirmBillRequest, ConfirmBillResponse,
    RecalculateRequest, RecalculateResponse, SplitEvenlyRequest, SplitEvenlyResponse, SplitAmount
)
from tripsplit.api.dependencies import get_current_user
from tripsplit.services import bill_service
from tripsplit.services.bill_aggregator import recompute
from tripsplit.services.split_allocator import check_split_amount, even_shares

router = APIRouter(prefix="/bills", tags=["bills"])


@router.post("", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_data: BillCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create an empty bill for a trip; items arrive with the receipt or on confirm."""
    return bill_service.create_bill(
        bill_data.trip_id, current_user, bill_data.title, db, paid_by_id=bill_data.paid_by_id
    )


@router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate_bill(
    data: RecalculateRequest,
    current_user: User = Depends(get_current_user)
):
    """Recompute item tax/totals and bill aggregates for an unconfirmed draft."""
    items, totals = recompute(
        [bill_service.draft_item_from_schema(item) for item in data.items],
        data.tax_percentage,
        data.rounding,
    )
    return RecalculateResponse(
        items=[
            BillItemIn(
                temp_item_id=i.temp_item_id, name=i.name, quantity=i.quantity, unit_price=i.unit_price,
                discount=i.discount, tax=i.tax, total_price=i.total_price, description=i.description,
                manual_override=i.manual_override,
            )
            for i in items
        ],
        subtotal=totals.subtotal,
        tax=totals.tax,
        tax_percentage=totals.tax_percentage,
        total_discount=totals.total_discount,
        rounding=totals.rounding,
        total_amount=totals.total_amount,
    )


@router.post("/split-evenly", response_model=SplitEvenlyResponse)
async def split_evenly(
    data: SplitEvenlyRequest,
    current_user: User = Depends(get_current_user)
):
    """Even shares of an item total; the last user absorbs the leftover cents."""
    shares = even_shares(data.total_price, len(data.user_ids))
    return SplitEvenlyResponse(
        splits=[
            SplitAmount(user_id=uid, amount=check_split_amount(amount, uid))
            for uid, amount in zip(data.user_ids, shares)
        ]
    )


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a bill with items, participants, splits and receipt."""
    return bill_service.get_bill_for_user(bill_id, current_user.id, db)


@router.put("/{bill_id}/confirm", response_model=ConfirmBillResponse)
async def confirm_bill(
    bill_id: int,
    payload: ConfirmBillRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace the bill's items, participants and splits in one transaction."""
    return ConfirmBillResponse(bill_id=bill_service.confirm_bill(bill_id, payload, current_user, db))


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a bill with everything it owns."""
    bill_service.delete_bill(bill_id, current_user.id, db)
    return {"message": "Bill deleted successfully"}
