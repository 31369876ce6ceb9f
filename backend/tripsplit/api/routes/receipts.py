"""
Receipt upload routes.
"""
from fastapi import APIRouter, Depends, UploadFile, File, Form, status
from sqlalchemy.orm import Session
from tripsplit.db.session import get_db
from tripsplit.models.user import User
from tripsplit.schemas.receipt import ReceiptUploadResponse
from tripsplit.api.dependencies import get_current_user
from tripsplit.services.bill_service import get_bill_or_404
from tripsplit.services.receipt_service import process_receipt
from tripsplit.services.trip_service import check_trip_access

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("/upload", response_model=ReceiptUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_receipt(
    file: UploadFile = File(...),
    bill_id: int = Form(..., alias="billId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upload a receipt image for a bill and seed its items from the parsed draft."""
    bill = get_bill_or_404(bill_id, db)
    check_trip_access(bill.trip_id, current_user.id, db)

    receipt = await process_receipt(file, bill, current_user.id, db)

    return ReceiptUploadResponse(
        message="Receipt uploaded",
        bill_id=bill.id,
        receipt_id=receipt.id,
        image_url=receipt.image_url,
        raw_ocr_text=receipt.raw_ocr_text,
        ai_parsed_json=receipt.ai_parsed_json,
    )
