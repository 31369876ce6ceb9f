"""
Receipt service: ask the parser for a draft, store the image, seed the bill.

Storage and parsing are external collaborators; only their result shapes
matter here. With no RECEIPT_PARSER_URL configured the parser returns an
empty draft and the bill keeps whatever items it had.
"""
import logging
import os
import uuid
from decimal import Decimal
from typing import List, Optional, Tuple
import httpx
from fastapi import UploadFile
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tripsplit.core.config import settings
from tripsplit.core.errors import ExternalServiceError, TransactionError, ValidationError
from tripsplit.core.money import ZERO, has_places, qround
from tripsplit.models.bill import Bill, BillItem, BillParticipant, BillSplit
from tripsplit.models.receipt import Receipt
from tripsplit.schemas.receipt import ParsedReceipt
from tripsplit.services.bill_aggregator import BillTotals, recompute
from tripsplit.services.item_calculator import QUANTITY_PLACES, DraftItem

logger = logging.getLogger(__name__)

_EXTENSIONS = {"image/jpeg": ".jpg", "image/jpg": ".jpg", "image/png": ".png"}


async def read_upload(file: UploadFile) -> bytes:
    """Validate type and size of an uploaded receipt image and return its bytes."""
    if file.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise ValidationError.for_field("file", "Invalid file type. Only JPEG and PNG are supported.")
    content = await file.read()
    if not content:
        raise ValidationError.for_field("file", "Uploaded file is empty")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError.for_field("file", f"File exceeds {settings.MAX_UPLOAD_SIZE} bytes")
    return content


def store_receipt_image(content: bytes, user_id: str, content_type: str) -> str:
    """Write the image under UPLOAD_DIR and return the URL it is served from."""
    relative = os.path.join("receipts", user_id, f"{uuid.uuid4()}{_EXTENSIONS.get(content_type, '.jpg')}")
    path = os.path.join(settings.UPLOAD_DIR, relative)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as buffer:
        buffer.write(content)
    return "/static/" + relative.replace(os.sep, "/")


def discard_receipt_image(image_url: str) -> None:
    path = os.path.join(settings.UPLOAD_DIR, image_url[len("/static/"):])
    if os.path.exists(path):
        os.remove(path)


async def parse_receipt(content: bytes, filename: str, content_type: str) -> ParsedReceipt:
    """Send the image to the OCR + AI parser and return its draft."""
    if not settings.RECEIPT_PARSER_URL:
        logger.warning("RECEIPT_PARSER_URL not configured. Returning an empty receipt draft.")
        return ParsedReceipt()

    headers = {}
    if settings.RECEIPT_PARSER_API_KEY:
        headers["Authorization"] = f"Bearer {settings.RECEIPT_PARSER_API_KEY}"

    try:
        async with httpx.AsyncClient(timeout=settings.RECEIPT_PARSER_TIMEOUT) as client:
            response = await client.post(
                settings.RECEIPT_PARSER_URL,
                files={"file": (filename, content, content_type)},
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Receipt parser HTTP error {e.response.status_code}: {e.response.text}")
        raise ExternalServiceError("Receipt parser rejected the image") from e
    except httpx.HTTPError as e:
        logger.error(f"Receipt parser request failed: {e}", exc_info=True)
        raise ExternalServiceError("Receipt parser unavailable") from e
    except ValueError as e:
        logger.error(f"Receipt parser returned invalid JSON: {e}")
        raise ExternalServiceError("Receipt parser returned an invalid response") from e

    try:
        parsed = ParsedReceipt.model_validate(data)
    except SchemaValidationError as e:
        logger.error(f"Receipt parser returned unexpected shape: {data}")
        raise ExternalServiceError("Receipt parser returned an invalid response") from e
    logger.debug(f"Receipt parser returned {len(parsed.items)} items")
    return parsed


def draft_items_from_receipt(parsed: ParsedReceipt) -> List[DraftItem]:
    """Turn parsed lines (name, quantity, line price) into draft items.

    The parsed line price is kept as the line subtotal. When it does not
    divide into whole-cent unit prices the line becomes one unit at that price.
    """
    items = []
    for line in parsed.items:
        price = qround(line.price)
        quantity = line.quantity if line.quantity and line.quantity > 0 else Decimal(1)
        unit_price = qround(price / quantity)
        if not has_places(quantity, QUANTITY_PLACES) or unit_price * quantity != price:
            quantity, unit_price = Decimal(1), price
        items.append(DraftItem(
            temp_item_id=str(uuid.uuid4()),
            name=line.name,
            quantity=quantity,
            unit_price=unit_price,
        ))
    return items


def seed_from_receipt(parsed: ParsedReceipt, tax_rate) -> Optional[Tuple[List[DraftItem], BillTotals]]:
    """Recalculated items and totals for the parsed lines, or None when there are none."""
    if not parsed.items:
        return None
    return recompute(draft_items_from_receipt(parsed), tax_rate, ZERO)


def apply_parsed_receipt(
    bill: Bill,
    image_url: str,
    parsed: ParsedReceipt,
    seeded: Optional[Tuple[List[DraftItem], BillTotals]],
    db: Session
) -> Receipt:
    """
    Replace the bill's receipt and, when the parser found lines, its items.

    Splits and participants of replaced items go too: they no longer refer
    to anything on the new receipt.
    """
    try:
        db.query(Receipt).filter(Receipt.bill_id == bill.id).delete(synchronize_session="fetch")
        receipt = Receipt(
            bill_id=bill.id,
            image_url=image_url,
            raw_ocr_text=parsed.raw_text,
            ai_parsed_json=parsed.model_dump(mode="json"),
        )
        db.add(receipt)

        if seeded is not None:
            items, totals = seeded
            db.query(BillSplit).filter(BillSplit.bill_id == bill.id).delete(synchronize_session="fetch")
            db.query(BillParticipant).filter(BillParticipant.bill_id == bill.id).delete(synchronize_session="fetch")
            db.query(BillItem).filter(BillItem.bill_id == bill.id).delete(synchronize_session="fetch")
            for position, item in enumerate(items):
                db.add(BillItem(
                    bill_id=bill.id,
                    temp_item_id=item.temp_item_id,
                    position=position,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount=item.discount,
                    tax=item.tax,
                    total_price=item.total_price,
                ))
            bill.subtotal = totals.subtotal
            bill.total_discount = totals.total_discount
            bill.tax = totals.tax
            bill.rounding = totals.rounding
            bill.total_amount = totals.total_amount

        if parsed.merchant and not bill.merchant_name:
            bill.merchant_name = parsed.merchant
        if parsed.currency:
            bill.currency = parsed.currency.upper()[:3]

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Saving receipt for bill {bill.id} failed: {e}", exc_info=True)
        raise TransactionError() from e

    db.refresh(receipt)
    logger.info(f"Receipt {receipt.id} stored for bill {bill.id} ({len(parsed.items)} items)")
    return receipt


async def process_receipt(file: UploadFile, bill: Bill, user_id: str, db: Session) -> Receipt:
    """Parse and recalculate first; the image is only written once the draft is usable."""
    content = await read_upload(file)
    parsed = await parse_receipt(content, file.filename or "receipt.jpg", file.content_type)
    seeded = seed_from_receipt(parsed, bill.tax_percentage or ZERO)
    image_url = store_receipt_image(content, user_id, file.content_type)
    try:
        return apply_parsed_receipt(bill, image_url, parsed, seeded, db)
    except TransactionError:
        discard_receipt_image(image_url)
        raise
