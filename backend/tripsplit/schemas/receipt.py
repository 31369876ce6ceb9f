"""
Pydantic schemas for receipt upload and the parser's draft.
"""
from typing import List, Optional
from decimal import Decimal
from tripsplit.schemas.common import CamelModel


class ParsedReceiptItem(CamelModel):
    """One line as the parser read it; ``price`` is the line total."""
    name: str
    quantity: Decimal = Decimal(1)
    price: Decimal = Decimal(0)


class ParsedReceipt(CamelModel):
    """Best-effort draft returned by the receipt parser."""
    merchant: Optional[str] = None
    currency: Optional[str] = None
    total: Optional[Decimal] = None
    items: List[ParsedReceiptItem] = []
    raw_text: Optional[str] = None


class ReceiptUploadResponse(CamelModel):
    message: str
    bill_id: int
    receipt_id: int
    image_url: str
    raw_ocr_text: Optional[str] = None
    ai_parsed_json: Optional[dict] = None
