"""
Pydantic schemas for Bill entity and the confirm payload.
"""
from pydantic import Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from tripsplit.schemas.common import CamelModel


class BillCreate(CamelModel):
    """Bill shell created at upload time."""
    trip_id: int
    title: str = Field(default="Untitled Bill", min_length=1, max_length=200)
    paid_by_id: Optional[str] = None  # Defaults to the caller


class BillTotalsIn(CamelModel):
    subtotal: Decimal = Decimal(0)
    tax: Decimal = Decimal(0)
    tax_percentage: Decimal = Decimal(0)
    total_discount: Decimal = Decimal(0)
    rounding: Decimal = Decimal(0)
    total_amount: Decimal = Decimal(0)


class BillItemIn(CamelModel):
    temp_item_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    quantity: Decimal = Decimal(1)
    unit_price: Decimal = Decimal(0)
    discount: Decimal = Decimal(0)
    tax: Decimal = Decimal(0)
    total_price: Decimal = Decimal(0)
    description: Optional[str] = None
    manual_override: bool = False


class BillParticipantIn(CamelModel):
    id: Optional[str] = None
    bill_id: Optional[int] = None
    user_id: Optional[str] = None
    display_name: str = Field(min_length=1, max_length=255)


class BillSplitIn(CamelModel):
    temp_item_id: str
    bill_id: Optional[int] = None
    user_id: str
    amount: Decimal
    item_name: Optional[str] = None


class ConfirmBillRequest(CamelModel):
    """Full replacement of a bill's financial state."""
    trip_id: Optional[int] = None
    title: str = Field(min_length=1, max_length=200)
    merchant_name: Optional[str] = None
    paid_by_id: str
    bill: BillTotalsIn
    items: List[BillItemIn] = []
    participants: List[BillParticipantIn] = []
    splits: List[BillSplitIn] = []


class ConfirmBillResponse(CamelModel):
    bill_id: int


class BillItemResponse(CamelModel):
    id: int
    temp_item_id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    tax: Decimal
    total_price: Decimal
    description: Optional[str] = None


class BillParticipantResponse(CamelModel):
    id: int
    user_id: Optional[str] = None
    display_name: str


class BillSplitResponse(CamelModel):
    id: int
    bill_item_id: int
    user_id: str
    amount: Decimal


class ReceiptResponse(CamelModel):
    id: int
    image_url: str
    raw_ocr_text: Optional[str] = None
    ai_parsed_json: Optional[dict] = None


class BillResponse(CamelModel):
    """Schema for bill response with its full financial state."""
    id: int
    trip_id: int
    title: str
    merchant_name: Optional[str] = None
    paid_by_id: str
    currency: str
    subtotal: Decimal
    tax: Decimal
    tax_percentage: Decimal
    total_discount: Decimal
    rounding: Decimal
    total_amount: Decimal
    items: List[BillItemResponse] = []
    participants: List[BillParticipantResponse] = []
    splits: List[BillSplitResponse] = []
    receipt: Optional[ReceiptResponse] = None
    created_at: datetime
    updated_at: datetime


class RecalculateRequest(CamelModel):
    """Editor state to recompute: items, tax rate, rounding."""
    items: List[BillItemIn] = []
    tax_percentage: Decimal = Decimal(0)
    rounding: Decimal = Decimal(0)


class RecalculateResponse(CamelModel):
    items: List[BillItemIn]
    subtotal: Decimal
    tax: Decimal
    tax_percentage: Decimal
    total_discount: Decimal
    rounding: Decimal
    total_amount: Decimal


class SplitEvenlyRequest(CamelModel):
    total_price: Decimal
    user_ids: List[str] = Field(min_length=1)


class SplitAmount(CamelModel):
    user_id: str
    amount: Decimal


class SplitEvenlyResponse(CamelModel):
    splits: List[SplitAmount]
