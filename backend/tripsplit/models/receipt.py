"""
Receipt record attached to a bill.
"""
from sqlalchemy import Column, String, ForeignKey, Integer, Text, JSON
from sqlalchemy.orm import relationship
from tripsplit.db.base import BaseModel


class Receipt(BaseModel):
    """Uploaded receipt image and what the parser made of it."""
    __tablename__ = "receipts"

    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    image_url = Column(String(500), nullable=False)
    raw_ocr_text = Column(Text, nullable=True)
    ai_parsed_json = Column(JSON, nullable=True)

    # Relationships
    bill = relationship("Bill", back_populates="receipt")
