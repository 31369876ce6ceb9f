"""
Bill models: the reconciled expense event and its financial state.

Items, participants and splits are owned by the bill and replaced wholesale
on every confirm.
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from tripsplit.db.base import BaseModel

MONEY = Numeric(12, 2)


class Bill(BaseModel):
    """Bill representing one receipt paid by one person."""
    __tablename__ = "bills"

    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    paid_by_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    created_by_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    merchant_name = Column(String(200), nullable=True)
    currency = Column(String(3), nullable=False, default="MYR")

    subtotal = Column(MONEY, nullable=False, default=0)
    tax = Column(MONEY, nullable=False, default=0)
    tax_percentage = Column(Numeric(7, 3), nullable=False, default=0)
    total_discount = Column(MONEY, nullable=False, default=0)
    rounding = Column(MONEY, nullable=False, default=0)  # Signed adjustment
    total_amount = Column(MONEY, nullable=False, default=0)

    # Relationships
    trip = relationship("Trip", back_populates="bills")
    paid_by = relationship("User", foreign_keys=[paid_by_id], back_populates="bills_paid")
    items = relationship(
        "BillItem", back_populates="bill", cascade="all, delete-orphan",
        order_by="BillItem.position"
    )
    participants = relationship("BillParticipant", back_populates="bill", cascade="all, delete-orphan")
    splits = relationship("BillSplit", back_populates="bill", cascade="all, delete-orphan")
    receipt = relationship("Receipt", back_populates="bill", uselist=False, cascade="all, delete-orphan")


class BillItem(BaseModel):
    """One line item of a bill."""
    __tablename__ = "bill_items"

    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    temp_item_id = Column(String(64), nullable=False)  # Client correlation id
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit_price = Column(MONEY, nullable=False, default=0)
    discount = Column(MONEY, nullable=False, default=0)
    tax = Column(MONEY, nullable=False, default=0)
    total_price = Column(MONEY, nullable=False, default=0)
    description = Column(Text, nullable=True)

    # Relationships
    bill = relationship("Bill", back_populates="items")
    splits = relationship("BillSplit", back_populates="item", cascade="all, delete-orphan")


class BillParticipant(BaseModel):
    """Point-in-time snapshot of a person assigned to a bill."""
    __tablename__ = "bill_participants"

    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=True)  # Snapshot, not a live reference
    display_name = Column(String(255), nullable=False)

    # Relationships
    bill = relationship("Bill", back_populates="participants")


class BillSplit(BaseModel):
    """Allocation of part of one item's total to one user."""
    __tablename__ = "bill_splits"

    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_item_id = Column(Integer, ForeignKey("bill_items.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)

    # Relationships
    bill = relationship("Bill", back_populates="splits")
    item = relationship("BillItem", back_populates="splits")
