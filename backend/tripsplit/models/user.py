"""
User model mirrored from the identity provider.
"""
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from tripsplit.db.base import BaseModel


class User(BaseModel):
    """User keyed by the identity provider's subject id."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(255), nullable=True)

    # Relationships
    trips = relationship("TripMember", back_populates="user", cascade="all, delete-orphan")
    bills_paid = relationship("Bill", foreign_keys="Bill.paid_by_id", back_populates="paid_by")

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id[:8]
