"""
Trip model for group expense tracking.
"""
from sqlalchemy import Column, String, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from tripsplit.db.base import BaseModel


class Trip(BaseModel):
    """Trip owning bills and memberships."""
    __tablename__ = "trips"

    trip_name = Column(String(200), nullable=False)
    created_by = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    owner = relationship("User", foreign_keys=[created_by])
    members = relationship("TripMember", back_populates="trip", cascade="all, delete-orphan")
    bills = relationship("Bill", back_populates="trip", cascade="all, delete-orphan")


class TripMember(BaseModel):
    """Junction table for Trip and User many-to-many relationship."""
    __tablename__ = "trip_members"
    __table_args__ = (UniqueConstraint("trip_id", "user_id", name="uq_trip_member"),)

    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    trip = relationship("Trip", back_populates="members")
    user = relationship("User", back_populates="trips")
