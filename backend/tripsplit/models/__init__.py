"""Models package - Import all models for SQLAlchemy registration."""
from tripsplit.models.user import User
from tripsplit.models.trip import Trip, TripMember
from tripsplit.models.bill import Bill, BillItem, BillParticipant, BillSplit
from tripsplit.models.receipt import Receipt

__all__ = [
    "User",
    "Trip",
    "TripMember",
    "Bill",
    "BillItem",
    "BillParticipant",
    "BillSplit",
    "Receipt",
]
