"""
Pydantic schemas for Trip entity.
"""
from pydantic import EmailStr, Field
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from tripsplit.schemas.common import CamelModel
from tripsplit.schemas.user import UserResponse


class TripCreate(CamelModel):
    """Schema for trip creation."""
    trip_name: str = Field(min_length=1, max_length=200)


class TripUpdate(CamelModel):
    """Schema for trip update."""
    trip_name: str = Field(min_length=1, max_length=200)


class TripResponse(CamelModel):
    """Schema for trip response."""
    id: int
    trip_name: str
    created_by: str
    created_at: datetime


class TripMemberResponse(CamelModel):
    """Schema for trip member response."""
    user_id: str
    is_owner: bool
    user: UserResponse


class TripDetailResponse(TripResponse):
    """Schema for detailed trip response with members."""
    members: List[TripMemberResponse] = []


class TripMemberAdd(CamelModel):
    """Add an existing user by email or id."""
    email: Optional[EmailStr] = None
    user_id: Optional[str] = None


class OwnershipTransfer(CamelModel):
    new_owner_id: str


class TripBillSummary(CamelModel):
    id: int
    title: str
    merchant_name: Optional[str] = None
    paid_by_id: str
    total_amount: Decimal
    created_at: datetime


class TransferResponse(CamelModel):
    """Schema for a single transfer in the settlement plan."""
    from_user_id: str
    to_user_id: str
    amount: Decimal


class SettlementResponse(CamelModel):
    trip_id: int
    balances: Dict[str, Decimal]
    transfers: List[TransferResponse]
