"""
Trip management routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Dict, List
from decimal import Decimal
from tripsplit.db.session import get_db
from tripsplit.models.user import User
from tripsplit.models.trip import Trip, TripMember
from tripsplit.schemas.trip import (
    TripCreate, TripUpdate, TripResponse, TripDetailResponse, TripMemberResponse,
    TripMemberAdd, OwnershipTransfer, TripBillSummary, SettlementResponse, TransferResponse
)
from tripsplit.schemas.user import UserResponse
from tripsplit.api.dependencies import get_current_user
from tripsplit.services import trip_service
from tripsplit.services.bill_service import list_trip_bills
from tripsplit.services.balance_service import get_trip_balances, suggest_transfers

router = APIRouter(prefix="/trips", tags=["trips"])


def _member_response(trip: Trip, member: TripMember) -> TripMemberResponse:
    return TripMemberResponse(
        user_id=member.user_id,
        is_owner=member.user_id == trip.created_by,
        user=UserResponse.model_validate(member.user),
    )


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new trip with the caller as owner and first member."""
    return trip_service.create_trip(current_user, trip_data.trip_name, db)


@router.get("", response_model=List[TripResponse])
async def list_trips(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List all trips for current user."""
    return trip_service.list_trips_for_user(current_user.id, db)


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get trip details with members."""
    trip = trip_service.check_trip_access(trip_id, current_user.id, db)
    members = trip_service.list_members(trip_id, db)
    return TripDetailResponse(
        id=trip.id,
        trip_name=trip.trip_name,
        created_by=trip.created_by,
        created_at=trip.created_at,
        members=[_member_response(trip, m) for m in members],
    )


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: int,
    trip_data: TripUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Rename a trip (owner only)."""
    return trip_service.rename_trip(trip_id, current_user.id, trip_data.trip_name, db)


@router.delete("/{trip_id}")
async def delete_trip(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a trip and all its bills (owner only)."""
    trip_service.delete_trip(trip_id, current_user.id, db)
    return {"message": "Trip deleted successfully"}


@router.get("/{trip_id}/members", response_model=List[TripMemberResponse])
async def get_members(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get member list."""
    trip = trip_service.check_trip_access(trip_id, current_user.id, db)
    return [_member_response(trip, m) for m in trip_service.list_members(trip_id, db)]


@router.post("/{trip_id}/members", response_model=TripMemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    trip_id: int,
    data: TripMemberAdd,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add an existing user to the trip by email or id."""
    trip = trip_service.check_trip_access(trip_id, current_user.id, db)
    member = trip_service.add_member(trip_id, db, email=data.email, user_id=data.user_id)
    return _member_response(trip, member)


@router.delete("/{trip_id}/members/{member_id}")
async def remove_member(
    trip_id: int,
    member_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove a member from the trip (owner only)."""
    trip_service.remove_member(trip_id, current_user.id, member_id, db)
    return {"message": "Member removed successfully"}


@router.post("/{trip_id}/transfer-ownership", response_model=TripResponse)
async def transfer_ownership(
    trip_id: int,
    data: OwnershipTransfer,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Hand the trip to another member (owner only)."""
    return trip_service.transfer_ownership(trip_id, current_user.id, data.new_owner_id, db)


@router.get("/{trip_id}/bills", response_model=List[TripBillSummary])
async def get_trip_bills(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the trip's bills, newest first."""
    trip_service.check_trip_access(trip_id, current_user.id, db)
    return list_trip_bills(trip_id, db)


@router.get("/{trip_id}/balances", response_model=Dict[str, Decimal])
async def get_balances(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Net balance per user: positive is owed money, negative owes money."""
    trip_service.check_trip_access(trip_id, current_user.id, db)
    return get_trip_balances(trip_id, db)


@router.get("/{trip_id}/settlement", response_model=SettlementResponse)
async def get_settlement(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Balances plus the transfers that would settle them."""
    trip_service.check_trip_access(trip_id, current_user.id, db)
    balances = get_trip_balances(trip_id, db)
    return SettlementResponse(
        trip_id=trip_id,
        balances=balances,
        transfers=[
            TransferResponse(from_user_id=t.from_user_id, to_user_id=t.to_user_id, amount=t.amount)
            for t in suggest_transfers(balances)
        ],
    )
