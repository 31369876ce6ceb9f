"""
Trip membership service: access guards and member management.
"""
import logging
from sqlalchemy.orm import Session
from typing import List, Optional
from tripsplit.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from tripsplit.models.trip import Trip, TripMember
from tripsplit.models.user import User

logger = logging.getLogger(__name__)


def get_trip_or_404(trip_id: int, db: Session) -> Trip:
    trip = db.get(Trip, trip_id)
    if not trip:
        raise NotFoundError("Trip not found")
    return trip


def is_member(trip_id: int, user_id: str, db: Session) -> bool:
    return db.query(TripMember).filter(
        TripMember.trip_id == trip_id,
        TripMember.user_id == user_id
    ).first() is not None


def check_trip_access(trip_id: int, user_id: str, db: Session) -> Trip:
    """Check if user has access to trip."""
    trip = get_trip_or_404(trip_id, db)
    if not is_member(trip_id, user_id, db):
        raise PermissionDeniedError("Not a member of this trip")
    return trip


def check_ownership(trip_id: int, user_id: str, db: Session) -> Trip:
    trip = get_trip_or_404(trip_id, db)
    if trip.created_by != user_id:
        raise PermissionDeniedError("Only the trip owner can do this")
    return trip


def create_trip(owner: User, trip_name: str, db: Session) -> Trip:
    """Create a trip with its creator as first member."""
    trip = Trip(trip_name=trip_name, created_by=owner.id)
    db.add(trip)
    db.flush()
    db.add(TripMember(trip_id=trip.id, user_id=owner.id))
    db.commit()
    db.refresh(trip)
    logger.info(f"Trip {trip.id} created by {owner.id}")
    return trip


def list_trips_for_user(user_id: str, db: Session) -> List[Trip]:
    return db.query(Trip).join(TripMember).filter(
        TripMember.user_id == user_id
    ).order_by(Trip.created_at.desc(), Trip.id.desc()).all()


def rename_trip(trip_id: int, user_id: str, trip_name: str, db: Session) -> Trip:
    trip = check_ownership(trip_id, user_id, db)
    trip.trip_name = trip_name
    db.commit()
    db.refresh(trip)
    return trip


def delete_trip(trip_id: int, user_id: str, db: Session) -> None:
    """Delete a trip; its bills and memberships go with it."""
    trip = check_ownership(trip_id, user_id, db)
    db.delete(trip)
    db.commit()
    logger.info(f"Trip {trip_id} deleted by {user_id}")


def _find_user(db: Session, email: Optional[str] = None, user_id: Optional[str] = None) -> User:
    if user_id:
        user = db.get(User, user_id)
    elif email:
        user = db.query(User).filter(User.email == email).first()
    else:
        raise ValidationError.for_field("email", "email or userId is required")
    if not user:
        raise NotFoundError("User not found")
    return user


def add_member(trip_id: int, db: Session, email: Optional[str] = None, user_id: Optional[str] = None) -> TripMember:
    get_trip_or_404(trip_id, db)
    user = _find_user(db, email=email, user_id=user_id)
    if is_member(trip_id, user.id, db):
        raise ValidationError.for_field("userId", "User is already a member")
    member = TripMember(trip_id=trip_id, user_id=user.id)
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def remove_member(trip_id: int, owner_id: str, member_id: str, db: Session) -> None:
    trip = check_ownership(trip_id, owner_id, db)
    if member_id == trip.created_by:
        raise ValidationError.for_field("memberId", "The owner cannot be removed; transfer ownership first")
    member = db.query(TripMember).filter(
        TripMember.trip_id == trip_id,
        TripMember.user_id == member_id
    ).first()
    if not member:
        raise NotFoundError("Member not found")
    db.delete(member)
    db.commit()


def transfer_ownership(trip_id: int, owner_id: str, new_owner_id: str, db: Session) -> Trip:
    trip = check_ownership(trip_id, owner_id, db)
    if not is_member(trip_id, new_owner_id, db):
        raise ValidationError.for_field("newOwnerId", "New owner must be a member of the trip")
    trip.created_by = new_owner_id
    db.commit()
    db.refresh(trip)
    return trip


def list_members(trip_id: int, db: Session) -> List[TripMember]:
    return db.query(TripMember).filter(TripMember.trip_id == trip_id).order_by(TripMember.id).all()
