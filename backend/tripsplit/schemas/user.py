"""
Pydantic schemas for User entity.
"""
from typing import Optional
from tripsplit.schemas.common import CamelModel


class UserResponse(CamelModel):
    """Schema for user response."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
