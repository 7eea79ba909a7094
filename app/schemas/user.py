"""
User schemas for API request/response validation.
"""
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel, UTCDateTime


class UserResponse(CamelModel):
    """Public view of a user."""

    id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    status_message: Optional[str] = None
    is_online: bool = False
    created_at: Optional[UTCDateTime] = None


class UserSearchResult(UserResponse):
    """User search hit, annotated with the viewer's relationship to them."""

    is_friend: bool = False
    friendship_status: Optional[str] = Field(None, description="PENDING / ACCEPTED / REJECTED or null")
