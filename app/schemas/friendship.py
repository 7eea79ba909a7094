"""
Schemas for friend requests, friendships and the blacklist.
"""
from typing import Optional

from app.models.friendship import FriendshipStatus
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.user import UserResponse


class FriendRequestCreate(CamelModel):
    """Schema for sending a friend request."""

    user_id: str


class FriendshipResponse(CamelModel):
    """A friendship or friend request, seen from the viewer's side."""

    id: str
    status: FriendshipStatus
    requested_by: str
    created_at: UTCDateTime
    updated_at: Optional[UTCDateTime] = None
    user: UserResponse


class BlacklistEntryResponse(CamelModel):
    """A user the viewer has blocked."""

    id: str
    blocked_id: str
    created_at: UTCDateTime
    user: UserResponse
