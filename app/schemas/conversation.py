"""
Pydantic schemas for conversation requests and responses.
Handles validation for conversation-related API endpoints.
"""
from typing import Optional, List

from pydantic import Field, field_validator

from app.models.conversation import ConversationType, ParticipantRole
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.message import MessageResponse
from app.schemas.user import UserResponse


# ============================================================================
# Request Schemas
# ============================================================================

class DirectConversationCreate(CamelModel):
    """Schema for getting or creating a one-to-one conversation."""

    user_id: str = Field(..., description="The other participant")

    class Config:
        json_schema_extra = {
            "example": {"userId": "123e4567-e89b-12d3-a456-426614174000"}
        }


class GroupConversationCreate(CamelModel):
    """Schema for creating a group conversation."""

    name: str = Field(..., max_length=255, description="Group name")
    user_ids: List[str] = Field(
        ...,
        max_length=100,
        description="Friends to add as members (excluding yourself, you become the owner)"
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Book club",
                "userIds": ["123e4567-e89b-12d3-a456-426614174000"]
            }
        }


class ParticipantInvite(CamelModel):
    """Schema for inviting a friend into a group."""

    user_id: str


class LeaveGroupRequest(CamelModel):
    """Schema for leaving a group. Owners must name a successor."""

    successor_user_id: Optional[str] = None


class GroupSettingsInput(CamelModel):
    """Partial update of the group permission flags."""

    only_owner_can_invite: Optional[bool] = None
    only_owner_can_kick: Optional[bool] = None
    only_owner_can_edit: Optional[bool] = None


class GroupSettingsUpdate(CamelModel):
    """Schema for updating a group's name and/or settings."""

    name: Optional[str] = Field(None, max_length=255)
    settings: Optional[GroupSettingsInput] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Renamed group",
                "settings": {"onlyOwnerCanInvite": True}
            }
        }


# ============================================================================
# Response Schemas
# ============================================================================

class GroupSettingsResponse(CamelModel):
    """Permission flags of a group."""

    only_owner_can_invite: bool
    only_owner_can_kick: bool
    only_owner_can_edit: bool


class ParticipantResponse(CamelModel):
    """A conversation participant as seen by the viewer."""

    id: str
    user_id: str
    role: ParticipantRole
    joined_at: UTCDateTime
    last_read_at: Optional[UTCDateTime] = None
    user: UserResponse
    is_friend: bool = Field(False, description="Accepted friendship with the viewer (false for the viewer)")


class ConversationResponse(CamelModel):
    """Schema for conversation response."""

    id: str
    type: ConversationType
    name: Optional[str] = None
    pinned_at: Optional[UTCDateTime] = None
    is_pinned: bool = False
    created_at: UTCDateTime
    updated_at: Optional[UTCDateTime] = None
    participants: List[ParticipantResponse] = Field(default_factory=list)
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0
    settings: Optional[GroupSettingsResponse] = None
