"""
Pydantic schema exports.
Provides request/response models for API endpoints.
"""
from app.schemas.common import CamelModel, BooleanResult, UTCDateTime
from app.schemas.user import UserResponse, UserSearchResult
from app.schemas.message import MessageCreate, MessageResponse, MessagePage
from app.schemas.conversation import (
    DirectConversationCreate,
    GroupConversationCreate,
    ParticipantInvite,
    LeaveGroupRequest,
    GroupSettingsInput,
    GroupSettingsUpdate,
    GroupSettingsResponse,
    ParticipantResponse,
    ConversationResponse
)
from app.schemas.friendship import (
    FriendRequestCreate,
    FriendshipResponse,
    BlacklistEntryResponse
)
from app.schemas.auth import GoogleAuthRequest, AuthPayload, SessionResponse

__all__ = [
    # Common
    "CamelModel",
    "BooleanResult",
    "UTCDateTime",
    # User
    "UserResponse",
    "UserSearchResult",
    # Message
    "MessageCreate",
    "MessageResponse",
    "MessagePage",
    # Conversation
    "DirectConversationCreate",
    "GroupConversationCreate",
    "ParticipantInvite",
    "LeaveGroupRequest",
    "GroupSettingsInput",
    "GroupSettingsUpdate",
    "GroupSettingsResponse",
    "ParticipantResponse",
    "ConversationResponse",
    # Friendship
    "FriendRequestCreate",
    "FriendshipResponse",
    "BlacklistEntryResponse",
    # Auth
    "GoogleAuthRequest",
    "AuthPayload",
    "SessionResponse",
]
