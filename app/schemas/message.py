"""
Pydantic schemas for message requests and responses.
Handles validation for message-related API endpoints.
"""
from typing import Optional, List

from pydantic import Field

from app.models.message import MessageType, MessageStatusType
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.user import UserResponse


# ============================================================================
# Request Schemas
# ============================================================================

class MessageCreate(CamelModel):
    """Schema for sending a text message."""

    content: str = Field(..., max_length=10000, description="Message text content")

    class Config:
        json_schema_extra = {
            "example": {
                "content": "Hello, how are you?"
            }
        }


# ============================================================================
# Response Schemas
# ============================================================================

class MessageResponse(CamelModel):
    """Schema for message response."""

    id: str
    conversation_id: str
    sender_id: str
    content: Optional[str] = None
    message_type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    status: MessageStatusType = MessageStatusType.SENT
    created_at: UTCDateTime
    sender: Optional[UserResponse] = None


class MessagePage(CamelModel):
    """One page of a conversation's messages."""

    messages: List[MessageResponse] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(None, description="Pass as `cursor` to load the next page; null at the end")
    prev_cursor: Optional[str] = Field(None, description="Cursor of the newest message in this page; on forward (after) pages only while newer messages remain")
    has_more: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [],
                "nextCursor": "MjAyNS0xMi0xNlQxMTozMDowMFp8YWJj",
                "prevCursor": None,
                "hasMore": True
            }
        }
