"""
SQLAlchemy models for the Ping application.

All models must be imported here for Alembic auto-generation to work.
"""

# Import Base first
from app.models.base import Base, TimestampMixin, UUIDMixin

# Import all models (order matters for relationships)
from app.models.user import User, Account, Session
from app.models.friendship import Friendship, FriendshipStatus, Blacklist
from app.models.conversation import Conversation, ConversationParticipant, ConversationType, ParticipantRole
from app.models.message import Message, MessageType, MessageStatusType

# Export all models and enums
__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Identity
    "User",
    "Account",
    "Session",
    # Social graph
    "Friendship",
    "FriendshipStatus",
    "Blacklist",
    # Conversations
    "Conversation",
    "ConversationParticipant",
    "ConversationType",
    "ParticipantRole",
    # Messages
    "Message",
    "MessageType",
    "MessageStatusType",
]
