"""
Repository layer exports.
Provides database access layer for the application.
"""
from app.repositories.base import BaseRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.conversation_repo import (
    ConversationRepository,
    ConversationParticipantRepository
)
from app.repositories.friendship_repo import (
    FriendshipRepository,
    BlacklistRepository,
    normalize_friendship_ids
)
from app.repositories.user_repo import UserRepository, SessionRepository

__all__ = [
    "BaseRepository",
    "MessageRepository",
    "ConversationRepository",
    "ConversationParticipantRepository",
    "FriendshipRepository",
    "BlacklistRepository",
    "normalize_friendship_ids",
    "UserRepository",
    "SessionRepository",
]
