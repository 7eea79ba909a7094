"""
Service layer exports.
Provides business logic for the application.
"""
from app.services.auth_service import AuthService, CurrentUser
from app.services.conversation_service import ConversationService
from app.services.friendship_service import FriendshipService
from app.services.message_service import MessageService
from app.services.user_service import UserService

__all__ = [
    "AuthService",
    "CurrentUser",
    "ConversationService",
    "FriendshipService",
    "MessageService",
    "UserService",
]
