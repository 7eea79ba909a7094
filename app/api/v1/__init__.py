"""
API v1 router exports.
Provides API endpoint routers.
"""
from app.api.v1 import auth, blacklist, conversations, friends, messages, sessions, users

__all__ = [
    "auth",
    "blacklist",
    "conversations",
    "friends",
    "messages",
    "sessions",
    "users",
]
