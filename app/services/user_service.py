"""
User service for profile lookups and user search.
"""
from typing import List, Dict, Any, Iterable, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import get_online_user_ids
from app.models.friendship import FriendshipStatus
from app.models.user import User
from app.repositories.friendship_repo import FriendshipRepository
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
MAX_SEARCH_RESULTS = 20


def user_to_dict(user: User, online_ids: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Public fields of a user, shaped for UserResponse."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "image": user.image,
        "status_message": user.status_message,
        "is_online": user.id in (online_ids or ()),
        "created_at": user.created_at,
    }


class UserService:
    """Service for user-related business logic."""

    def __init__(self, db: AsyncSession):
        """Initialize user service."""
        self.db = db
        self.user_repo = UserRepository(db)
        self.friendship_repo = FriendshipRepository(db)

    async def get_me(self, user: User) -> Dict[str, Any]:
        online_ids = await get_online_user_ids([user.id])
        return user_to_dict(user, online_ids)

    async def search_users(self, viewer_id: str, query: str) -> List[Dict[str, Any]]:
        """
        Find users by name or email.

        Queries shorter than two characters return nothing. The viewer is never
        part of the result. Each hit carries the viewer's friendship status.

        Args:
            viewer_id: Searching user
            query: Search term

        Returns:
            List of user dicts (at most 20)
        """
        term = (query or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        users = await self.user_repo.search_users(term, exclude_user_id=viewer_id, limit=MAX_SEARCH_RESULTS)
        online_ids = await get_online_user_ids(u.id for u in users)

        results = []
        for user in users:
            friendship = await self.friendship_repo.get_for_pair(viewer_id, user.id)
            data = user_to_dict(user, online_ids)
            data["friendship_status"] = friendship.status.value if friendship else None
            data["is_friend"] = friendship is not None and friendship.status == FriendshipStatus.ACCEPTED
            results.append(data)

        logger.debug("User search %r by %s returned %d results", term, viewer_id, len(results))
        return results
