"""
Friendship service.
Handles friend requests, friend lists, and blocking.
"""
import logging
from typing import List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import get_online_user_ids
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.models.friendship import Friendship, FriendshipStatus, Blacklist
from app.repositories.friendship_repo import FriendshipRepository, BlacklistRepository
from app.repositories.user_repo import UserRepository
from app.services.user_service import user_to_dict

logger = logging.getLogger(__name__)


class FriendshipService:
    """Service for the friendship graph and the blacklist."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.friendship_repo = FriendshipRepository(db)
        self.blacklist_repo = BlacklistRepository(db)
        self.user_repo = UserRepository(db)

    async def _friendships_to_dicts(
        self, viewer_id: str, friendships: List[Friendship]
    ) -> List[Dict[str, Any]]:
        online_ids = await get_online_user_ids(f.other_user_id(viewer_id) for f in friendships)
        return [
            {
                "id": f.id,
                "status": f.status,
                "requested_by": f.requested_by,
                "created_at": f.created_at,
                "updated_at": f.updated_at,
                "user": user_to_dict(f.other_user(viewer_id), online_ids),
            }
            for f in friendships
        ]

    async def _get_request_for_recipient(self, viewer_id: str, request_id: str) -> Friendship:
        friendship = await self.friendship_repo.get(request_id)
        if friendship is None:
            raise NotFoundError("Friend request not found")

        if not friendship.involves(viewer_id) or friendship.requested_by == viewer_id:
            raise ForbiddenError("Only the recipient can answer this friend request")

        if friendship.status != FriendshipStatus.PENDING:
            raise BadRequestError("Friend request is no longer pending")

        return friendship

    # ========================================================================
    # Requests
    # ========================================================================

    async def send_friend_request(self, viewer_id: str, user_id: str) -> Dict[str, Any]:
        """
        Send a friend request.

        Raises:
            BadRequestError: Request to self
            NotFoundError: Unknown user
            ForbiddenError: Either side blocked the other
            ConflictError: A request or friendship already exists for the pair
        """
        if user_id == viewer_id:
            raise BadRequestError("Cannot send a friend request to yourself")

        if not await self.user_repo.exists(user_id):
            raise NotFoundError("User not found")

        if await self.blacklist_repo.is_blocked_either_way(viewer_id, user_id):
            raise ForbiddenError("Cannot send a friend request to this user")

        if await self.friendship_repo.get_for_pair(viewer_id, user_id) is not None:
            raise ConflictError("Friend request already exists")

        friendship = await self.friendship_repo.create_request(viewer_id, user_id)
        await self.db.commit()

        logger.info("Friend request %s: %s -> %s", friendship.id, viewer_id, user_id)
        friendship = await self.friendship_repo.get(friendship.id)
        return (await self._friendships_to_dicts(viewer_id, [friendship]))[0]

    async def accept_friend_request(self, viewer_id: str, request_id: str) -> Dict[str, Any]:
        friendship = await self._get_request_for_recipient(viewer_id, request_id)
        await self.friendship_repo.update(friendship.id, status=FriendshipStatus.ACCEPTED)
        await self.db.commit()

        logger.info("Friend request %s accepted by %s", request_id, viewer_id)
        friendship = await self.friendship_repo.get(request_id)
        return (await self._friendships_to_dicts(viewer_id, [friendship]))[0]

    async def reject_friend_request(self, viewer_id: str, request_id: str) -> Dict[str, Any]:
        friendship = await self._get_request_for_recipient(viewer_id, request_id)
        await self.friendship_repo.update(friendship.id, status=FriendshipStatus.REJECTED)
        await self.db.commit()

        friendship = await self.friendship_repo.get(request_id)
        return (await self._friendships_to_dicts(viewer_id, [friendship]))[0]

    async def cancel_friend_request(self, viewer_id: str, request_id: str) -> bool:
        friendship = await self.friendship_repo.get(request_id)
        if friendship is None:
            raise NotFoundError("Friend request not found")

        if friendship.requested_by != viewer_id:
            raise ForbiddenError("Only the sender can cancel this friend request")

        if friendship.status != FriendshipStatus.PENDING:
            raise BadRequestError("Friend request is no longer pending")

        await self.friendship_repo.delete(friendship.id)
        await self.db.commit()
        return True

    async def remove_friend(self, viewer_id: str, user_id: str) -> bool:
        """Delete an accepted friendship. Existing conversations are kept."""
        if not await self.friendship_repo.is_accepted(viewer_id, user_id):
            raise NotFoundError("Friendship not found")

        await self.friendship_repo.delete_for_pair(viewer_id, user_id)
        await self.db.commit()
        return True

    # ========================================================================
    # Listings
    # ========================================================================

    async def get_friends(self, viewer_id: str) -> List[Dict[str, Any]]:
        friendships = await self.friendship_repo.get_accepted_for_user(viewer_id)
        return await self._friendships_to_dicts(viewer_id, friendships)

    async def get_pending_requests(self, viewer_id: str) -> List[Dict[str, Any]]:
        friendships = await self.friendship_repo.get_pending_received(viewer_id)
        return await self._friendships_to_dicts(viewer_id, friendships)

    async def get_sent_requests(self, viewer_id: str) -> List[Dict[str, Any]]:
        friendships = await self.friendship_repo.get_pending_sent(viewer_id)
        return await self._friendships_to_dicts(viewer_id, friendships)

    # ========================================================================
    # Blacklist
    # ========================================================================

    async def block_user(self, viewer_id: str, user_id: str) -> bool:
        """
        Block a user.

        Creating the block edge also removes any friendship (or pending request)
        between the pair, in the same transaction. Blocking twice is a no-op.

        Raises:
            BadRequestError: Blocking yourself
            NotFoundError: Unknown user
        """
        if user_id == viewer_id:
            raise BadRequestError("Cannot block yourself")

        if not await self.user_repo.exists(user_id):
            raise NotFoundError("User not found")

        if await self.blacklist_repo.get_edge(viewer_id, user_id) is None:
            await self.blacklist_repo.create(blocker_id=viewer_id, blocked_id=user_id)

        removed = await self.friendship_repo.delete_for_pair(viewer_id, user_id)
        await self.db.commit()

        logger.info("User %s blocked %s (friendship rows removed: %d)", viewer_id, user_id, removed)
        return True

    async def unblock_user(self, viewer_id: str, user_id: str) -> bool:
        if not await self.blacklist_repo.delete_edge(viewer_id, user_id):
            raise NotFoundError("Block record not found")

        await self.db.commit()
        return True

    async def get_blacklist(self, viewer_id: str) -> List[Dict[str, Any]]:
        entries: List[Blacklist] = await self.blacklist_repo.get_blocked_by(viewer_id)
        return [
            {
                "id": entry.id,
                "blocked_id": entry.blocked_id,
                "created_at": entry.created_at,
                "user": user_to_dict(entry.blocked),
            }
            for entry in entries
        ]
