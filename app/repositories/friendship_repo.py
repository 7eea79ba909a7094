"""
Friendship and blacklist repositories.

Every friendship lookup goes through normalize_friendship_ids so that the
(user_id_1 < user_id_2) storage order is honored regardless of who asks.
"""
from typing import Optional, List, Tuple, Set

from sqlalchemy import select, and_, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.friendship import Friendship, FriendshipStatus, Blacklist
from app.repositories.base import BaseRepository


def normalize_friendship_ids(user_a: str, user_b: str) -> Tuple[str, str]:
    """Return the pair as (lower, higher) - the canonical friendship key."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class FriendshipRepository(BaseRepository[Friendship]):
    """Repository for friendship rows (requests and accepted friendships)."""

    def __init__(self, db: AsyncSession):
        super().__init__(Friendship, db)

    async def get_for_pair(self, user_a: str, user_b: str) -> Optional[Friendship]:
        user_id_1, user_id_2 = normalize_friendship_ids(user_a, user_b)
        result = await self.db.execute(
            select(Friendship).where(
                and_(
                    Friendship.user_id_1 == user_id_1,
                    Friendship.user_id_2 == user_id_2,
                )
            )
        )
        return result.scalar_one_or_none()

    async def is_accepted(self, user_a: str, user_b: str) -> bool:
        """True iff the pair has an ACCEPTED friendship."""
        if user_a == user_b:
            return False
        friendship = await self.get_for_pair(user_a, user_b)
        return friendship is not None and friendship.status == FriendshipStatus.ACCEPTED

    async def create_request(self, requester_id: str, target_id: str) -> Friendship:
        user_id_1, user_id_2 = normalize_friendship_ids(requester_id, target_id)
        return await self.create(
            user_id_1=user_id_1,
            user_id_2=user_id_2,
            status=FriendshipStatus.PENDING,
            requested_by=requester_id,
        )

    async def delete_for_pair(self, user_a: str, user_b: str) -> int:
        user_id_1, user_id_2 = normalize_friendship_ids(user_a, user_b)
        result = await self.db.execute(
            delete(Friendship).where(
                and_(
                    Friendship.user_id_1 == user_id_1,
                    Friendship.user_id_2 == user_id_2,
                )
            )
        )
        await self.db.flush()
        return result.rowcount

    async def get_accepted_for_user(self, user_id: str) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship)
            .where(
                and_(
                    Friendship.status == FriendshipStatus.ACCEPTED,
                    or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id),
                )
            )
            .order_by(Friendship.updated_at.desc(), Friendship.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending_received(self, user_id: str) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship)
            .where(
                and_(
                    Friendship.status == FriendshipStatus.PENDING,
                    Friendship.requested_by != user_id,
                    or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id),
                )
            )
            .order_by(Friendship.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending_sent(self, user_id: str) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship)
            .where(
                and_(
                    Friendship.status == FriendshipStatus.PENDING,
                    Friendship.requested_by == user_id,
                )
            )
            .order_by(Friendship.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_accepted_friend_ids(self, user_id: str, candidate_ids: List[str]) -> Set[str]:
        """
        Subset of candidate_ids that are ACCEPTED friends of user_id.

        One query for a whole participant list instead of one per participant.
        """
        candidates = [cid for cid in candidate_ids if cid != user_id]
        if not candidates:
            return set()

        result = await self.db.execute(
            select(Friendship.user_id_1, Friendship.user_id_2).where(
                and_(
                    Friendship.status == FriendshipStatus.ACCEPTED,
                    or_(
                        and_(Friendship.user_id_1 == user_id, Friendship.user_id_2.in_(candidates)),
                        and_(Friendship.user_id_2 == user_id, Friendship.user_id_1.in_(candidates)),
                    ),
                )
            )
        )
        return {
            user_id_2 if user_id_1 == user_id else user_id_1
            for user_id_1, user_id_2 in result.all()
        }


class BlacklistRepository(BaseRepository[Blacklist]):
    """Repository for directed block edges."""

    def __init__(self, db: AsyncSession):
        super().__init__(Blacklist, db)

    async def get_edge(self, blocker_id: str, blocked_id: str) -> Optional[Blacklist]:
        result = await self.db.execute(
            select(Blacklist).where(
                and_(Blacklist.blocker_id == blocker_id, Blacklist.blocked_id == blocked_id)
            )
        )
        return result.scalar_one_or_none()

    async def is_blocked_either_way(self, user_a: str, user_b: str) -> bool:
        result = await self.db.execute(
            select(Blacklist.id).where(
                or_(
                    and_(Blacklist.blocker_id == user_a, Blacklist.blocked_id == user_b),
                    and_(Blacklist.blocker_id == user_b, Blacklist.blocked_id == user_a),
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_blocked_by(self, blocker_id: str) -> List[Blacklist]:
        result = await self.db.execute(
            select(Blacklist)
            .where(Blacklist.blocker_id == blocker_id)
            .order_by(Blacklist.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_edge(self, blocker_id: str, blocked_id: str) -> bool:
        result = await self.db.execute(
            delete(Blacklist).where(
                and_(Blacklist.blocker_id == blocker_id, Blacklist.blocked_id == blocked_id)
            )
        )
        await self.db.flush()
        return result.rowcount > 0
