"""
Unit tests for FriendshipService.
Tests the friend request lifecycle, friend lists, and blocking.
"""
import pytest
from sqlalchemy import select, func

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.models.friendship import Friendship, FriendshipStatus
from app.services.friendship_service import FriendshipService


class TestFriendRequests:
    """Test sending and answering friend requests."""

    async def test_request_then_accept(self, db_session, alice, bob):
        service = FriendshipService(db_session)

        request = await service.send_friend_request(alice.id, bob.id)
        assert request["status"] == FriendshipStatus.PENDING
        assert request["requested_by"] == alice.id
        assert request["user"]["id"] == bob.id

        pending = await service.get_pending_requests(bob.id)
        assert [r["id"] for r in pending] == [request["id"]]
        sent = await service.get_sent_requests(alice.id)
        assert [r["id"] for r in sent] == [request["id"]]

        accepted = await service.accept_friend_request(bob.id, request["id"])
        assert accepted["status"] == FriendshipStatus.ACCEPTED
        assert accepted["user"]["id"] == alice.id

        friends_of_alice = await service.get_friends(alice.id)
        assert [f["user"]["id"] for f in friends_of_alice] == [bob.id]
        assert await service.get_pending_requests(bob.id) == []

    async def test_pair_is_stored_once_in_canonical_order(self, db_session, alice, bob):
        await FriendshipService(db_session).send_friend_request(bob.id, alice.id)

        rows = (await db_session.execute(select(Friendship))).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id_1 < rows[0].user_id_2

    async def test_duplicate_request_in_either_direction(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        await service.send_friend_request(alice.id, bob.id)

        with pytest.raises(ConflictError):
            await service.send_friend_request(alice.id, bob.id)
        with pytest.raises(ConflictError):
            await service.send_friend_request(bob.id, alice.id)

    async def test_request_to_self(self, db_session, alice):
        with pytest.raises(BadRequestError):
            await FriendshipService(db_session).send_friend_request(alice.id, alice.id)

    async def test_request_to_unknown_user(self, db_session, alice):
        with pytest.raises(NotFoundError):
            await FriendshipService(db_session).send_friend_request(alice.id, "no-such-user")

    async def test_sender_cannot_accept_own_request(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        request = await service.send_friend_request(alice.id, bob.id)

        with pytest.raises(ForbiddenError):
            await service.accept_friend_request(alice.id, request["id"])

    async def test_outsider_cannot_answer(self, db_session, alice, bob, carol):
        service = FriendshipService(db_session)
        request = await service.send_friend_request(alice.id, bob.id)

        with pytest.raises(ForbiddenError):
            await service.reject_friend_request(carol.id, request["id"])

    async def test_answered_request_cannot_be_answered_again(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        request = await service.send_friend_request(alice.id, bob.id)
        rejected = await service.reject_friend_request(bob.id, request["id"])
        assert rejected["status"] == FriendshipStatus.REJECTED

        with pytest.raises(BadRequestError):
            await service.accept_friend_request(bob.id, request["id"])

    async def test_cancel_request(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        request = await service.send_friend_request(alice.id, bob.id)

        with pytest.raises(ForbiddenError):
            await service.cancel_friend_request(bob.id, request["id"])

        assert await service.cancel_friend_request(alice.id, request["id"]) is True
        assert await service.get_sent_requests(alice.id) == []

    async def test_remove_friend(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)
        service = FriendshipService(db_session)

        assert await service.remove_friend(bob.id, alice.id) is True
        assert await service.get_friends(alice.id) == []

        with pytest.raises(NotFoundError):
            await service.remove_friend(alice.id, bob.id)


class TestBlacklist:
    """Test blocking users."""

    async def test_block_removes_friendship(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)
        service = FriendshipService(db_session)

        assert await service.block_user(alice.id, bob.id) is True

        count = await db_session.scalar(select(func.count()).select_from(Friendship))
        assert count == 0
        blacklist = await service.get_blacklist(alice.id)
        assert [entry["blocked_id"] for entry in blacklist] == [bob.id]
        assert blacklist[0]["user"]["id"] == bob.id

    async def test_block_is_idempotent(self, db_session, alice, bob):
        service = FriendshipService(db_session)

        await service.block_user(alice.id, bob.id)
        await service.block_user(alice.id, bob.id)

        assert len(await service.get_blacklist(alice.id)) == 1

    async def test_block_prevents_requests_both_ways(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        await service.block_user(alice.id, bob.id)

        with pytest.raises(ForbiddenError):
            await service.send_friend_request(bob.id, alice.id)
        with pytest.raises(ForbiddenError):
            await service.send_friend_request(alice.id, bob.id)

    async def test_unblock(self, db_session, alice, bob):
        service = FriendshipService(db_session)
        await service.block_user(alice.id, bob.id)

        assert await service.unblock_user(alice.id, bob.id) is True
        assert await service.get_blacklist(alice.id) == []

        request = await service.send_friend_request(bob.id, alice.id)
        assert request["status"] == FriendshipStatus.PENDING

    async def test_unblock_without_block(self, db_session, alice, bob):
        with pytest.raises(NotFoundError):
            await FriendshipService(db_session).unblock_user(alice.id, bob.id)

    async def test_block_self(self, db_session, alice):
        with pytest.raises(BadRequestError):
            await FriendshipService(db_session).block_user(alice.id, alice.id)
