"""
Unit tests for ConversationService.
Tests one-to-one creation, group membership rules, ownership, and listing order.
"""
from datetime import timedelta

import pytest
from sqlalchemy import select, func

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.models.conversation import (
    Conversation,
    ConversationParticipant,
    ConversationType,
    ParticipantRole,
)
from app.models.friendship import FriendshipStatus
from app.models.message import Message
from app.services.conversation_service import ConversationService, sort_conversations
from app.utils.datetime_utils import utc_now


def roles_of(conversation_data):
    return {p["user_id"]: p["role"] for p in conversation_data["participants"]}


class TestDirectConversations:
    """Test get-or-create of one-to-one conversations."""

    async def test_get_or_create_is_idempotent(self, db_session, alice, bob, make_friends):
        """Repeated calls, from either side, return the same conversation."""
        await make_friends(alice, bob)
        service = ConversationService(db_session)

        first = await service.get_or_create_conversation(alice.id, bob.id)
        second = await service.get_or_create_conversation(alice.id, bob.id)
        reverse = await service.get_or_create_conversation(bob.id, alice.id)

        assert first["id"] == second["id"] == reverse["id"]
        assert first["type"] == ConversationType.ONE_TO_ONE
        assert first["settings"] is None

        count = await db_session.scalar(
            select(func.count()).select_from(Conversation).where(
                Conversation.type == ConversationType.ONE_TO_ONE
            )
        )
        assert count == 1

    async def test_concurrent_create_returns_existing(self, db_session, alice, bob, make_friends, mocker):
        """A request that misses the lookup and loses the insert race still gets the stored conversation."""
        await make_friends(alice, bob)
        alice_id, bob_id = alice.id, bob.id
        service = ConversationService(db_session)
        winner = await service.get_or_create_conversation(alice_id, bob_id)

        real_lookup = service.conversation_repo.find_direct_conversation
        stale_results = [None]

        async def miss_once(user1_id, user2_id):
            if stale_results:
                return stale_results.pop()
            return await real_lookup(user1_id, user2_id)

        lookup = mocker.patch.object(
            service.conversation_repo, "find_direct_conversation", side_effect=miss_once
        )

        result = await service.get_or_create_conversation(bob_id, alice_id)

        assert result["id"] == winner["id"]
        assert lookup.await_count == 2

        count = await db_session.scalar(
            select(func.count()).select_from(Conversation).where(
                Conversation.type == ConversationType.ONE_TO_ONE
            )
        )
        assert count == 1

    async def test_both_participants_are_members(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)
        conversation = await ConversationService(db_session).get_or_create_conversation(alice.id, bob.id)

        assert roles_of(conversation) == {
            alice.id: ParticipantRole.MEMBER,
            bob.id: ParticipantRole.MEMBER,
        }

    async def test_requires_accepted_friendship(self, db_session, alice, bob):
        service = ConversationService(db_session)

        with pytest.raises(ForbiddenError):
            await service.get_or_create_conversation(alice.id, bob.id)

    async def test_pending_request_is_not_enough(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob, status=FriendshipStatus.PENDING)

        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).get_or_create_conversation(alice.id, bob.id)

    async def test_cannot_start_with_yourself(self, db_session, alice):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).get_or_create_conversation(alice.id, alice.id)


class TestGroupCreation:
    """Test group creation rules."""

    async def test_creator_is_sole_owner(self, db_session, alice, bob, carol, make_friends):
        await make_friends(alice, bob)
        await make_friends(alice, carol)

        group = await ConversationService(db_session).create_group_conversation(
            alice.id, "  Hiking  ", [bob.id, carol.id]
        )

        assert group["type"] == ConversationType.GROUP
        assert group["name"] == "Hiking"
        assert roles_of(group) == {
            alice.id: ParticipantRole.OWNER,
            bob.id: ParticipantRole.MEMBER,
            carol.id: ParticipantRole.MEMBER,
        }
        # Owner is listed first
        assert group["participants"][0]["user_id"] == alice.id
        assert group["settings"] == {
            "only_owner_can_invite": False,
            "only_owner_can_kick": True,
            "only_owner_can_edit": False,
        }

    async def test_duplicate_member_ids_are_collapsed(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)

        group = await ConversationService(db_session).create_group_conversation(
            alice.id, "Pair", [bob.id, bob.id]
        )

        assert len(group["participants"]) == 2

    async def test_non_friend_member_is_rejected(self, db_session, alice, bob, carol, make_friends):
        await make_friends(alice, bob)

        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).create_group_conversation(
                alice.id, "Group", [bob.id, carol.id]
            )

        count = await db_session.scalar(select(func.count()).select_from(Conversation))
        assert count == 0

    @pytest.mark.parametrize("name", ["", "   "])
    async def test_blank_name_is_rejected(self, db_session, alice, bob, make_friends, name):
        await make_friends(alice, bob)

        with pytest.raises(BadRequestError):
            await ConversationService(db_session).create_group_conversation(alice.id, name, [bob.id])

    async def test_empty_member_list_is_rejected(self, db_session, alice):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).create_group_conversation(alice.id, "Solo", [])

    async def test_creator_in_member_list_is_rejected(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)

        with pytest.raises(BadRequestError):
            await ConversationService(db_session).create_group_conversation(
                alice.id, "Group", [alice.id, bob.id]
            )


class TestGroupMembership:
    """Test invite, remove, and leave."""

    async def test_invite_friend(
        self, db_session, alice, dave, make_friends, group_with_members, mock_websocket_manager
    ):
        await make_friends(alice, dave)
        service = ConversationService(db_session)

        updated = await service.invite_to_group(alice.id, group_with_members["id"], dave.id)

        assert roles_of(updated)[dave.id] == ParticipantRole.MEMBER
        mock_websocket_manager.broadcast_participant_changed.assert_awaited_once_with(
            group_with_members["id"], dave.id, "joined", actor_id=alice.id
        )

    async def test_invite_requires_inviter_friendship(self, db_session, bob, dave, group_with_members):
        """Bob is a member but not dave's friend."""
        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).invite_to_group(bob.id, group_with_members["id"], dave.id)

    async def test_invite_existing_member(self, db_session, alice, bob, group_with_members):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).invite_to_group(alice.id, group_with_members["id"], bob.id)

    async def test_invite_honours_only_owner_can_invite(
        self, db_session, alice, bob, dave, make_friends, group_with_members
    ):
        await make_friends(bob, dave)
        service = ConversationService(db_session)
        await service.update_group_settings(
            alice.id, group_with_members["id"], only_owner_can_invite=True
        )

        with pytest.raises(ForbiddenError):
            await service.invite_to_group(bob.id, group_with_members["id"], dave.id)

    async def test_invite_to_direct_conversation(self, db_session, alice, bob, carol, make_friends):
        await make_friends(alice, bob)
        await make_friends(alice, carol)
        service = ConversationService(db_session)
        direct = await service.get_or_create_conversation(alice.id, bob.id)

        with pytest.raises(BadRequestError):
            await service.invite_to_group(alice.id, direct["id"], carol.id)

    async def test_invite_to_missing_conversation(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)

        with pytest.raises(NotFoundError):
            await ConversationService(db_session).invite_to_group(alice.id, "missing", bob.id)

    async def test_owner_removes_member(self, db_session, alice, bob, group_with_members):
        service = ConversationService(db_session)

        assert await service.remove_from_group(alice.id, group_with_members["id"], bob.id) is True

        conversation = await service.get_conversation(alice.id, group_with_members["id"])
        assert bob.id not in roles_of(conversation)

    async def test_removed_member_can_be_reinvited(self, db_session, alice, bob, group_with_members):
        service = ConversationService(db_session)
        await service.remove_from_group(alice.id, group_with_members["id"], bob.id)

        updated = await service.invite_to_group(alice.id, group_with_members["id"], bob.id)

        assert roles_of(updated)[bob.id] == ParticipantRole.MEMBER

    async def test_member_cannot_kick_by_default(self, db_session, bob, carol, group_with_members):
        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).remove_from_group(bob.id, group_with_members["id"], carol.id)

    async def test_owner_cannot_be_removed(self, db_session, alice, bob, group_with_members):
        service = ConversationService(db_session)
        await service.update_group_settings(alice.id, group_with_members["id"], only_owner_can_kick=False)

        with pytest.raises(ForbiddenError):
            await service.remove_from_group(bob.id, group_with_members["id"], alice.id)

    async def test_remove_non_participant(self, db_session, alice, dave, group_with_members):
        with pytest.raises(NotFoundError):
            await ConversationService(db_session).remove_from_group(alice.id, group_with_members["id"], dave.id)

    async def test_member_leaves(
        self, db_session, alice, bob, carol, group_with_members, mock_websocket_manager
    ):
        service = ConversationService(db_session)

        assert await service.leave_group(bob.id, group_with_members["id"]) is True

        conversation = await service.get_conversation(alice.id, group_with_members["id"])
        assert roles_of(conversation) == {
            alice.id: ParticipantRole.OWNER,
            carol.id: ParticipantRole.MEMBER,
        }
        mock_websocket_manager.broadcast_participant_changed.assert_awaited_with(
            group_with_members["id"], bob.id, "left", actor_id=bob.id
        )

    async def test_owner_leave_requires_successor(self, db_session, alice, group_with_members):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).leave_group(alice.id, group_with_members["id"])

    async def test_owner_leave_with_outsider_successor(self, db_session, alice, dave, group_with_members):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).leave_group(alice.id, group_with_members["id"], dave.id)

    async def test_ownership_transfer(self, db_session, alice, bob, carol, group_with_members):
        """Owner leaves naming a successor: exactly one OWNER remains."""
        service = ConversationService(db_session)

        await service.leave_group(alice.id, group_with_members["id"], bob.id)

        conversation = await service.get_conversation(bob.id, group_with_members["id"])
        assert roles_of(conversation) == {
            bob.id: ParticipantRole.OWNER,
            carol.id: ParticipantRole.MEMBER,
        }

        owners = await db_session.scalar(
            select(func.count()).select_from(ConversationParticipant).where(
                ConversationParticipant.conversation_id == group_with_members["id"],
                ConversationParticipant.role == ParticipantRole.OWNER,
            )
        )
        assert owners == 1

    async def test_last_participant_leaving_dissolves_group(
        self, db_session, alice, bob, make_friends, mock_websocket_manager
    ):
        await make_friends(alice, bob)
        service = ConversationService(db_session)
        group = await service.create_group_conversation(alice.id, "Short lived", [bob.id])
        db_session.add(Message(conversation_id=group["id"], sender_id=alice.id, content="hi"))
        await db_session.commit()

        await service.leave_group(bob.id, group["id"])
        await service.leave_group(alice.id, group["id"])

        remaining_conversations = await db_session.scalar(
            select(func.count()).select_from(Conversation).where(Conversation.id == group["id"])
        )
        assert remaining_conversations == 0
        remaining_participants = await db_session.scalar(
            select(func.count()).select_from(ConversationParticipant).where(
                ConversationParticipant.conversation_id == group["id"]
            )
        )
        remaining_messages = await db_session.scalar(
            select(func.count()).select_from(Message).where(Message.conversation_id == group["id"])
        )
        assert remaining_participants == 0
        assert remaining_messages == 0
        mock_websocket_manager.broadcast_participant_changed.assert_awaited_with(
            group["id"], alice.id, "dissolved", actor_id=alice.id
        )

    async def test_leave_direct_conversation_is_not_found(self, db_session, alice, bob, make_friends):
        await make_friends(alice, bob)
        service = ConversationService(db_session)
        direct = await service.get_or_create_conversation(alice.id, bob.id)

        with pytest.raises(NotFoundError):
            await service.leave_group(alice.id, direct["id"])

    async def test_broadcast_failure_does_not_fail_operation(
        self, db_session, bob, group_with_members, mock_websocket_manager
    ):
        mock_websocket_manager.broadcast_participant_changed.side_effect = RuntimeError("socket down")

        assert await ConversationService(db_session).leave_group(bob.id, group_with_members["id"]) is True


class TestGroupSettings:
    """Test group settings updates."""

    async def test_partial_update(self, db_session, alice, group_with_members):
        updated = await ConversationService(db_session).update_group_settings(
            alice.id, group_with_members["id"], name="Renamed", only_owner_can_edit=True
        )

        assert updated["name"] == "Renamed"
        assert updated["settings"] == {
            "only_owner_can_invite": False,
            "only_owner_can_kick": True,
            "only_owner_can_edit": True,
        }

    async def test_only_owner_can_edit(self, db_session, alice, bob, group_with_members):
        service = ConversationService(db_session)
        await service.update_group_settings(alice.id, group_with_members["id"], only_owner_can_edit=True)

        with pytest.raises(ForbiddenError):
            await service.update_group_settings(bob.id, group_with_members["id"], name="Mine now")

    async def test_member_can_edit_when_allowed(self, db_session, bob, group_with_members):
        updated = await ConversationService(db_session).update_group_settings(
            bob.id, group_with_members["id"], name="Bob's pick"
        )
        assert updated["name"] == "Bob's pick"

    async def test_blank_name(self, db_session, alice, group_with_members):
        with pytest.raises(BadRequestError):
            await ConversationService(db_session).update_group_settings(
                alice.id, group_with_members["id"], name="  "
            )

    async def test_non_participant(self, db_session, dave, group_with_members):
        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).update_group_settings(
                dave.id, group_with_members["id"], name="Intruder"
            )


class TestConversationQueries:
    """Test pinning, listing, and per-viewer fields."""

    async def test_get_conversation_not_participant(self, db_session, dave, group_with_members):
        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).get_conversation(dave.id, group_with_members["id"])

    async def test_get_missing_conversation_returns_none(self, db_session, alice):
        assert await ConversationService(db_session).get_conversation(alice.id, "missing") is None

    async def test_is_friend_is_per_viewer(self, db_session, alice, bob, carol, group_with_members):
        """Bob is friends with alice only; the viewer's own entry is never a friend."""
        service = ConversationService(db_session)

        as_bob = await service.get_conversation(bob.id, group_with_members["id"])
        flags = {p["user_id"]: p["is_friend"] for p in as_bob["participants"]}
        assert flags == {alice.id: True, bob.id: False, carol.id: False}

        as_alice = await service.get_conversation(alice.id, group_with_members["id"])
        flags = {p["user_id"]: p["is_friend"] for p in as_alice["participants"]}
        assert flags == {alice.id: False, bob.id: True, carol.id: True}

    async def test_pin_and_unpin(self, db_session, alice, group_with_members):
        service = ConversationService(db_session)

        await service.pin_conversation(alice.id, group_with_members["id"])
        pinned = await service.get_conversation(alice.id, group_with_members["id"])
        assert pinned["is_pinned"] is True

        await service.pin_conversation(alice.id, group_with_members["id"])
        repinned = await service.get_conversation(alice.id, group_with_members["id"])
        assert repinned["pinned_at"] == pinned["pinned_at"]

        await service.unpin_conversation(alice.id, group_with_members["id"])
        unpinned = await service.get_conversation(alice.id, group_with_members["id"])
        assert unpinned["is_pinned"] is False
        assert unpinned["pinned_at"] is None

    async def test_pin_requires_participant(self, db_session, dave, group_with_members):
        with pytest.raises(ForbiddenError):
            await ConversationService(db_session).pin_conversation(dave.id, group_with_members["id"])

    async def test_listing_order(self, db_session, alice, bob, carol, dave, make_friends):
        """
        a: older message, b: newer message, c: pinned. Expected order: c, b, a.
        """
        for friend in (bob, carol, dave):
            await make_friends(alice, friend)
        service = ConversationService(db_session)

        a = await service.get_or_create_conversation(alice.id, bob.id)
        b = await service.get_or_create_conversation(alice.id, carol.id)
        c = await service.get_or_create_conversation(alice.id, dave.id)

        now = utc_now()
        db_session.add_all([
            Message(conversation_id=a["id"], sender_id=bob.id, content="old", created_at=now - timedelta(hours=2)),
            Message(conversation_id=b["id"], sender_id=carol.id, content="new", created_at=now - timedelta(hours=1)),
        ])
        await db_session.commit()
        await service.pin_conversation(alice.id, c["id"])

        conversations = await service.get_user_conversations(alice.id)

        assert [conv["id"] for conv in conversations] == [c["id"], b["id"], a["id"]]
        assert conversations[1]["last_message"]["content"] == "new"
        assert conversations[1]["unread_count"] == 1
        assert conversations[0]["last_message"] is None

    async def test_listing_unread_counts_in_one_query(self, db_session, alice, bob, carol, make_friends, mocker):
        from app.services.message_service import MessageService

        await make_friends(alice, bob)
        await make_friends(alice, carol)
        service = ConversationService(db_session)
        with_bob = await service.get_or_create_conversation(alice.id, bob.id)
        with_carol = await service.get_or_create_conversation(alice.id, carol.id)

        now = utc_now()
        db_session.add_all([
            Message(conversation_id=with_bob["id"], sender_id=bob.id, content="read", created_at=now - timedelta(minutes=5)),
            Message(conversation_id=with_carol["id"], sender_id=carol.id, content="one", created_at=now - timedelta(minutes=4)),
            Message(conversation_id=with_carol["id"], sender_id=carol.id, content="two", created_at=now - timedelta(minutes=3)),
            Message(conversation_id=with_carol["id"], sender_id=alice.id, content="mine", created_at=now - timedelta(minutes=2)),
        ])
        await db_session.commit()
        await MessageService(db_session).mark_messages_as_read(alice.id, with_bob["id"])
        db_session.add(Message(
            conversation_id=with_bob["id"], sender_id=bob.id, content="unread", created_at=utc_now() + timedelta(minutes=1)
        ))
        await db_session.commit()

        single = mocker.spy(service.participant_repo, "get_unread_count")
        conversations = await service.get_user_conversations(alice.id)

        unread = {conv["id"]: conv["unread_count"] for conv in conversations}
        assert unread == {with_bob["id"]: 1, with_carol["id"]: 2}
        assert single.call_count == 0

    async def test_listing_is_empty_for_new_user(self, db_session, dave):
        assert await ConversationService(db_session).get_user_conversations(dave.id) == []


class TestSortConversations:
    """Test the pure listing order."""

    def _conversation(self, created_at, pinned_at=None):
        return Conversation(type=ConversationType.GROUP, name="x", created_at=created_at, pinned_at=pinned_at)

    def test_pinned_then_activity_then_created(self):
        now = utc_now()
        pinned_old = self._conversation(now - timedelta(days=9), pinned_at=now - timedelta(days=2))
        pinned_new = self._conversation(now - timedelta(days=9), pinned_at=now - timedelta(days=1))
        active = self._conversation(now - timedelta(days=9))
        quiet_new = self._conversation(now - timedelta(days=1))
        quiet_old = self._conversation(now - timedelta(days=3))

        rows = [
            (quiet_old, None),
            (active, now - timedelta(days=5)),
            (pinned_old, None),
            (quiet_new, None),
            (pinned_new, now - timedelta(days=8)),
        ]

        ordered = [conversation for conversation, _ in sort_conversations(rows)]

        assert ordered == [pinned_new, pinned_old, active, quiet_new, quiet_old]
