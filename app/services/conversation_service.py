"""
Conversation service containing business logic for conversation operations.
Handles one-to-one and group conversations, membership rules, and listing order.
"""
import logging
from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple, Set, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.cache import get_online_user_ids
from app.core.errors import BadRequestError, ForbiddenError, InternalServerError, NotFoundError
from app.core.websocket import connection_manager
from app.models.conversation import Conversation, ConversationParticipant
from app.models.message import Message
from app.repositories.conversation_repo import (
    ConversationRepository,
    ConversationParticipantRepository
)
from app.repositories.friendship_repo import FriendshipRepository
from app.services.message_service import message_to_dict
from app.services.user_service import user_to_dict
from app.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def sort_conversations(
    rows: Iterable[Tuple[Conversation, Optional[datetime]]]
) -> List[Tuple[Conversation, Optional[datetime]]]:
    """
    Order (conversation, last_message_at) rows for the conversation list.

    1. Pinned conversations, most recently pinned first.
    2. Unpinned conversations with messages, most recent message first.
    3. Unpinned conversations without messages, newest first.
    """
    def key(row: Tuple[Conversation, Optional[datetime]]):
        conversation, last_message_at = row
        if conversation.pinned_at is not None:
            return (0, -ensure_utc(conversation.pinned_at).timestamp())
        if last_message_at is not None:
            return (1, -ensure_utc(last_message_at).timestamp())
        return (2, -ensure_utc(conversation.created_at).timestamp())

    return sorted(rows, key=key)


class ConversationService:
    """Service for conversation operations with business logic."""

    def __init__(self, db: AsyncSession):
        """
        Initialize conversation service.

        Args:
            db: Database session
        """
        self.db = db
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ConversationParticipantRepository(db)
        self.friendship_repo = FriendshipRepository(db)
        self.ws_manager = connection_manager

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _require_participant(conversation: Conversation, user_id: str) -> ConversationParticipant:
        participant = conversation.participant(user_id)
        if participant is None:
            raise ForbiddenError("Not a participant of this conversation")
        return participant

    async def _get_group(self, conversation_id: str) -> Conversation:
        """Load a GROUP conversation; missing and non-group both read as not found."""
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None or not conversation.is_group:
            raise NotFoundError("Group conversation not found")
        return conversation

    async def _broadcast_participant_changed(
        self, conversation_id: str, user_id: str, action: str, actor_id: str
    ) -> None:
        try:
            await self.ws_manager.broadcast_participant_changed(
                conversation_id, user_id, action, actor_id=actor_id
            )
        except Exception:
            logger.exception("Failed to broadcast participant change in %s", conversation_id)

    def _serialize(
        self,
        conversation: Conversation,
        viewer_id: str,
        friend_ids: Set[str],
        online_ids: Set[str],
        last_message: Optional[Message] = None,
        unread_count: int = 0
    ) -> Dict[str, Any]:
        """
        Shape a conversation for ConversationResponse, as seen by viewer_id.

        Each participant carries is_friend: an ACCEPTED friendship with the
        viewer. The viewer's own entry is never a friend.
        """
        participants = sorted(
            conversation.participants,
            key=lambda p: (not p.is_owner, ensure_utc(p.joined_at)),
        )

        settings_data = None
        if conversation.is_group:
            settings_data = {
                "only_owner_can_invite": conversation.only_owner_can_invite,
                "only_owner_can_kick": conversation.only_owner_can_kick,
                "only_owner_can_edit": conversation.only_owner_can_edit,
            }

        return {
            "id": conversation.id,
            "type": conversation.type,
            "name": conversation.name,
            "pinned_at": conversation.pinned_at,
            "is_pinned": conversation.pinned_at is not None,
            "created_at": conversation.created_at,
            "updated_at": conversation.updated_at,
            "participants": [
                {
                    "id": p.id,
                    "user_id": p.user_id,
                    "role": p.role,
                    "joined_at": p.joined_at,
                    "last_read_at": p.last_read_at,
                    "user": user_to_dict(p.user, online_ids),
                    "is_friend": p.user_id != viewer_id and p.user_id in friend_ids,
                }
                for p in participants
            ],
            "last_message": message_to_dict(last_message, online_ids) if last_message else None,
            "unread_count": unread_count,
            "settings": settings_data,
        }

    async def _build_response(self, conversation: Conversation, viewer_id: str) -> Dict[str, Any]:
        participant_ids = [p.user_id for p in conversation.participants]
        friend_ids = await self.friendship_repo.get_accepted_friend_ids(viewer_id, participant_ids)
        online_ids = await get_online_user_ids(participant_ids)

        last_message = await self.conversation_repo.get_last_message(conversation.id)

        viewer = conversation.participant(viewer_id)
        unread_count = 0
        if viewer is not None:
            unread_count = await self.participant_repo.get_unread_count(
                conversation.id, viewer_id, viewer.last_read_at
            )

        return self._serialize(
            conversation, viewer_id, friend_ids, online_ids, last_message, unread_count
        )

    # ========================================================================
    # Creation
    # ========================================================================

    async def get_or_create_conversation(self, viewer_id: str, target_user_id: str) -> Dict[str, Any]:
        """
        Return the one-to-one conversation with target_user_id, creating it if needed.

        Calling this twice for the same pair (in either direction) always
        yields the same conversation.

        Args:
            viewer_id: Current user
            target_user_id: Other participant

        Returns:
            Conversation dict

        Raises:
            BadRequestError: Target is the viewer
            ForbiddenError: The two users are not friends
        """
        if target_user_id == viewer_id:
            raise BadRequestError("Cannot start a conversation with yourself")

        if not await self.friendship_repo.is_accepted(viewer_id, target_user_id):
            raise ForbiddenError("Must be friends to start a conversation")

        conversation = await self.conversation_repo.find_direct_conversation(viewer_id, target_user_id)
        if conversation is not None:
            return await self._build_response(conversation, viewer_id)

        try:
            conversation = await self.conversation_repo.create_direct(viewer_id, target_user_id)
            await self.db.commit()
            logger.info("Created one-to-one conversation %s for %s and %s",
                        conversation.id, viewer_id, target_user_id)
        except IntegrityError:
            # Lost a race with a concurrent request for the same pair
            await self.db.rollback()
            conversation = await self.conversation_repo.find_direct_conversation(viewer_id, target_user_id)
            if conversation is None:
                raise InternalServerError("Failed to create conversation")

        return await self._build_response(conversation, viewer_id)

    async def create_group_conversation(
        self,
        viewer_id: str,
        name: str,
        user_ids: List[str]
    ) -> Dict[str, Any]:
        """
        Create a group owned by the viewer.

        Args:
            viewer_id: Creator, becomes OWNER
            name: Group name
            user_ids: Members to add (the viewer's friends, excluding the viewer)

        Returns:
            Conversation dict

        Raises:
            BadRequestError: Blank name, no members, or the viewer listed as a member
            ForbiddenError: Any listed user is not a friend of the viewer
        """
        name = (name or "").strip()
        if not name:
            raise BadRequestError("Group name is required")

        member_ids = list(dict.fromkeys(user_ids or []))
        if not member_ids:
            raise BadRequestError("Must invite at least one user to create a group")

        if viewer_id in member_ids:
            raise BadRequestError("Do not include yourself in the member list")

        friend_ids = await self.friendship_repo.get_accepted_friend_ids(viewer_id, member_ids)
        not_friends = [user_id for user_id in member_ids if user_id not in friend_ids]
        if not_friends:
            raise ForbiddenError("You can only add your friends to a group")

        conversation = await self.conversation_repo.create_group(viewer_id, member_ids, name)
        await self.db.commit()

        logger.info("User %s created group %s with %d members", viewer_id, conversation.id, len(member_ids))
        return await self._build_response(conversation, viewer_id)

    # ========================================================================
    # Membership
    # ========================================================================

    async def invite_to_group(
        self,
        actor_id: str,
        conversation_id: str,
        user_id: str
    ) -> Dict[str, Any]:
        """
        Add a friend of the actor to a group.

        Raises:
            NotFoundError: Conversation does not exist
            BadRequestError: Not a group, or the user is already a participant
            ForbiddenError: Actor not a participant, actor not owner while
                only_owner_can_invite is set, or invitee not the actor's friend
        """
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")

        if not conversation.is_group:
            raise BadRequestError("Cannot invite to a non-group conversation")

        actor = self._require_participant(conversation, actor_id)

        if conversation.only_owner_can_invite and not actor.is_owner:
            raise ForbiddenError("Only the group owner can invite members")

        if not await self.friendship_repo.is_accepted(actor_id, user_id):
            raise ForbiddenError("You can only invite your friends to a group")

        if conversation.participant(user_id) is not None:
            raise BadRequestError("User is already a member of this conversation")

        await self.participant_repo.add_participant(conversation_id, user_id)
        await self.db.commit()

        logger.info("User %s invited %s to group %s", actor_id, user_id, conversation_id)
        await self._broadcast_participant_changed(conversation_id, user_id, "joined", actor_id)

        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        return await self._build_response(conversation, actor_id)

    async def remove_from_group(self, actor_id: str, conversation_id: str, user_id: str) -> bool:
        """
        Remove a member from a group.

        Raises:
            NotFoundError: Group missing, or target not a participant
            ForbiddenError: Actor not a participant, actor not owner while
                only_owner_can_kick is set, or target is the owner
        """
        conversation = await self._get_group(conversation_id)
        actor = self._require_participant(conversation, actor_id)

        if conversation.only_owner_can_kick and not actor.is_owner:
            raise ForbiddenError("Only the group owner can remove members")

        target = conversation.participant(user_id)
        if target is None:
            raise NotFoundError("Target user is not a participant")

        if target.is_owner:
            raise ForbiddenError("Cannot remove the group owner")

        await self.participant_repo.remove_participant(conversation_id, user_id)
        await self.db.commit()

        logger.info("User %s removed %s from group %s", actor_id, user_id, conversation_id)
        await self._broadcast_participant_changed(conversation_id, user_id, "removed", actor_id)
        return True

    async def leave_group(
        self,
        actor_id: str,
        conversation_id: str,
        successor_user_id: Optional[str] = None
    ) -> bool:
        """
        Leave a group.

        The last participant leaving dissolves the group (messages included).
        An owner leaving while others remain must hand ownership to
        successor_user_id; the transfer and the departure are one transaction.

        Raises:
            NotFoundError: Group missing
            ForbiddenError: Actor not a participant
            BadRequestError: Owner without a valid successor
        """
        conversation = await self._get_group(conversation_id)
        actor = self._require_participant(conversation, actor_id)

        others = [p for p in conversation.participants if p.user_id != actor_id]

        if not others:
            await self.conversation_repo.dissolve(conversation_id)
            await self.db.commit()
            logger.info("Group %s dissolved after its last participant %s left", conversation_id, actor_id)
            await self._broadcast_participant_changed(conversation_id, actor_id, "dissolved", actor_id)
            return True

        if actor.is_owner:
            if not successor_user_id or successor_user_id == actor_id:
                raise BadRequestError("You must choose a successor before leaving the group")

            if conversation.participant(successor_user_id) is None:
                raise BadRequestError("Successor is not a participant of this group")

            await self.participant_repo.transfer_ownership(conversation_id, actor_id, successor_user_id)
            logger.info("Ownership of group %s passed from %s to %s",
                        conversation_id, actor_id, successor_user_id)
        else:
            await self.participant_repo.remove_participant(conversation_id, actor_id)

        await self.db.commit()

        await self._broadcast_participant_changed(conversation_id, actor_id, "left", actor_id)
        return True

    # ========================================================================
    # Settings & pinning
    # ========================================================================

    async def update_group_settings(
        self,
        actor_id: str,
        conversation_id: str,
        name: Optional[str] = None,
        only_owner_can_invite: Optional[bool] = None,
        only_owner_can_kick: Optional[bool] = None,
        only_owner_can_edit: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Partially update a group's name and permission flags.

        Raises:
            NotFoundError: Conversation does not exist
            BadRequestError: Not a group, or blank name
            ForbiddenError: Actor not a participant, or not owner while
                only_owner_can_edit is set and enforced
        """
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")

        if not conversation.is_group:
            raise BadRequestError("Cannot update settings of a non-group conversation")

        actor = self._require_participant(conversation, actor_id)

        if (
            settings.enforce_only_owner_can_edit
            and conversation.only_owner_can_edit
            and not actor.is_owner
        ):
            raise ForbiddenError("Only the group owner can edit group settings")

        updates: Dict[str, Any] = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise BadRequestError("Group name cannot be empty")
            updates["name"] = name
        if only_owner_can_invite is not None:
            updates["only_owner_can_invite"] = only_owner_can_invite
        if only_owner_can_kick is not None:
            updates["only_owner_can_kick"] = only_owner_can_kick
        if only_owner_can_edit is not None:
            updates["only_owner_can_edit"] = only_owner_can_edit

        if updates:
            await self.conversation_repo.update(conversation_id, **updates)
            await self.db.commit()
            logger.info("User %s updated group %s: %s", actor_id, conversation_id, sorted(updates))

        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        return await self._build_response(conversation, actor_id)

    async def pin_conversation(self, actor_id: str, conversation_id: str) -> bool:
        """Pin a conversation. Re-pinning keeps the original pinned_at."""
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None or conversation.participant(actor_id) is None:
            raise ForbiddenError("Not a participant of this conversation")

        if conversation.pinned_at is None:
            await self.conversation_repo.set_pinned_at(conversation_id, utc_now())
            await self.db.commit()
        return True

    async def unpin_conversation(self, actor_id: str, conversation_id: str) -> bool:
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None or conversation.participant(actor_id) is None:
            raise ForbiddenError("Not a participant of this conversation")

        if conversation.pinned_at is not None:
            await self.conversation_repo.set_pinned_at(conversation_id, None)
            await self.db.commit()
        return True

    # ========================================================================
    # Queries
    # ========================================================================

    async def get_conversation(self, viewer_id: str, conversation_id: str) -> Optional[Dict[str, Any]]:
        """
        Get one conversation as seen by the viewer.

        Returns:
            Conversation dict, or None if it does not exist

        Raises:
            ForbiddenError: Viewer is not a participant
        """
        conversation = await self.conversation_repo.get_with_relations(conversation_id)
        if conversation is None:
            return None

        self._require_participant(conversation, viewer_id)
        return await self._build_response(conversation, viewer_id)

    async def get_user_conversations(self, viewer_id: str) -> List[Dict[str, Any]]:
        """
        Every conversation of the viewer: pinned first, then by latest activity.

        Args:
            viewer_id: Current user

        Returns:
            Ordered list of conversation dicts
        """
        rows = sort_conversations(await self.conversation_repo.get_user_conversations(viewer_id))
        if not rows:
            return []

        conversations = [conversation for conversation, _ in rows]
        participant_ids = list({p.user_id for c in conversations for p in c.participants})

        friend_ids = await self.friendship_repo.get_accepted_friend_ids(viewer_id, participant_ids)
        online_ids = await get_online_user_ids(participant_ids)
        conversation_ids = [c.id for c in conversations]
        last_messages = await self.conversation_repo.get_last_messages(conversation_ids)
        unread_counts = await self.participant_repo.get_unread_counts(conversation_ids, viewer_id)

        results = []
        for conversation in conversations:
            results.append(self._serialize(
                conversation,
                viewer_id,
                friend_ids,
                online_ids,
                last_messages.get(conversation.id),
                unread_counts.get(conversation.id, 0),
            ))

        return results
