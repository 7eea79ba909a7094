"""
Conversation repository for database operations.
Handles conversations, participants, and related queries.
"""
from datetime import datetime
from typing import Optional, List, Tuple, Dict

from sqlalchemy import select, func, and_, or_, desc, delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.conversation import (
    Conversation,
    ConversationParticipant,
    ConversationType,
    ParticipantRole,
    make_direct_key,
)
from app.models.message import Message
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversation database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    async def get_with_relations(self, conversation_id: str) -> Optional[Conversation]:
        """
        Get conversation with participants (and their users) loaded.

        Rows already in the identity map are refreshed, so a conversation read
        after a membership change in the same session reflects that change.

        Args:
            conversation_id: Conversation ID

        Returns:
            Conversation with relations or None
        """
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .options(
                selectinload(Conversation.participants).selectinload(ConversationParticipant.user)
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_user_conversations(
        self,
        user_id: str
    ) -> List[Tuple[Conversation, Optional[datetime]]]:
        """
        Get every conversation the user participates in, with the timestamp of
        its latest message (None when it has no messages).

        Ordering is left to the caller.

        Args:
            user_id: User ID

        Returns:
            List of (conversation, last_message_at)
        """
        participant_subquery = (
            select(ConversationParticipant.conversation_id)
            .where(ConversationParticipant.user_id == user_id)
        )

        last_message_subquery = (
            select(
                Message.conversation_id.label("conversation_id"),
                func.max(Message.created_at).label("last_message_at"),
            )
            .group_by(Message.conversation_id)
            .subquery()
        )

        query = (
            select(Conversation, last_message_subquery.c.last_message_at)
            .outerjoin(
                last_message_subquery,
                last_message_subquery.c.conversation_id == Conversation.id,
            )
            .where(Conversation.id.in_(participant_subquery))
            .options(
                selectinload(Conversation.participants).selectinload(ConversationParticipant.user)
            )
            .execution_options(populate_existing=True)
        )

        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def find_direct_conversation(
        self, user1_id: str, user2_id: str
    ) -> Optional[Conversation]:
        """
        Find the one-to-one conversation between two users.

        Args:
            user1_id: First user ID
            user2_id: Second user ID

        Returns:
            ONE_TO_ONE conversation or None
        """
        result = await self.db.execute(
            select(Conversation)
            .where(
                and_(
                    Conversation.type == ConversationType.ONE_TO_ONE,
                    Conversation.direct_key == make_direct_key(user1_id, user2_id),
                )
            )
            .options(
                selectinload(Conversation.participants).selectinload(ConversationParticipant.user)
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_direct(self, user1_id: str, user2_id: str) -> Conversation:
        """
        Create a one-to-one conversation with both users as MEMBER.

        Raises IntegrityError on flush when another request already created
        the conversation for this pair.
        """
        conversation = Conversation(
            type=ConversationType.ONE_TO_ONE,
            direct_key=make_direct_key(user1_id, user2_id),
        )
        self.db.add(conversation)
        await self.db.flush()

        for user_id in (user1_id, user2_id):
            self.db.add(ConversationParticipant(
                conversation_id=conversation.id,
                user_id=user_id,
                role=ParticipantRole.MEMBER,
            ))

        await self.db.flush()
        return await self.get_with_relations(conversation.id)

    async def create_group(
        self,
        owner_id: str,
        member_ids: List[str],
        name: str
    ) -> Conversation:
        """
        Create a group with the owner and its members in a single transaction.

        Args:
            owner_id: Creator, stored as OWNER
            member_ids: Other participants, stored as MEMBER
            name: Group name

        Returns:
            Created conversation with participants
        """
        conversation = Conversation(type=ConversationType.GROUP, name=name)
        self.db.add(conversation)
        await self.db.flush()

        self.db.add(ConversationParticipant(
            conversation_id=conversation.id,
            user_id=owner_id,
            role=ParticipantRole.OWNER,
            last_read_at=utc_now(),
        ))

        for member_id in member_ids:
            if member_id != owner_id:
                self.db.add(ConversationParticipant(
                    conversation_id=conversation.id,
                    user_id=member_id,
                    role=ParticipantRole.MEMBER,
                ))

        await self.db.flush()
        return await self.get_with_relations(conversation.id)

    async def set_pinned_at(
        self, conversation_id: str, pinned_at: Optional[datetime]
    ) -> None:
        await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(pinned_at=pinned_at)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()

    async def dissolve(self, conversation_id: str) -> None:
        """
        Delete a conversation together with its messages and participants.

        Children are deleted explicitly so the result does not depend on the
        database enforcing ON DELETE CASCADE.
        """
        await self.db.execute(
            delete(Message).where(Message.conversation_id == conversation_id)
        )
        await self.db.execute(
            delete(ConversationParticipant)
            .where(ConversationParticipant.conversation_id == conversation_id)
        )
        await self.db.execute(
            delete(Conversation).where(Conversation.id == conversation_id)
        )
        await self.db.flush()

    async def get_last_message(self, conversation_id: str) -> Optional[Message]:
        """
        Get the last message in a conversation.

        Args:
            conversation_id: Conversation ID

        Returns:
            Last message or None
        """
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_last_messages(self, conversation_ids: List[str]) -> Dict[str, Message]:
        """Latest message per conversation for a batch of conversations."""
        if not conversation_ids:
            return {}

        ranked = (
            select(
                Message.id.label("id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(desc(Message.created_at), desc(Message.id)),
                )
                .label("rank"),
            )
            .where(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )

        result = await self.db.execute(
            select(Message).join(ranked, ranked.c.id == Message.id).where(ranked.c.rank == 1)
        )
        return {message.conversation_id: message for message in result.scalars().all()}


class ConversationParticipantRepository:
    """Repository for conversation participant operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_participant(
        self, conversation_id: str, user_id: str
    ) -> Optional[ConversationParticipant]:
        """
        Get a participant row.

        Args:
            conversation_id: Conversation ID
            user_id: User ID

        Returns:
            ConversationParticipant or None
        """
        result = await self.db.execute(
            select(ConversationParticipant)
            .where(
                and_(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id
                )
            )
            .options(selectinload(ConversationParticipant.user))
        )
        return result.scalar_one_or_none()

    async def is_participant(self, conversation_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(func.count())
            .select_from(ConversationParticipant)
            .where(
                and_(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id
                )
            )
        )
        return result.scalar() > 0

    async def add_participant(
        self,
        conversation_id: str,
        user_id: str,
        role: ParticipantRole = ParticipantRole.MEMBER
    ) -> ConversationParticipant:
        participant = ConversationParticipant(
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,
        )
        self.db.add(participant)
        await self.db.flush()
        await self.db.refresh(participant)
        return participant

    async def remove_participant(self, conversation_id: str, user_id: str) -> bool:
        """
        Remove a participant from a conversation.

        Args:
            conversation_id: Conversation ID
            user_id: User ID to remove

        Returns:
            True if removed, False if not found
        """
        result = await self.db.execute(
            delete(ConversationParticipant)
            .where(
                and_(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id
                )
            )
        )
        await self.db.flush()
        return result.rowcount > 0

    async def transfer_ownership(
        self, conversation_id: str, owner_id: str, successor_id: str
    ) -> None:
        """
        Remove the current owner and promote the successor.

        The owner row goes first so at no point are there two OWNER rows
        for the conversation.
        """
        await self.remove_participant(conversation_id, owner_id)
        await self.db.execute(
            update(ConversationParticipant)
            .where(
                and_(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == successor_id
                )
            )
            .values(role=ParticipantRole.OWNER)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()

    async def update_last_read(
        self, conversation_id: str, user_id: str, read_at: Optional[datetime] = None
    ) -> Optional[ConversationParticipant]:
        """
        Update last_read_at timestamp.

        Args:
            conversation_id: Conversation ID
            user_id: User ID
            read_at: Timestamp to store (defaults to now)

        Returns:
            Updated participant or None
        """
        participant = await self.get_participant(conversation_id, user_id)
        if not participant:
            return None

        participant.last_read_at = read_at or utc_now()
        await self.db.flush()
        await self.db.refresh(participant)
        return participant

    async def get_unread_count(
        self, conversation_id: str, user_id: str, last_read_at: Optional[datetime]
    ) -> int:
        """
        Count messages from other senders newer than last_read_at.

        Every foreign message counts as unread when last_read_at is None.
        """
        query = select(func.count()).select_from(Message).where(
            and_(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
            )
        )

        if last_read_at is not None:
            query = query.where(Message.created_at > last_read_at)

        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_unread_counts(self, conversation_ids: List[str], user_id: str) -> Dict[str, int]:
        """
        Unread counts for a batch of the user's conversations.

        Conversations with nothing unread are absent from the result.
        """
        if not conversation_ids:
            return {}

        result = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                )
            )
            .where(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                or_(
                    ConversationParticipant.last_read_at.is_(None),
                    Message.created_at > ConversationParticipant.last_read_at,
                )
            )
            .group_by(Message.conversation_id)
        )
        return {conversation_id: count for conversation_id, count in result.all()}
