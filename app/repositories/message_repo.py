"""
Message repository for database operations.
Handles creation and cursor-paginated reads of messages.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select, and_, or_, desc, asc
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.message import Message, MessageType, MessageStatusType
from app.repositories.base import BaseRepository
from app.utils.cursor import MessageCursor


class MessageRepository(BaseRepository[Message]):
    """Repository for message database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize message repository."""
        super().__init__(Message, db)

    async def get_with_sender(self, message_id: str) -> Optional[Message]:
        result = await self.db.execute(
            select(Message)
            .options(selectinload(Message.sender))
            .where(Message.id == message_id)
        )
        return result.scalar_one_or_none()

    async def create_text_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str
    ) -> Message:
        """
        Append a TEXT message with status SENT.

        Args:
            conversation_id: Conversation ID
            sender_id: Sender user ID
            content: Message text

        Returns:
            Created message with sender loaded
        """
        message = await self.create(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_type=MessageType.TEXT,
            status=MessageStatusType.SENT,
        )
        return await self.get_with_sender(message.id)

    async def get_conversation_messages(
        self,
        conversation_id: str,
        limit: int = 20,
        before: Optional[MessageCursor] = None,
        after: Optional[MessageCursor] = None
    ) -> Tuple[List[Message], bool]:
        """
        Get one page of a conversation's messages.

        Without `after` the page walks backwards in time: newest first, and
        with `before` only messages strictly older than the cursor. With
        `after` the page walks forwards: messages strictly newer than the
        cursor, oldest first.

        Ties on created_at are broken by id, so pages never overlap.

        Args:
            conversation_id: Conversation ID
            limit: Page size
            before: Cursor to page back from
            after: Cursor to page forward from

        Returns:
            Tuple of (messages, has_more)
        """
        query = (
            select(Message)
            .options(selectinload(Message.sender))
            .where(Message.conversation_id == conversation_id)
        )

        if after is not None:
            query = query.where(
                or_(
                    Message.created_at > after.created_at,
                    and_(
                        Message.created_at == after.created_at,
                        Message.id > after.message_id
                    )
                )
            ).order_by(asc(Message.created_at), asc(Message.id))
        else:
            if before is not None:
                query = query.where(
                    or_(
                        Message.created_at < before.created_at,
                        and_(
                            Message.created_at == before.created_at,
                            Message.id < before.message_id
                        )
                    )
                )
            query = query.order_by(desc(Message.created_at), desc(Message.id))

        # One extra row tells whether another page exists
        result = await self.db.execute(query.limit(limit + 1))
        messages = list(result.scalars().all())

        has_more = len(messages) > limit
        if has_more:
            messages = messages[:limit]

        return messages, has_more
