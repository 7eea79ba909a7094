"""
Message service containing business logic for message operations.
Handles sending, cursor pagination, read markers, and real-time broadcasting.
"""
import logging
from typing import Optional, Dict, Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.cache import get_online_user_ids
from app.core.errors import BadRequestError, ForbiddenError
from app.core.websocket import connection_manager
from app.models.message import Message
from app.repositories.conversation_repo import ConversationParticipantRepository
from app.repositories.message_repo import MessageRepository
from app.schemas.message import MessageResponse
from app.services.user_service import user_to_dict
from app.utils.cursor import InvalidCursorError, MessageCursor, make_message_cursor, parse_message_cursor

logger = logging.getLogger(__name__)


def message_to_dict(message: Message, online_ids: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Fields of a message, shaped for MessageResponse."""
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "message_type": message.message_type,
        "image_url": message.image_url,
        "status": message.status,
        "created_at": message.created_at,
        "sender": user_to_dict(message.sender, online_ids) if message.sender else None,
    }


def clamp_limit(limit: Optional[int]) -> int:
    """Page size: default when absent, otherwise forced into [1, messages_max_limit]."""
    if limit is None:
        return settings.messages_default_limit
    return max(1, min(limit, settings.messages_max_limit))


class MessageService:
    """Service for message operations with business logic."""

    def __init__(self, db: AsyncSession):
        """
        Initialize message service.

        Args:
            db: Database session
        """
        self.db = db
        self.message_repo = MessageRepository(db)
        self.participant_repo = ConversationParticipantRepository(db)
        self.ws_manager = connection_manager

    async def _require_participant(self, conversation_id: str, user_id: str) -> None:
        if not await self.participant_repo.is_participant(conversation_id, user_id):
            raise ForbiddenError("Not a participant of this conversation")

    @staticmethod
    def _parse_cursor(value: Optional[str]) -> Optional[MessageCursor]:
        if not value:
            return None
        try:
            return parse_message_cursor(value)
        except InvalidCursorError:
            raise BadRequestError("Invalid cursor")

    async def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str
    ) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            sender_id: Sender user ID
            conversation_id: Target conversation
            content: Message text

        Returns:
            Created message dict

        Raises:
            ForbiddenError: Sender is not a participant
            BadRequestError: Content is blank
        """
        await self._require_participant(conversation_id, sender_id)

        if not content or not content.strip():
            raise BadRequestError("Message content cannot be empty")

        message = await self.message_repo.create_text_message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
        )
        await self.db.commit()

        message_data = message_to_dict(message)

        try:
            payload = MessageResponse.model_validate(message_data).model_dump(mode="json", by_alias=True)
            await self.ws_manager.broadcast_new_message(conversation_id, payload)
        except Exception:
            logger.exception("Failed to broadcast message %s", message.id)

        return message_data

    async def get_messages(
        self,
        user_id: str,
        conversation_id: str,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        after: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get one page of messages.

        Pages walk backwards from the newest message (or from `cursor`).
        With `after` they walk forwards from that cursor instead.

        Args:
            user_id: Requesting user
            conversation_id: Conversation ID
            cursor: Load messages older than this cursor
            limit: Page size (default 20, clamped to [1, 50])
            after: Load messages newer than this cursor

        Returns:
            Dict with messages, next_cursor, prev_cursor and has_more

        Raises:
            ForbiddenError: User is not a participant
            BadRequestError: Malformed cursor
        """
        await self._require_participant(conversation_id, user_id)

        page_size = clamp_limit(limit)
        before_cursor = self._parse_cursor(cursor)
        after_cursor = self._parse_cursor(after)

        messages, has_more = await self.message_repo.get_conversation_messages(
            conversation_id,
            limit=page_size,
            before=before_cursor if after_cursor is None else None,
            after=after_cursor,
        )

        if after_cursor is not None:
            # Forward pages are oldest-first; only the newest row can continue them
            next_cursor = None
            prev_cursor = None
            if messages and has_more:
                newest = messages[-1]
                prev_cursor = make_message_cursor(newest.created_at, newest.id)
        else:
            next_cursor = None
            if messages and has_more:
                oldest = messages[-1]
                next_cursor = make_message_cursor(oldest.created_at, oldest.id)

            prev_cursor = None
            if messages:
                newest = messages[0]
                prev_cursor = make_message_cursor(newest.created_at, newest.id)

        online_ids = await get_online_user_ids(m.sender_id for m in messages)

        return {
            "messages": [message_to_dict(m, online_ids) for m in messages],
            "next_cursor": next_cursor,
            "prev_cursor": prev_cursor,
            "has_more": has_more,
        }

    async def mark_messages_as_read(self, user_id: str, conversation_id: str) -> bool:
        """Move the user's read marker to now."""
        participant = await self.participant_repo.update_last_read(conversation_id, user_id)
        if participant is None:
            raise ForbiddenError("Not a participant of this conversation")

        await self.db.commit()
        return True
