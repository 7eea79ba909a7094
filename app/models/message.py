"""
Message model.

Messages are append-only: there is no edit or delete path.
"""
import enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, UUIDMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.conversation import Conversation


class MessageType(str, enum.Enum):
    """Enum for message types."""
    TEXT = "TEXT"
    IMAGE = "IMAGE"


class MessageStatusType(str, enum.Enum):
    """Enum for message delivery status."""
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"


class Message(Base, UUIDMixin, TimestampMixin):
    """Message model."""

    __tablename__ = "messages"

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        doc="Conversation this message belongs to"
    )

    sender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User who sent the message"
    )

    content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Message text (null for image-only messages)"
    )

    message_type: Mapped[MessageType] = mapped_column(
        SQLEnum(MessageType, name="message_type", native_enum=False),
        default=MessageType.TEXT,
        nullable=False
    )

    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[MessageStatusType] = mapped_column(
        SQLEnum(MessageStatusType, name="message_status_type", native_enum=False),
        default=MessageStatusType.SENT,
        nullable=False
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")
    sender: Mapped["User"] = relationship(foreign_keys=[sender_id], lazy="selectin")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation_id={self.conversation_id}, sender_id={self.sender_id})>"


# Pagination walks (conversation_id, created_at DESC, id DESC)
Index("idx_messages_conversation_created", Message.conversation_id, Message.created_at, Message.id)
Index("idx_messages_sender", Message.sender_id)
