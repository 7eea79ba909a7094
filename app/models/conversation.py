"""
Conversation and ConversationParticipant models.

Handles both one-to-one conversations and group chats.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Enum as SQLEnum, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, UUIDMixin, TimestampMixin
from app.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.message import Message


class ConversationType(str, enum.Enum):
    """Enum for conversation types."""
    ONE_TO_ONE = "ONE_TO_ONE"
    GROUP = "GROUP"


class ParticipantRole(str, enum.Enum):
    """Enum for participant roles. OWNER only exists in groups."""
    OWNER = "OWNER"
    MEMBER = "MEMBER"


def make_direct_key(user_a: str, user_b: str) -> str:
    """Canonical key of a one-to-one conversation, independent of who started it."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Conversation(Base, UUIDMixin, TimestampMixin):
    """
    Conversation model for one-to-one chats and groups.

    Group permission flags default to: anyone may invite, only the owner may
    kick, anyone may edit.
    """

    __tablename__ = "conversations"

    type: Mapped[ConversationType] = mapped_column(
        SQLEnum(ConversationType, name="conversation_type", native_enum=False),
        default=ConversationType.ONE_TO_ONE,
        nullable=False,
        doc="ONE_TO_ONE or GROUP"
    )

    # Group metadata (null for one-to-one)
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Group name (null for one-to-one)"
    )

    # One row per unordered pair for ONE_TO_ONE; NULL (never conflicting) for groups
    direct_key: Mapped[str | None] = mapped_column(
        String(80),
        unique=True,
        nullable=True,
        doc="Canonical 'low:high' participant pair of a one-to-one conversation"
    )

    pinned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the conversation was pinned (null when not pinned)"
    )

    # Group settings
    only_owner_can_invite: Mapped[bool] = mapped_column(default=False, nullable=False)
    only_owner_can_kick: Mapped[bool] = mapped_column(default=True, nullable=False)
    only_owner_can_edit: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Relationships
    participants: Mapped[List["ConversationParticipant"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin"
    )

    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select"
    )

    @property
    def is_group(self) -> bool:
        return self.type == ConversationType.GROUP

    def participant(self, user_id: str) -> "ConversationParticipant | None":
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, type={self.type}, name={self.name})>"


class ConversationParticipant(Base, UUIDMixin):
    """
    ConversationParticipant model - association between users and conversations.

    Tracks role and read position.
    """

    __tablename__ = "conversation_participants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participants_member"),
    )

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        doc="Conversation ID"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User ID"
    )

    role: Mapped[ParticipantRole] = mapped_column(
        SQLEnum(ParticipantRole, name="participant_role", native_enum=False),
        default=ParticipantRole.MEMBER,
        nullable=False,
        doc="OWNER or MEMBER"
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
        doc="When the user joined the conversation"
    )

    last_read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Last time the user read messages in this conversation"
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship(back_populates="participations", lazy="selectin")

    @property
    def is_owner(self) -> bool:
        return self.role == ParticipantRole.OWNER

    def __repr__(self) -> str:
        return (
            f"<ConversationParticipant(conversation_id={self.conversation_id}, "
            f"user_id={self.user_id}, role={self.role})>"
        )


# Indexes for performance
Index("idx_conversation_participants_user", ConversationParticipant.user_id)
Index("idx_conversations_type", Conversation.type)

# At most one OWNER per conversation
Index(
    "uq_conversation_participants_owner",
    ConversationParticipant.conversation_id,
    unique=True,
    postgresql_where=text("role = 'OWNER'"),
    sqlite_where=text("role = 'OWNER'"),
)
