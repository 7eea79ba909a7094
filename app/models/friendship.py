"""
Friendship and Blacklist models.

A friendship is stored once per unordered pair with user_id_1 < user_id_2.
Blacklist entries are directed (blocker -> blocked).
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Enum as SQLEnum,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin
from app.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from app.models.user import User


class FriendshipStatus(str, enum.Enum):
    """Enum for friendship states."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Friendship(Base, UUIDMixin, TimestampMixin):
    """
    Friendship model - one row per unordered user pair.

    The row doubles as the friend request: it is created PENDING by
    requested_by and flips to ACCEPTED or REJECTED when the other party answers.
    """

    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user_id_1", "user_id_2", name="uq_friendships_pair"),
        CheckConstraint("user_id_1 < user_id_2", name="ck_friendships_ordered_pair"),
    )

    user_id_1: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="Lower user ID of the pair"
    )

    user_id_2: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="Higher user ID of the pair"
    )

    status: Mapped[FriendshipStatus] = mapped_column(
        SQLEnum(FriendshipStatus, name="friendship_status", native_enum=False),
        default=FriendshipStatus.PENDING,
        nullable=False
    )

    requested_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User who sent the request"
    )

    user1: Mapped["User"] = relationship(foreign_keys=[user_id_1], lazy="selectin")
    user2: Mapped["User"] = relationship(foreign_keys=[user_id_2], lazy="selectin")

    def other_user_id(self, user_id: str) -> str:
        """Return the ID of the party that is not user_id."""
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1

    def other_user(self, user_id: str) -> "User":
        return self.user2 if self.user_id_1 == user_id else self.user1

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_id_1, self.user_id_2)

    def __repr__(self) -> str:
        return (
            f"<Friendship(user_id_1={self.user_id_1}, user_id_2={self.user_id_2}, "
            f"status={self.status})>"
        )


class Blacklist(Base, UUIDMixin):
    """Blacklist model - blocker_id has blocked blocked_id."""

    __tablename__ = "blacklist"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_blacklist_pair"),
    )

    blocker_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User who is blocking"
    )

    blocked_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User who is being blocked"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False
    )

    blocked: Mapped["User"] = relationship(foreign_keys=[blocked_id], lazy="selectin")

    def __repr__(self) -> str:
        return f"<Blacklist(blocker_id={self.blocker_id}, blocked_id={self.blocked_id})>"


# Indexes for performance
Index("idx_friendships_user1_status", Friendship.user_id_1, Friendship.status)
Index("idx_friendships_user2_status", Friendship.user_id_2, Friendship.status)
Index("idx_blacklist_blocker", Blacklist.blocker_id)
