"""
User, Account and Session models.

Users are created on their first OAuth login (upsert by email). Accounts link
a user to an OAuth provider identity; sessions carry the opaque token every
authenticated request is looked up by.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin
from app.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from app.models.conversation import ConversationParticipant


class User(Base, UUIDMixin, TimestampMixin):
    """User model."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Email address, the idempotency key for OAuth upserts"
    )

    email_verified: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the email was verified (OAuth users are verified on creation)"
    )

    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Display name"
    )

    image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        doc="Avatar URL"
    )

    status_message: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Short free-text status"
    )

    # Relationships
    accounts: Mapped[List["Account"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select"
    )

    sessions: Mapped[List["Session"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select"
    )

    participations: Mapped[List["ConversationParticipant"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Account(Base, UUIDMixin):
    """OAuth provider identity linked to a user."""

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("provider", "provider_account_id", name="uq_accounts_provider_account"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type: Mapped[str] = mapped_column(String(50), default="oauth", nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)

    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    id_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope: Mapped[str | None] = mapped_column(String(500), nullable=True)

    user: Mapped["User"] = relationship(back_populates="accounts")

    def __repr__(self) -> str:
        return f"<Account(provider={self.provider}, user_id={self.user_id})>"


class Session(Base, UUIDMixin):
    """Login session; invalid once expires_at is in the past."""

    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Opaque session token"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False
    )

    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped["User"] = relationship(back_populates="sessions", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, user_id={self.user_id}, expires_at={self.expires_at})>"


Index("idx_sessions_user", Session.user_id)
