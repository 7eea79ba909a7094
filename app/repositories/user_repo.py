"""
User repository for database operations.
Handles users, OAuth accounts, sessions, and user search.
"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, or_, and_, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, Account, Session
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


class UserRepository(BaseRepository[User]):
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize user repository."""
        super().__init__(User, db)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address.

        Args:
            email: User email

        Returns:
            User instance or None
        """
        result = await self.db.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def upsert_oauth_user(
        self,
        provider: str,
        provider_account_id: str,
        email: str,
        name: Optional[str] = None,
        image: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        id_token: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> User:
        """
        Find or create the user behind an OAuth identity.

        Email is the idempotency key: logging in again (with the same or a
        different provider) never creates a second user. The provider account
        is linked on first sight and its tokens refreshed afterwards.

        Returns:
            User instance (created or existing)
        """
        user = await self.get_by_email(email)
        if user is None:
            user = User(
                email=email,
                name=name,
                image=image,
                email_verified=utc_now(),
            )
            self.db.add(user)
            await self.db.flush()
        else:
            # Fill in profile fields the user has not set yet
            if not user.name and name:
                user.name = name
            if not user.image and image:
                user.image = image

        result = await self.db.execute(
            select(Account).where(
                and_(
                    Account.provider == provider,
                    Account.provider_account_id == provider_account_id,
                )
            )
        )
        account = result.scalar_one_or_none()

        if account is None:
            account = Account(
                user_id=user.id,
                type="oauth",
                provider=provider,
                provider_account_id=provider_account_id,
            )
            self.db.add(account)

        account.access_token = access_token
        account.refresh_token = refresh_token or account.refresh_token
        account.id_token = id_token
        account.scope = scope

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def search_users(
        self,
        query: str,
        exclude_user_id: str,
        limit: int = 20
    ) -> List[User]:
        """
        Case-insensitive search on name and email.

        Args:
            query: Search term
            exclude_user_id: User to leave out (the searcher)
            limit: Maximum results

        Returns:
            Matching users ordered by name
        """
        pattern = f"%{query.strip().lower()}%"
        result = await self.db.execute(
            select(User)
            .where(
                and_(
                    User.id != exclude_user_id,
                    or_(
                        func.lower(User.name).like(pattern),
                        func.lower(User.email).like(pattern),
                    ),
                )
            )
            .order_by(User.name, User.email)
            .limit(limit)
        )
        return list(result.scalars().all())


class SessionRepository(BaseRepository[Session]):
    """Repository for login sessions."""

    def __init__(self, db: AsyncSession):
        super().__init__(Session, db)

    async def get_by_token(self, token: str) -> Optional[Session]:
        result = await self.db.execute(
            select(Session).where(Session.token == token)
        )
        return result.scalar_one_or_none()

    async def get_active_for_user(
        self,
        user_id: str,
        now: Optional[datetime] = None
    ) -> List[Session]:
        """Non-expired sessions of a user, newest first."""
        now = now or utc_now()
        result = await self.db.execute(
            select(Session)
            .where(and_(Session.user_id == user_id, Session.expires_at > now))
            .order_by(Session.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_all_except(self, user_id: str, keep_session_id: str) -> int:
        """Delete every session of user_id except keep_session_id."""
        result = await self.db.execute(
            delete(Session).where(
                and_(Session.user_id == user_id, Session.id != keep_session_id)
            )
        )
        await self.db.flush()
        return result.rowcount
