"""
Authentication service.
Handles Google login, session verification, logout, and session management.
"""
import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError, UnauthenticatedError
from app.core.oauth_client import GoogleOAuthClient, OAuthProviderError, google_oauth_client
from app.core.security import generate_session_token, session_expiry
from app.models.user import User, Session
from app.repositories.user_repo import UserRepository, SessionRepository
from app.services.user_service import user_to_dict
from app.utils.datetime_utils import utc_now, ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """The authenticated caller of a request: the user and the session they used."""
    user: User
    session: Session

    @property
    def id(self) -> str:
        return self.user.id


class AuthService:
    """Service for login sessions."""

    def __init__(self, db: AsyncSession, oauth_client: Optional[GoogleOAuthClient] = None):
        self.db = db
        self.user_repo = UserRepository(db)
        self.session_repo = SessionRepository(db)
        self.oauth_client = oauth_client or google_oauth_client

    async def resolve_session(self, token: str) -> Optional[CurrentUser]:
        """
        Look up a session token.

        Returns:
            CurrentUser, or None when the token is unknown or the session expired
        """
        if not token:
            return None

        session = await self.session_repo.get_by_token(token)
        if session is None:
            return None

        if ensure_utc(session.expires_at) <= utc_now():
            logger.debug("Session %s expired", session.id)
            return None

        return CurrentUser(user=session.user, session=session)

    async def authenticate_with_google(
        self,
        code: str,
        redirect_uri: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Log in with a Google authorization code.

        The user is matched by email (created on first login), the Google
        account is linked to it, and a new session is opened.

        Args:
            code: Authorization code
            redirect_uri: Redirect URI the code was issued for
            user_agent: Client user agent, stored on the session
            ip_address: Client address, stored on the session

        Returns:
            Dict with user, success, message and session_token

        Raises:
            BadRequestError: Code is blank
            UnauthenticatedError: Google rejected the code
        """
        if not code or not code.strip():
            raise BadRequestError("Authorization code is required")

        try:
            profile = await self.oauth_client.fetch_profile(code.strip(), redirect_uri)
        except OAuthProviderError as e:
            logger.warning("Google login failed: %s", e)
            raise UnauthenticatedError("Google authentication failed")

        user = await self.user_repo.upsert_oauth_user(
            provider=self.oauth_client.provider,
            provider_account_id=profile.provider_account_id,
            email=profile.email,
            name=profile.name,
            image=profile.image,
            access_token=profile.access_token,
            refresh_token=profile.refresh_token,
            id_token=profile.id_token,
            scope=profile.scope,
        )

        token = generate_session_token()
        await self.session_repo.create(
            token=token,
            user_id=user.id,
            expires_at=session_expiry(),
            user_agent=user_agent[:500] if user_agent else None,
            ip_address=ip_address,
        )
        await self.db.commit()

        logger.info("User %s logged in with Google", user.id)

        return {
            "user": user_to_dict(user),
            "success": True,
            "message": "Authenticated",
            "session_token": token,
        }

    async def logout(self, current: CurrentUser) -> bool:
        await self.session_repo.delete(current.session.id)
        await self.db.commit()
        logger.info("User %s logged out (session %s)", current.id, current.session.id)
        return True

    async def list_sessions(self, current: CurrentUser) -> List[Dict[str, Any]]:
        """Active sessions of the caller, newest first, flagging the one in use."""
        sessions = await self.session_repo.get_active_for_user(current.id)
        return [
            {
                "id": s.id,
                "created_at": s.created_at,
                "expires_at": s.expires_at,
                "user_agent": s.user_agent,
                "ip_address": s.ip_address,
                "is_current": s.id == current.session.id,
            }
            for s in sessions
        ]

    async def revoke_session(self, current: CurrentUser, session_id: str) -> bool:
        """
        Revoke one of the caller's other sessions.

        Raises:
            ForbiddenError: Target is the session making the request (use logout)
            NotFoundError: Session missing or owned by someone else
        """
        if session_id == current.session.id:
            raise ForbiddenError("Cannot revoke the current session, log out instead")

        session = await self.session_repo.get(session_id)
        if session is None or session.user_id != current.id:
            raise NotFoundError("Session not found")

        await self.session_repo.delete(session_id)
        await self.db.commit()
        return True

    async def revoke_all_sessions(self, current: CurrentUser) -> int:
        """Revoke every session of the caller except the current one."""
        count = await self.session_repo.delete_all_except(current.id, current.session.id)
        await self.db.commit()
        logger.info("User %s revoked %d other sessions", current.id, count)
        return count
