"""
Dependency injection for FastAPI routes.
Provides reusable dependencies for authentication, database sessions, etc.
"""
from typing import Optional

from fastapi import Cookie, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.errors import UnauthenticatedError
from app.core.security import get_request_token
from app.services.auth_service import AuthService, CurrentUser


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session_cookie: Optional[str] = Cookie(None, alias=settings.session_cookie_name),
    db: AsyncSession = Depends(get_db)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user.

    The session token is read from `Authorization: Bearer <token>` or, for
    browser clients, from the session cookie. It must belong to a session
    that has not expired.

    Args:
        authorization: Authorization header
        session_cookie: Session cookie value
        db: Database session

    Returns:
        CurrentUser (user and session)

    Raises:
        UnauthenticatedError: Token missing, unknown or expired

    Example:
        ```python
        @router.get("/protected")
        async def protected_route(current_user: CurrentUser = Depends(get_current_user)):
            return {"id": current_user.id}
        ```
    """
    token = get_request_token(authorization, session_cookie)

    current = await AuthService(db).resolve_session(token)
    if current is None:
        raise UnauthenticatedError("Invalid or expired session")

    return current


def get_message_pagination_params(
    cursor: Optional[str] = Query(None, description="Load messages older than this cursor"),
    before: Optional[str] = Query(None, description="Load messages older than this cursor; takes precedence over cursor"),
    after: Optional[str] = Query(None, description="Load messages newer than this cursor"),
    limit: Optional[int] = Query(None, description="Page size (default 20, clamped to 1..50)")
) -> dict:
    """
    Common pagination parameters for message history.

    Example:
        ```python
        @router.get("/{conversation_id}/messages")
        async def get_messages(pagination: dict = Depends(get_message_pagination_params)):
            ...
        ```
    """
    return {
        "cursor": before or cursor,
        "after": after,
        "limit": limit,
    }
