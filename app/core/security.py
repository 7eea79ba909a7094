"""
Security utilities for authentication.
Handles opaque session tokens and where clients send them.
"""
import secrets
from datetime import datetime, timedelta
from typing import Optional

from app.config import settings
from app.core.errors import UnauthenticatedError
from app.utils.datetime_utils import utc_now


def generate_session_token() -> str:
    """
    Create a new opaque session token.

    The token carries no data; it is only a lookup key for a Session row.
    """
    return secrets.token_urlsafe(32)


def session_expiry(now: Optional[datetime] = None) -> datetime:
    """Expiry timestamp for a session created at `now`."""
    return (now or utc_now()) + timedelta(days=settings.session_ttl_days)


def extract_token_from_header(authorization: str) -> str:
    """
    Extract the token from an Authorization header.

    Args:
        authorization: Authorization header value (e.g., "Bearer <token>")

    Returns:
        Extracted token

    Raises:
        UnauthenticatedError: If header format is invalid

    Example:
        ```python
        token = extract_token_from_header("Bearer 3q2-7wQ...")
        ```
    """
    if not authorization:
        raise UnauthenticatedError("Missing authorization header")

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthenticatedError("Invalid authorization header format")

    return parts[1]


def get_request_token(
    authorization: Optional[str],
    session_cookie: Optional[str]
) -> str:
    """
    Pick the session token from the Authorization header, falling back to the cookie.

    Raises:
        UnauthenticatedError: If neither carries a token
    """
    if authorization:
        return extract_token_from_header(authorization)
    if session_cookie:
        return session_cookie
    raise UnauthenticatedError("Not authenticated")
