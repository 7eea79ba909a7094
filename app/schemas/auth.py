"""
Authentication and session schemas.
"""
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.user import UserResponse


class GoogleAuthRequest(CamelModel):
    """Authorization code returned by Google's consent screen."""

    code: str
    redirect_uri: Optional[str] = Field(None, description="Overrides the configured redirect URI")


class AuthPayload(CamelModel):
    """Result of a successful login."""

    user: UserResponse
    success: bool = True
    message: str = "Authenticated"
    session_token: str


class SessionResponse(CamelModel):
    """An active login session."""

    id: str
    created_at: UTCDateTime
    expires_at: UTCDateTime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    is_current: bool = False
