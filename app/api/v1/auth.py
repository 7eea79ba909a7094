"""
Authentication API endpoints.
Provides Google login and logout.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.dependencies import get_current_user
from app.schemas.auth import GoogleAuthRequest, AuthPayload
from app.schemas.common import BooleanResult
from app.services.auth_service import AuthService, CurrentUser

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/google", response_model=AuthPayload)
@limiter.limit("10/minute")
async def authenticate_with_google(
    request: Request,
    response: Response,
    data: GoogleAuthRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Log in with a Google authorization code.

    **Flow:**
    1. Exchange the code with Google for tokens
    2. Fetch the Google profile
    3. Find or create the user by email and link the Google account
    4. Open a session and return its token (also set as an HttpOnly cookie)

    **Request Body:**
    ```json
    {
        "code": "4/0AfJohXn..."
    }
    ```

    **Errors:**
    - 400: Missing code
    - 401: Google rejected the code
    """
    service = AuthService(db)
    payload = await service.authenticate_with_google(
        code=data.code,
        redirect_uri=data.redirect_uri,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    _set_session_cookie(response, payload["session_token"])
    return payload


@router.post("/logout", response_model=BooleanResult)
async def logout(
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """End the current session."""
    result = await AuthService(db).logout(current_user)
    response.delete_cookie(settings.session_cookie_name)
    return BooleanResult(data=result)
