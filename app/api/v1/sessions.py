"""
Session management API routes.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.schemas.auth import SessionResponse
from app.schemas.common import BooleanResult
from app.services.auth_service import AuthService, CurrentUser

router = APIRouter()


@router.get("", response_model=List[SessionResponse], summary="My active sessions")
async def get_sessions(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AuthService(db).list_sessions(current_user)


@router.delete(
    "/{session_id}",
    response_model=BooleanResult,
    summary="Revoke one of my other sessions"
)
async def revoke_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return BooleanResult(data=await AuthService(db).revoke_session(current_user, session_id))


@router.delete(
    "",
    response_model=BooleanResult,
    summary="Revoke all my other sessions"
)
async def revoke_all_sessions(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await AuthService(db).revoke_all_sessions(current_user)
    return BooleanResult(data=True)
