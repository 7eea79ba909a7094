"""
User API routes.
Provides the current user's profile and user search.
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.schemas.user import UserResponse, UserSearchResult
from app.services.auth_service import CurrentUser
from app.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Profile of the authenticated user."""
    return await UserService(db).get_me(current_user.user)


@router.get("/search", response_model=List[UserSearchResult])
async def search_users(
    q: str = Query("", description="Name or email fragment (at least 2 characters)"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Search users by name or email.

    Returns at most 20 users, never the caller. Queries shorter than two
    characters return an empty list.
    """
    return await UserService(db).search_users(current_user.id, q)
