"""
Blacklist API routes.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.schemas.common import BooleanResult
from app.schemas.friendship import BlacklistEntryResponse
from app.services.auth_service import CurrentUser
from app.services.friendship_service import FriendshipService

router = APIRouter()


@router.get("", response_model=List[BlacklistEntryResponse], summary="Users I have blocked")
async def get_blacklist(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).get_blacklist(current_user.id)


@router.post(
    "/{user_id}",
    response_model=BooleanResult,
    summary="Block a user",
    description="Also removes any friendship or pending request with the user."
)
async def block_user(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return BooleanResult(data=await FriendshipService(db).block_user(current_user.id, user_id))


@router.delete("/{user_id}", response_model=BooleanResult, summary="Unblock a user")
async def unblock_user(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return BooleanResult(data=await FriendshipService(db).unblock_user(current_user.id, user_id))
