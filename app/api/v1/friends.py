"""
Friendship API routes.
Provides endpoints for friend requests and friend lists.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.schemas.common import BooleanResult
from app.schemas.friendship import FriendRequestCreate, FriendshipResponse
from app.services.auth_service import CurrentUser
from app.services.friendship_service import FriendshipService

router = APIRouter()


@router.get("", response_model=List[FriendshipResponse], summary="List friends")
async def get_friends(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).get_friends(current_user.id)


@router.get(
    "/requests/pending",
    response_model=List[FriendshipResponse],
    summary="Friend requests waiting for my answer"
)
async def get_pending_requests(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).get_pending_requests(current_user.id)


@router.get(
    "/requests/sent",
    response_model=List[FriendshipResponse],
    summary="Friend requests I sent"
)
async def get_sent_requests(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).get_sent_requests(current_user.id)


@router.post(
    "/requests",
    response_model=FriendshipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a friend request"
)
async def send_friend_request(
    data: FriendRequestCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).send_friend_request(current_user.id, data.user_id)


@router.post(
    "/requests/{request_id}/accept",
    response_model=FriendshipResponse,
    summary="Accept a friend request"
)
async def accept_friend_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).accept_friend_request(current_user.id, request_id)


@router.post(
    "/requests/{request_id}/reject",
    response_model=FriendshipResponse,
    summary="Reject a friend request"
)
async def reject_friend_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await FriendshipService(db).reject_friend_request(current_user.id, request_id)


@router.delete(
    "/requests/{request_id}",
    response_model=BooleanResult,
    summary="Cancel a friend request I sent"
)
async def cancel_friend_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return BooleanResult(data=await FriendshipService(db).cancel_friend_request(current_user.id, request_id))


@router.delete(
    "/{user_id}",
    response_model=BooleanResult,
    summary="Remove a friend"
)
async def remove_friend(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return BooleanResult(data=await FriendshipService(db).remove_friend(current_user.id, user_id))
