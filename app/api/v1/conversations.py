"""
Conversation API routes.
Provides endpoints for one-to-one and group conversations, membership, and pinning.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.schemas.common import BooleanResult
from app.schemas.conversation import (
    DirectConversationCreate,
    GroupConversationCreate,
    ParticipantInvite,
    LeaveGroupRequest,
    GroupSettingsUpdate,
    ConversationResponse
)
from app.services.auth_service import CurrentUser
from app.services.conversation_service import ConversationService

router = APIRouter()


@router.get(
    "",
    response_model=List[ConversationResponse],
    summary="List conversations",
    description="All conversations of the current user, pinned first, then by latest message."
)
async def get_conversations(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return await service.get_user_conversations(current_user.id)


@router.post(
    "/direct",
    response_model=ConversationResponse,
    summary="Get or create a one-to-one conversation",
    description="Returns the existing conversation with a friend, or creates it."
)
async def get_or_create_conversation(
    data: DirectConversationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get or create a one-to-one conversation.

    - **userId**: The other user (must be an accepted friend)
    """
    service = ConversationService(db)
    return await service.get_or_create_conversation(current_user.id, data.user_id)


@router.post(
    "/groups",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a group conversation"
)
async def create_group_conversation(
    data: GroupConversationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a group conversation. The caller becomes its owner.

    - **name**: Group name
    - **userIds**: Friends to add as members (excluding yourself)
    """
    service = ConversationService(db)
    return await service.create_group_conversation(current_user.id, data.name, data.user_ids)


@router.get(
    "/{conversation_id}",
    response_model=Optional[ConversationResponse],
    summary="Get conversation details",
    description="Null when the conversation does not exist."
)
async def get_conversation(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return await service.get_conversation(current_user.id, conversation_id)


@router.post(
    "/{conversation_id}/participants",
    response_model=ConversationResponse,
    summary="Invite a friend to a group"
)
async def invite_to_group(
    conversation_id: str,
    data: ParticipantInvite,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return await service.invite_to_group(current_user.id, conversation_id, data.user_id)


@router.delete(
    "/{conversation_id}/participants/{user_id}",
    response_model=BooleanResult,
    summary="Remove a member from a group"
)
async def remove_from_group(
    conversation_id: str,
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return BooleanResult(data=await service.remove_from_group(current_user.id, conversation_id, user_id))


@router.post(
    "/{conversation_id}/leave",
    response_model=BooleanResult,
    summary="Leave a group",
    description="Owners must name a successor unless they are the last participant."
)
async def leave_group(
    conversation_id: str,
    data: Optional[LeaveGroupRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    successor_user_id = data.successor_user_id if data else None
    return BooleanResult(data=await service.leave_group(current_user.id, conversation_id, successor_user_id))


@router.patch(
    "/{conversation_id}/settings",
    response_model=ConversationResponse,
    summary="Update group name and settings"
)
async def update_group_settings(
    conversation_id: str,
    data: GroupSettingsUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    flags = data.settings
    return await service.update_group_settings(
        current_user.id,
        conversation_id,
        name=data.name,
        only_owner_can_invite=flags.only_owner_can_invite if flags else None,
        only_owner_can_kick=flags.only_owner_can_kick if flags else None,
        only_owner_can_edit=flags.only_owner_can_edit if flags else None,
    )


@router.post(
    "/{conversation_id}/pin",
    response_model=BooleanResult,
    summary="Pin a conversation"
)
async def pin_conversation(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return BooleanResult(data=await service.pin_conversation(current_user.id, conversation_id))


@router.delete(
    "/{conversation_id}/pin",
    response_model=BooleanResult,
    summary="Unpin a conversation"
)
async def unpin_conversation(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ConversationService(db)
    return BooleanResult(data=await service.unpin_conversation(current_user.id, conversation_id))
