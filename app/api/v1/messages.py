"""
Message API routes.
Provides endpoints for sending, paging through, and reading messages of a conversation.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limit import limiter
from app.dependencies import get_current_user, get_message_pagination_params
from app.schemas.common import BooleanResult
from app.schemas.message import MessageCreate, MessageResponse, MessagePage
from app.services.auth_service import CurrentUser
from app.services.message_service import MessageService

router = APIRouter()


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    description="Send a text message. The caller must be a participant of the conversation."
)
@limiter.limit("30/minute")
async def send_message(
    request: Request,
    conversation_id: str,
    message_data: MessageCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Send a new message to a conversation.

    - **content**: Message text (must not be blank)
    """
    service = MessageService(db)
    return await service.send_message(
        sender_id=current_user.id,
        conversation_id=conversation_id,
        content=message_data.content,
    )


@router.get(
    "/{conversation_id}/messages",
    response_model=MessagePage,
    summary="Get conversation messages",
    description="Cursor-paginated message history, newest first."
)
async def get_messages(
    conversation_id: str,
    pagination: dict = Depends(get_message_pagination_params),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get one page of messages.

    - **before** (or **cursor**): Return messages older than this cursor; **before** wins when both are sent
    - **after**: Return messages newer than this cursor, oldest first
    - **limit**: Page size (default 20, clamped to 1..50)

    Pass the returned `nextCursor` as `cursor` to load the next page; it is
    null once the oldest message has been returned.
    """
    service = MessageService(db)
    return await service.get_messages(
        user_id=current_user.id,
        conversation_id=conversation_id,
        **pagination,
    )


@router.post(
    "/{conversation_id}/read",
    response_model=BooleanResult,
    summary="Mark messages as read"
)
async def mark_messages_as_read(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return BooleanResult(data=await service.mark_messages_as_read(current_user.id, conversation_id))
