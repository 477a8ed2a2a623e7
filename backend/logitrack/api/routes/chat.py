"""Chat routes - conversations and message history"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from logitrack.config import settings
from logitrack.core.database import get_db
from logitrack.schemas.chat import ConversationCreate, ConversationResponse, MessageCreate, MessageResponse
from logitrack.schemas.response import APIResponse, PaginatedResponse, Pagination
from logitrack.services.chat_service import chat_service
from logitrack.api.deps import get_current_user, get_chat_hub
from logitrack.models.user import User

router = APIRouter()


@router.get("/conversations", response_model=APIResponse)
def get_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Conversations of the current user, most recent activity first"""
    conversations = chat_service.list_conversations(db, current_user.id)
    return APIResponse(
        message="Conversations retrieved successfully",
        data=[ConversationResponse.from_conversation(c) for c in conversations],
    )


@router.post("/conversations", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def create_conversation(
    data: ConversationCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a conversation, or return the existing direct one

    Returns 200 instead of 201 when the direct conversation already existed.
    """
    conversation, created = chat_service.get_or_create_conversation(db, current_user, data)
    if not created:
        response.status_code = status.HTTP_200_OK
    return APIResponse(
        message="Conversation created successfully" if created else "Conversation already exists",
        data=ConversationResponse.from_conversation(conversation),
    )


@router.get("/messages/{conversation_id}", response_model=PaginatedResponse)
def get_messages(
    conversation_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.CHAT_PAGE_SIZE, ge=1, le=settings.CHAT_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Paginated message history; participants only"""
    messages, total = chat_service.list_messages(db, conversation_id, current_user.id, page, limit)
    return PaginatedResponse(
        message="Messages retrieved successfully",
        data=[MessageResponse.from_message(m) for m in messages],
        pagination=Pagination(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit),
    )


@router.post("/messages", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hub=Depends(get_chat_hub),
):
    """Send a message over HTTP; live participants receive it as ``new_message``"""
    def persist():
        message = chat_service.send_message(db, current_user, data)
        payload = MessageResponse.from_message(message).model_dump(by_alias=True, mode="json")
        participants = chat_service.get_conversation(db, message.conversation_id).participant_ids
        return payload, participants

    payload, participants = await run_in_threadpool(persist)
    await hub.broadcast_new_message(payload)
    await hub.notify_absent_participants(payload, participants)
    return APIResponse(message="Message sent successfully", data=payload)


@router.delete("/messages/{message_id}", response_model=APIResponse)
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hub=Depends(get_chat_hub),
):
    """Delete one of your own messages"""
    def remove():
        message = chat_service.delete_message(db, message_id, current_user.id)
        return message.conversation_id

    conversation_id = await run_in_threadpool(remove)
    await hub.broadcast_message_deleted(conversation_id, message_id)
    return APIResponse(message="Message deleted successfully")
