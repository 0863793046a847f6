# src/messaging_backend/api/v1/endpoints/messages.py
"""Direct message endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from messaging_backend.schemas.message import MessageCreate, MessageResponse
from messaging_backend.services.message_service import MessageService, get_message_service

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])

MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]


@router.post("/send", response_model=MessageResponse)
async def send_message(
    message_data: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    messages: MessageServiceDep,
) -> MessageResponse:
    """Persist a message from the current user."""
    message = messages.send(
        db,
        current_user.id,
        message_data.receiver_id,
        message_data.content,
        message_data.type,
    )
    return MessageResponse.model_validate(message)


@router.get("/chat/{other_user_id}", response_model=list[MessageResponse])
async def get_chat_messages(
    other_user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    messages: MessageServiceDep,
) -> list[MessageResponse]:
    """Return the conversation with another user, oldest first."""
    history = messages.history(db, current_user.id, other_user_id)
    return [MessageResponse.model_validate(m) for m in history]


@router.get("/unread/count", response_model=int)
async def get_unread_count(
    current_user: CurrentUserDep,
    db: SessionDep,
    messages: MessageServiceDep,
) -> int:
    """Return how many messages addressed to the current user are unread."""
    return messages.unread_count(db, current_user.id)


@router.put("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    messages: MessageServiceDep,
) -> MessageResponse:
    """Mark a single message as read."""
    return MessageResponse.model_validate(messages.mark_read(db, message_id))


@router.put("/read/{sender_id}", response_model=list[MessageResponse])
async def mark_conversation_read(
    sender_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    messages: MessageServiceDep,
) -> list[MessageResponse]:
    """Mark everything ``sender_id`` sent to the current user as read."""
    updated = messages.mark_all_read(db, current_user.id, sender_id)
    return [MessageResponse.model_validate(m) for m in updated]
