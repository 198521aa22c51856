"""Direct message endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.messages import MessageService

router = APIRouter(prefix="", tags=["Messages"])
logger = logging.getLogger(__name__)


@router.post(
    "/messages/{recipient_id}",
    response_model=schemas.Message,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    recipient_id: int,
    payload: schemas.MessageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Message:
    """
    Send a direct message.

    Both users must follow each other.
    """
    return MessageService.send(
        db,
        current_user.id,
        recipient_id,
        content=payload.content,
        image_url=payload.image_url,
    )


@router.post(
    "/api/messages/sendPost",
    response_model=schemas.Message,
    status_code=status.HTTP_201_CREATED,
)
def send_shared_post(
    payload: schemas.SharedPostMessageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Message:
    """Share a post with another user."""
    return MessageService.send_post(
        db,
        current_user.id,
        payload.recipient_id,
        payload.post_id,
        content=payload.content,
    )


@router.get("/messages/{user_id}", response_model=list[schemas.Message])
def get_conversation(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Message]:
    """Conversation with ``user_id``, oldest first."""
    return MessageService.history(db, current_user.id, user_id)


@router.put("/messages/{sender_id}/read", response_model=schemas.MarkReadResponse)
def mark_conversation_read(
    sender_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    """Mark every message received from ``sender_id`` as read."""
    updated = MessageService.mark_all_read(db, sender_id, current_user.id)
    return schemas.MarkReadResponse(updated=updated)


@router.put("/api/messages/{message_id}/seen", response_model=schemas.Message)
def mark_message_seen(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Message:
    return MessageService.mark_seen(db, message_id, current_user.id)


@router.get("/chats", response_model=list[schemas.ChatSummary])
def list_chats(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.ChatSummary]:
    """Conversations of the current user, most recently active first."""
    return MessageService.list_chats_for(db, current_user.id)
