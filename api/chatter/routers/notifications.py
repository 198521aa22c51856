"""Notifications API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_user
from ..deps import get_db
from ..services.notifications import NotificationService
from ..utils.timestamps import parse_cursor

router = APIRouter(prefix="/notifications", tags=["Notifications"])
logger = logging.getLogger(__name__)


@router.get("", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    limit: int = Query(settings.NOTIFICATION_PAGE_SIZE, ge=1, le=settings.NOTIFICATION_PAGE_SIZE_MAX),
    cursor: str | None = None,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Page[schemas.Notification]:
    """
    List notifications for the current user.

    Returns notifications in reverse chronological order.
    Supports pagination via cursor.
    """
    before = None
    if cursor:
        try:
            before = parse_cursor(cursor)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid cursor"
            )

    items, next_cursor = NotificationService.list_for(
        db, current_user.id, limit=limit, cursor=before, unread_only=unread_only
    )
    return schemas.Page(
        items=items,
        next_cursor=next_cursor.isoformat() if next_cursor else None,
    )


@router.get("/unread-count", response_model=schemas.UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UnreadCountResponse:
    """Get unread notification count for the current user."""
    count = NotificationService.get_unread_count(db, current_user.id)
    return schemas.UnreadCountResponse(unread_count=count)


@router.put("/read-all", response_model=schemas.MarkReadResponse)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    """Mark all notifications as read for the current user."""
    updated = NotificationService.mark_all_read(db, current_user.id)
    return schemas.MarkReadResponse(updated=updated)


@router.put("/seen-all", response_model=schemas.MarkReadResponse)
def mark_all_notifications_seen(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    updated = NotificationService.mark_all_seen(db, current_user.id)
    return schemas.MarkReadResponse(updated=updated)


@router.put("/{notification_id}/read", response_model=schemas.Notification)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Notification:
    """Mark a single notification as read."""
    notification = NotificationService.mark_read(db, current_user.id, notification_id)
    return NotificationService.populate(notification)
