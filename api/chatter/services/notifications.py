"""
Notification Service.

Handles creation, de-duplication, retrieval and read/seen state of
notifications, and pushes new ones to the recipient's live connections.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas, settings
from ..cache import cache_delete, cache_get_int, cache_set_int
from ..errors import NotFound
from ..notification_types import NotificationType
from ..utils.timestamps import utcnow
from ..websocket_manager import DASHBOARD_ROOM, connection_manager
from .persistence import commit_or_fail

logger = logging.getLogger(__name__)

# Cache key patterns
UNREAD_COUNT_KEY = "notifications:unread:{user_id}"

# Realtime events
NEW_NOTIFICATION_EVENT = "newNotification"
DASHBOARD_NOTIFICATION_EVENT = "notification"


class NotificationService:
    """Service for managing notifications."""

    @staticmethod
    def create(
        db: Session,
        notification_type: NotificationType | str,
        from_user_id: int,
        to_user_id: int,
        post_id: int | None = None,
    ) -> models.Notification | None:
        """
        Create a notification and push it to the recipient.

        Args:
            db: Database session
            notification_type: One of :class:`NotificationType`
            from_user_id: The user who performed the action
            to_user_id: ID of user to notify
            post_id: The post the action refers to, if any

        Returns:
            Created notification, or None if skipped (self-action, unknown
            recipient, or an unread duplicate inside the dedup window)
        """
        notification_type = NotificationType(notification_type)

        # Don't notify users about their own actions
        if from_user_id == to_user_id:
            logger.debug(f"Skipping self-notification for user {to_user_id}")
            return None

        if db.get(models.User, to_user_id) is None:
            logger.debug(f"Skipping {notification_type.value} notification for unknown user {to_user_id}")
            return None

        if NotificationService._has_recent_duplicate(
            db, notification_type, from_user_id, to_user_id, post_id
        ):
            logger.debug(
                f"Suppressing duplicate {notification_type.value} notification "
                f"from user {from_user_id} to user {to_user_id} (post {post_id})"
            )
            return None

        notification = models.Notification(
            user_id=to_user_id,
            notification_type=notification_type.value,
            from_user_id=from_user_id,
            post_id=post_id,
            read=False,
            seen=False,
            created_at=utcnow(),
        )
        db.add(notification)
        commit_or_fail(db, "create notification")
        db.refresh(notification)

        logger.info(
            f"Created {notification_type.value} notification {notification.id} for user {to_user_id}"
        )

        NotificationService._invalidate_unread_count(to_user_id)
        NotificationService._broadcast_notification(notification)

        return notification

    @staticmethod
    def list_for(
        db: Session,
        user_id: int,
        limit: int = settings.NOTIFICATION_PAGE_SIZE,
        cursor: datetime | None = None,
        unread_only: bool = False,
    ) -> tuple[list[schemas.Notification], datetime | None]:
        """
        List notifications for a user, newest first, with cursor-based pagination.

        Sender and post are populated on a best-effort basis: a reference to a
        row that no longer exists comes back as null.

        Returns:
            Tuple of (notifications, next_cursor)
        """
        query = (
            db.query(models.Notification)
            .options(
                selectinload(models.Notification.from_user),
                selectinload(models.Notification.post).selectinload(models.Post.author),
            )
            .filter(models.Notification.user_id == user_id)
        )

        if unread_only:
            query = query.filter(models.Notification.read == False)  # noqa: E712

        if cursor:
            query = query.filter(models.Notification.created_at < cursor)

        query = query.order_by(
            models.Notification.created_at.desc(), models.Notification.id.desc()
        )

        # Fetch limit + 1 to determine if there are more results
        notifications = query.limit(limit + 1).all()

        has_more = len(notifications) > limit
        items = notifications[:limit]

        next_cursor = None
        if has_more and items:
            next_cursor = items[-1].created_at

        return [NotificationService.populate(n) for n in items], next_cursor

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> models.Notification:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotFound: the notification does not exist or belongs to someone else
        """
        notification = (
            db.query(models.Notification)
            .filter(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
            .first()
        )
        if notification is None:
            raise NotFound("Notification not found")

        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            commit_or_fail(db, "mark notification as read")
            db.refresh(notification)
            NotificationService._invalidate_unread_count(user_id)

        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        """Mark all notifications as read. Returns the number updated (0 on repeat)."""
        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.read == False,  # noqa: E712
            )
            .update(
                {
                    models.Notification.read: True,
                    models.Notification.read_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        commit_or_fail(db, "mark notifications as read")

        if count > 0:
            NotificationService._invalidate_unread_count(user_id)

        return count

    @staticmethod
    def mark_all_seen(db: Session, user_id: int) -> int:
        """Flag every notification as seen (badge cleared). Returns the number updated."""
        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.seen == False,  # noqa: E712
            )
            .update({models.Notification.seen: True}, synchronize_session=False)
        )
        commit_or_fail(db, "mark notifications as seen")
        return count

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        """
        Get unread notification count for a user.

        Uses Redis cache with database fallback.
        """
        cache_key = UNREAD_COUNT_KEY.format(user_id=user_id)
        cached = cache_get_int(cache_key)
        if cached is not None:
            return cached

        count = (
            db.query(func.count(models.Notification.id))
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.read == False,  # noqa: E712
            )
            .scalar()
            or 0
        )

        cache_set_int(cache_key, count, ttl=settings.UNREAD_COUNT_TTL_SECONDS)
        return count

    @staticmethod
    def populate(notification: models.Notification) -> schemas.Notification:
        return schemas.Notification.model_validate(notification)

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _has_recent_duplicate(
        db: Session,
        notification_type: NotificationType,
        from_user_id: int,
        to_user_id: int,
        post_id: int | None,
    ) -> bool:
        """Look for an unread (type, actor, post) twin created inside the dedup window."""
        cutoff = utcnow() - timedelta(seconds=settings.NOTIFICATION_DEDUP_WINDOW_SECONDS)
        query = db.query(models.Notification.id).filter(
            models.Notification.user_id == to_user_id,
            models.Notification.notification_type == notification_type.value,
            models.Notification.from_user_id == from_user_id,
            models.Notification.read == False,  # noqa: E712
            models.Notification.created_at >= cutoff,
        )
        if post_id is None:
            query = query.filter(models.Notification.post_id.is_(None))
        else:
            query = query.filter(models.Notification.post_id == post_id)
        return query.first() is not None

    @staticmethod
    def _invalidate_unread_count(user_id: int) -> None:
        cache_delete(UNREAD_COUNT_KEY.format(user_id=user_id))

    @staticmethod
    def _broadcast_notification(notification: models.Notification) -> None:
        """
        Push the populated notification to the recipient's room, and mirror it
        to the dashboard room for admin listeners.
        """
        payload: dict[str, Any] = {
            "notification": NotificationService.populate(notification).model_dump(mode="json"),
            "user_id": notification.user_id,
        }

        delivered = connection_manager.push_to_user(
            notification.user_id, NEW_NOTIFICATION_EVENT, payload
        )
        connection_manager.push(DASHBOARD_ROOM, DASHBOARD_NOTIFICATION_EVENT, payload)

        logger.debug(
            f"Pushed notification {notification.id} to {delivered} connection(s) of user {notification.user_id}"
        )
