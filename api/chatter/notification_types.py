"""Notification kinds and their display text."""

from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MESSAGE = "message"
    UNREAD_MESSAGE = "unread_message"
    REPOST = "repost"


NOTIFICATION_TEXT: dict[NotificationType, str] = {
    NotificationType.LIKE: "{actor} liked your post",
    NotificationType.COMMENT: "{actor} commented on your post",
    NotificationType.FOLLOW: "{actor} started following you",
    NotificationType.MESSAGE: "{actor} sent you a message",
    NotificationType.UNREAD_MESSAGE: "{actor} saw your message",
    NotificationType.REPOST: "{actor} reposted your post",
}

UNKNOWN_ACTOR = "Someone"


def describe(notification_type: str, actor_username: str | None) -> str:
    """Render the one-line text shown for a notification."""
    template = NOTIFICATION_TEXT[NotificationType(notification_type)]
    return template.format(actor=actor_username or UNKNOWN_ACTOR)
