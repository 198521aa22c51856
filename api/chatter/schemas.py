from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .notification_types import NotificationType, describe


# ============================================================================
# BASE SCHEMAS
# ============================================================================


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None
    connections: int = 0


# ============================================================================
# USER & POST SUMMARIES
# ============================================================================


class UserSummary(BaseModel):
    """Public profile fields embedded in notifications and messages."""

    id: int
    username: str
    profile_picture: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PostSummary(BaseModel):
    """Post fields embedded in notifications and shared-post messages."""

    id: int
    author_id: int
    author: UserSummary | None = None
    content: str | None = None
    image_url: str | None = None
    is_repost: bool = False
    original_post_id: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PostCreate(BaseModel):
    """Create post request."""

    content: str | None = Field(None, max_length=5000)
    image_url: str | None = Field(None, max_length=1000)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class Comment(BaseModel):
    id: int
    post_id: int
    author_id: int
    author: UserSummary | None = None
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LikeStatus(BaseModel):
    post_id: int
    liked: bool
    likes_count: int


# ============================================================================
# RELATIONSHIPS & PRESENCE
# ============================================================================


class FollowStatus(BaseModel):
    user_id: int
    following: bool
    followers_count: int
    following_count: int


class CanMessage(BaseModel):
    user_id: int
    can_message: bool


class Presence(BaseModel):
    user_id: int
    online: bool


class OnlineUsers(BaseModel):
    user_ids: list[int]


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(BaseModel):
    """Notification with its sender and post populated (null when gone)."""

    id: int
    user_id: int
    notification_type: NotificationType
    from_user_id: int | None = None
    from_user: UserSummary | None = None
    post_id: int | None = None
    post: PostSummary | None = None
    read: bool
    seen: bool
    created_at: datetime
    read_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def text(self) -> str:
        username = self.from_user.username if self.from_user else None
        return describe(self.notification_type, username)


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    updated: int


# ============================================================================
# MESSAGES
# ============================================================================


class MessageCreate(BaseModel):
    """Send message request. At least one of the fields must be non-empty."""

    content: str | None = Field(None, max_length=5000)
    image_url: str | None = Field(None, max_length=1000)


class SharedPostMessageCreate(BaseModel):
    """Share a post with another user in a direct message."""

    recipient_id: int
    post_id: int
    content: str | None = Field(None, max_length=5000)


class Message(BaseModel):
    id: int
    sender_id: int
    recipient_id: int
    sender: UserSummary | None = None
    recipient: UserSummary | None = None
    content: str = ""
    image_url: str | None = None
    post_id: int | None = None
    post: PostSummary | None = None
    read: bool
    seen: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatSummary(BaseModel):
    """One conversation in the chat list."""

    user: UserSummary | None = None
    last_message: Message
    unread_count: int
