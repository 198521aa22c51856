from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils.timestamps import utcnow


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """User account with public profile information."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), unique=True, nullable=False, index=True)
    profile_picture = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    posts = relationship("Post", back_populates="author", foreign_keys="Post.author_id")


class Post(Base):
    """A post or a repost of another post."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=True)

    is_repost = Column(Boolean, nullable=False, default=False)
    original_post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    author = relationship("User", back_populates="posts", foreign_keys=[author_id])
    original_post = relationship("Post", remote_side=[id])

    __table_args__ = (
        Index("ix_posts_original_author", original_post_id, author_id, is_repost),
    )


# ============================================================================
# SOCIAL FEATURES
# ============================================================================


class Follow(Base):
    """User following relationship."""

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint(
            "follower_id", "following_id", name="uq_follow_follower_following"
        ),
    )


class PostLike(Base):
    """A user's like on a post."""

    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )


class Comment(Base):
    """Comment on a post."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    author = relationship("User", foreign_keys=[author_id])


# ============================================================================
# NOTIFICATIONS & MESSAGING
# ============================================================================


class Notification(Base):
    """
    Notification delivered to a user.

    Sender and post references may dangle after the referenced row is gone;
    they are populated as null when listed.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )  # Recipient

    notification_type = Column(String(32), nullable=False)
    from_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)

    read = Column(Boolean, nullable=False, default=False)
    seen = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    from_user = relationship("User", foreign_keys=[from_user_id])
    post = relationship("Post", foreign_keys=[post_id])

    __table_args__ = (
        Index("ix_notifications_user_created", user_id, created_at),
        # Dedup lookup: unread notifications of one type from one actor on one post
        Index(
            "ix_notifications_dedup",
            user_id,
            notification_type,
            from_user_id,
            post_id,
            read,
        ),
    )


class Message(Base):
    """Direct message between two mutually-following users."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    content = Column(Text, nullable=False, default="")
    image_url = Column(String(1000), nullable=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True
    )  # Shared post

    read = Column(Boolean, nullable=False, default=False)
    seen = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    post = relationship("Post", foreign_keys=[post_id])

    __table_args__ = (
        Index("ix_messages_pair_created", sender_id, recipient_id, created_at),
        Index("ix_messages_recipient_unread", recipient_id, sender_id, read),
    )
