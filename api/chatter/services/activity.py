"""
Activity Service.

Post, like, comment and repost mutations. They are kept thin: their job here
is to fire the notifications and realtime events other users react to.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import Conflict, Forbidden, InvalidArgument, NotFound
from ..notification_types import NotificationType
from ..utils.timestamps import utcnow
from ..websocket_manager import connection_manager, post_room, user_room
from .notifications import NotificationService
from .persistence import commit_or_fail
from .relationships import RelationshipService

logger = logging.getLogger(__name__)

# Realtime events
NEW_POST_EVENT = "newPost"
POST_UPDATED_EVENT = "postUpdated"
POST_DELETED_EVENT = "postDeleted"
NEW_REPOST_EVENT = "newRepost"


class ActivityService:
    """Service for post activity that drives notifications."""

    @staticmethod
    def create_post(
        db: Session, author_id: int, content: str | None = None, image_url: str | None = None
    ) -> models.Post:
        """Publish a post and announce it to the author and their followers."""
        if db.get(models.User, author_id) is None:
            raise NotFound("User not found")

        content = (content or "").strip() or None
        image_url = (image_url or "").strip() or None
        if content is None and image_url is None:
            raise InvalidArgument("Post must have content or an image")

        post = models.Post(
            author_id=author_id,
            content=content,
            image_url=image_url,
            created_at=utcnow(),
        )
        db.add(post)
        commit_or_fail(db, "create post")
        db.refresh(post)

        logger.info(f"User {author_id} created post {post.id}")

        ActivityService._publish_to_audience(
            db, author_id, NEW_POST_EVENT, ActivityService.post_snapshot(db, post)
        )
        return post

    @staticmethod
    def delete_post(db: Session, post_id: int, requester_id: int) -> None:
        """
        Delete a post with its likes and comments.

        Reposts of it stay, detached from the original.

        Raises:
            NotFound: no such post
            Forbidden: requester is not the author
        """
        post = ActivityService._require_post(db, post_id)
        if post.author_id != requester_id:
            raise Forbidden("Only the author can delete this post")

        author_id = post.author_id
        db.query(models.PostLike).filter(models.PostLike.post_id == post_id).delete(
            synchronize_session=False
        )
        db.query(models.Comment).filter(models.Comment.post_id == post_id).delete(
            synchronize_session=False
        )
        db.query(models.Post).filter(models.Post.original_post_id == post_id).update(
            {models.Post.original_post_id: None}, synchronize_session=False
        )
        db.delete(post)
        commit_or_fail(db, "delete post")

        logger.info(f"User {requester_id} deleted post {post_id}")

        connection_manager.push_rooms(
            [post_room(post_id), user_room(author_id)],
            POST_DELETED_EVENT,
            {"post_id": post_id, "author_id": author_id},
        )

    @staticmethod
    def toggle_like(db: Session, post_id: int, user_id: int) -> schemas.LikeStatus:
        """
        Like the post, or unlike it when already liked.

        Liking notifies the author; unliking leaves that notification alone.
        """
        post = ActivityService._require_post(db, post_id)

        existing = (
            db.query(models.PostLike)
            .filter(models.PostLike.post_id == post_id, models.PostLike.user_id == user_id)
            .first()
        )
        if existing is not None:
            db.delete(existing)
            commit_or_fail(db, "unlike post")
            liked = False
        else:
            db.add(models.PostLike(post_id=post_id, user_id=user_id))
            commit_or_fail(db, "like post")
            liked = True
            NotificationService.create(
                db, NotificationType.LIKE, user_id, post.author_id, post_id=post_id
            )

        logger.info(f"User {user_id} {'liked' if liked else 'unliked'} post {post_id}")

        snapshot = ActivityService.post_snapshot(db, post)
        ActivityService._publish_post_updated(post, snapshot)
        return schemas.LikeStatus(
            post_id=post_id, liked=liked, likes_count=snapshot["likes_count"]
        )

    @staticmethod
    def add_comment(db: Session, post_id: int, author_id: int, content: str) -> models.Comment:
        post = ActivityService._require_post(db, post_id)

        content = (content or "").strip()
        if not content:
            raise InvalidArgument("Comment cannot be empty")

        comment = models.Comment(
            post_id=post_id, author_id=author_id, content=content, created_at=utcnow()
        )
        db.add(comment)
        commit_or_fail(db, "add comment")
        db.refresh(comment)

        logger.info(f"User {author_id} commented on post {post_id}")

        NotificationService.create(
            db, NotificationType.COMMENT, author_id, post.author_id, post_id=post_id
        )
        ActivityService._publish_post_updated(post, ActivityService.post_snapshot(db, post))
        return comment

    @staticmethod
    def repost(db: Session, post_id: int, user_id: int) -> models.Post:
        """
        Repost ``post_id`` on behalf of ``user_id``.

        Raises:
            NotFound: no such post
            InvalidArgument: the target is itself a repost
            Conflict: the user already reposted it
        """
        original = ActivityService._require_post(db, post_id)
        if original.is_repost:
            raise InvalidArgument("Cannot repost a repost")
        if ActivityService._find_repost(db, post_id, user_id) is not None:
            raise Conflict("You have already reposted this post")

        repost = models.Post(
            author_id=user_id,
            is_repost=True,
            original_post_id=post_id,
            created_at=utcnow(),
        )
        db.add(repost)
        commit_or_fail(db, "repost")
        db.refresh(repost)

        logger.info(f"User {user_id} reposted post {post_id} as {repost.id}")

        NotificationService.create(
            db, NotificationType.REPOST, user_id, original.author_id, post_id=post_id
        )
        ActivityService._publish_post_updated(
            original, ActivityService.post_snapshot(db, original)
        )
        ActivityService._publish_to_audience(
            db, user_id, NEW_REPOST_EVENT, ActivityService.post_snapshot(db, repost)
        )
        return repost

    @staticmethod
    def undo_repost(db: Session, post_id: int, user_id: int) -> None:
        original = ActivityService._require_post(db, post_id)
        repost = ActivityService._find_repost(db, post_id, user_id)
        if repost is None:
            raise NotFound("Repost not found")

        repost_id = repost.id
        db.delete(repost)
        commit_or_fail(db, "undo repost")

        logger.info(f"User {user_id} removed repost {repost_id} of post {post_id}")

        ActivityService._publish_post_updated(
            original, ActivityService.post_snapshot(db, original)
        )
        connection_manager.push_rooms(
            [post_room(repost_id), user_room(user_id)],
            POST_DELETED_EVENT,
            {"post_id": repost_id, "author_id": user_id},
        )

    @staticmethod
    def post_snapshot(db: Session, post: models.Post) -> dict[str, Any]:
        """Post summary with live counters, as pushed to clients."""
        likes = (
            db.query(func.count(models.PostLike.id))
            .filter(models.PostLike.post_id == post.id)
            .scalar()
        )
        comments = (
            db.query(func.count(models.Comment.id))
            .filter(models.Comment.post_id == post.id)
            .scalar()
        )
        reposts = (
            db.query(func.count(models.Post.id))
            .filter(models.Post.original_post_id == post.id, models.Post.is_repost == True)  # noqa: E712
            .scalar()
        )
        snapshot = schemas.PostSummary.model_validate(post).model_dump(mode="json")
        snapshot.update(
            likes_count=likes or 0,
            comments_count=comments or 0,
            reposts_count=reposts or 0,
        )
        return snapshot

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _require_post(db: Session, post_id: int) -> models.Post:
        post = db.get(models.Post, post_id)
        if post is None:
            raise NotFound("Post not found")
        return post

    @staticmethod
    def _find_repost(db: Session, post_id: int, user_id: int) -> models.Post | None:
        return (
            db.query(models.Post)
            .filter(
                models.Post.original_post_id == post_id,
                models.Post.author_id == user_id,
                models.Post.is_repost == True,  # noqa: E712
            )
            .first()
        )

    @staticmethod
    def _publish_post_updated(post: models.Post, snapshot: dict[str, Any]) -> None:
        connection_manager.push_rooms(
            [post_room(post.id), user_room(post.author_id)], POST_UPDATED_EVENT, snapshot
        )

    @staticmethod
    def _publish_to_audience(
        db: Session, user_id: int, event: str, payload: dict[str, Any]
    ) -> None:
        rooms = [user_room(user_id)]
        rooms.extend(user_room(f) for f in RelationshipService.follower_ids(db, user_id))
        delivered = connection_manager.push_rooms(rooms, event, payload)
        logger.debug(f"Pushed '{event}' from user {user_id} to {delivered} connection(s)")
