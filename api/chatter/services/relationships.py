"""
Relationship Service.

Follow graph queries and mutations, including the mutual-follow gate that
direct messaging depends on.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from .. import models
from ..errors import Conflict, InvalidArgument, NotFound
from ..notification_types import NotificationType
from ..websocket_manager import connection_manager, user_room
from .notifications import NotificationService
from .persistence import commit_or_fail

logger = logging.getLogger(__name__)

FOLLOW_UPDATE_EVENT = "followUpdate"


class RelationshipService:
    """Service for the follow graph."""

    @staticmethod
    def can_exchange_messages(db: Session, user_a_id: int, user_b_id: int) -> bool:
        """
        True iff each user follows the other.

        Symmetric and side-effect free. Unknown users simply have no follow
        rows, so the answer is False rather than an error; callers translate
        absence into NotFound themselves.
        """
        if user_a_id == user_b_id:
            return False

        edges = (
            db.query(func.count(models.Follow.id))
            .filter(
                or_(
                    and_(
                        models.Follow.follower_id == user_a_id,
                        models.Follow.following_id == user_b_id,
                    ),
                    and_(
                        models.Follow.follower_id == user_b_id,
                        models.Follow.following_id == user_a_id,
                    ),
                )
            )
            .scalar()
        )
        return edges == 2

    @staticmethod
    def is_following(db: Session, follower_id: int, target_id: int) -> bool:
        return (
            db.query(models.Follow.id)
            .filter(
                models.Follow.follower_id == follower_id,
                models.Follow.following_id == target_id,
            )
            .first()
            is not None
        )

    @staticmethod
    def follower_ids(db: Session, user_id: int) -> list[int]:
        rows = (
            db.query(models.Follow.follower_id)
            .filter(models.Follow.following_id == user_id)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def follow_counts(db: Session, user_id: int) -> tuple[int, int]:
        """Return (followers, following) for ``user_id``."""
        followers = (
            db.query(func.count(models.Follow.id))
            .filter(models.Follow.following_id == user_id)
            .scalar()
        )
        following = (
            db.query(func.count(models.Follow.id))
            .filter(models.Follow.follower_id == user_id)
            .scalar()
        )
        return followers or 0, following or 0

    @staticmethod
    def follow(db: Session, follower_id: int, target_id: int) -> models.Follow:
        """
        Make ``follower_id`` follow ``target_id``.

        Raises:
            InvalidArgument: self-follow
            NotFound: either user is missing
            Conflict: already following
        """
        if follower_id == target_id:
            raise InvalidArgument("Users cannot follow themselves")
        RelationshipService._require_users(db, follower_id, target_id)

        if RelationshipService.is_following(db, follower_id, target_id):
            raise Conflict("Already following this user")

        follow = models.Follow(follower_id=follower_id, following_id=target_id)
        db.add(follow)
        commit_or_fail(db, "follow user")
        db.refresh(follow)

        logger.info(f"User {follower_id} followed user {target_id}")

        NotificationService.create(db, NotificationType.FOLLOW, follower_id, target_id)
        RelationshipService._publish_follow_update(follower_id, target_id, "follow")
        return follow

    @staticmethod
    def unfollow(db: Session, follower_id: int, target_id: int) -> bool:
        """Remove the follow edge. Returns False when there was none."""
        RelationshipService._require_users(db, follower_id, target_id)

        deleted = (
            db.query(models.Follow)
            .filter(
                models.Follow.follower_id == follower_id,
                models.Follow.following_id == target_id,
            )
            .delete(synchronize_session=False)
        )
        commit_or_fail(db, "unfollow user")

        if not deleted:
            return False

        logger.info(f"User {follower_id} unfollowed user {target_id}")
        RelationshipService._publish_follow_update(follower_id, target_id, "unfollow")
        return True

    @staticmethod
    def toggle_follow(db: Session, follower_id: int, target_id: int) -> bool:
        """Follow if not following, unfollow otherwise. Returns the new state."""
        if follower_id == target_id:
            raise InvalidArgument("Users cannot follow themselves")
        if RelationshipService.is_following(db, follower_id, target_id):
            RelationshipService.unfollow(db, follower_id, target_id)
            return False
        RelationshipService.follow(db, follower_id, target_id)
        return True

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _require_users(db: Session, *user_ids: int) -> None:
        for user_id in user_ids:
            if db.get(models.User, user_id) is None:
                raise NotFound("User not found")

    @staticmethod
    def _publish_follow_update(follower_id: int, followed_id: int, action: str) -> None:
        payload = {
            "follower_id": follower_id,
            "followed_id": followed_id,
            "action": action,
        }
        connection_manager.push_rooms(
            [user_room(follower_id), user_room(followed_id)], FOLLOW_UPDATE_EVENT, payload
        )
