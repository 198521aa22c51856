"""Follow graph and presence endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db, get_dispatcher
from ..services.relationships import RelationshipService
from ..websocket_manager import ConnectionManager

router = APIRouter(prefix="", tags=["Users"])
logger = logging.getLogger(__name__)


def _follow_status(db: Session, viewer_id: int, user_id: int) -> schemas.FollowStatus:
    followers, following = RelationshipService.follow_counts(db, user_id)
    return schemas.FollowStatus(
        user_id=user_id,
        following=RelationshipService.is_following(db, viewer_id, user_id),
        followers_count=followers,
        following_count=following,
    )


def _require_user(db: Session, user_id: int) -> None:
    if db.get(models.User, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )


@router.get("/users/online", response_model=schemas.OnlineUsers)
def list_online_users(
    dispatcher: ConnectionManager = Depends(get_dispatcher),
    current_user: models.User = Depends(get_current_user),
) -> schemas.OnlineUsers:
    """Users with at least one open realtime connection."""
    return schemas.OnlineUsers(user_ids=dispatcher.presence.online_user_ids())


@router.post("/users/{user_id}/follow", response_model=schemas.FollowStatus)
def follow_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    RelationshipService.follow(db, current_user.id, user_id)
    return _follow_status(db, current_user.id, user_id)


@router.post("/users/{user_id}/unfollow", response_model=schemas.FollowStatus)
def unfollow_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    """Stop following a user. Unfollowing someone not followed is a no-op."""
    RelationshipService.unfollow(db, current_user.id, user_id)
    return _follow_status(db, current_user.id, user_id)


@router.post("/user/{user_id}/follow", response_model=schemas.FollowStatus)
def toggle_follow_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    """Follow the user, or unfollow when already following."""
    RelationshipService.toggle_follow(db, current_user.id, user_id)
    return _follow_status(db, current_user.id, user_id)


@router.get("/users/{user_id}/presence", response_model=schemas.Presence)
def get_presence(
    user_id: int,
    db: Session = Depends(get_db),
    dispatcher: ConnectionManager = Depends(get_dispatcher),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Presence:
    _require_user(db, user_id)
    return schemas.Presence(user_id=user_id, online=dispatcher.is_online(user_id))


@router.get("/users/{user_id}/can-message", response_model=schemas.CanMessage)
def can_message(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CanMessage:
    """Whether the current user and ``user_id`` follow each other."""
    _require_user(db, user_id)
    return schemas.CanMessage(
        user_id=user_id,
        can_message=RelationshipService.can_exchange_messages(db, current_user.id, user_id),
    )
