"""Post activity endpoints: posting, likes, comments and reposts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.activity import ActivityService

router = APIRouter(prefix="/posts", tags=["Posts"])
logger = logging.getLogger(__name__)


@router.post("", response_model=schemas.PostSummary, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.PostSummary:
    post = ActivityService.create_post(
        db, current_user.id, content=payload.content, image_url=payload.image_url
    )
    return schemas.PostSummary.model_validate(post)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """Delete a post. Only its author may do so."""
    ActivityService.delete_post(db, post_id, current_user.id)


@router.post("/{post_id}/like", response_model=schemas.LikeStatus)
def toggle_like(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeStatus:
    """Like a post, or remove the like when already liked."""
    return ActivityService.toggle_like(db, post_id, current_user.id)


@router.post(
    "/{post_id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    post_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    comment = ActivityService.add_comment(db, post_id, current_user.id, payload.content)
    return schemas.Comment.model_validate(comment)


@router.post(
    "/{post_id}/repost",
    response_model=schemas.PostSummary,
    status_code=status.HTTP_201_CREATED,
)
def repost(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.PostSummary:
    repost = ActivityService.repost(db, post_id, current_user.id)
    return schemas.PostSummary.model_validate(repost)


@router.delete("/{post_id}/repost", status_code=status.HTTP_204_NO_CONTENT)
def undo_repost(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    ActivityService.undo_repost(db, post_id, current_user.id)
