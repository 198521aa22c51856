"""Commit helper shared by the services."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import Internal

logger = logging.getLogger(__name__)


def commit_or_fail(db: Session, action: str) -> None:
    """Commit the session; on a storage error roll back and raise Internal."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure while trying to {action}: {e}")
        raise Internal(f"Failed to {action}") from e
