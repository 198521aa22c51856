from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .db import get_session
from .websocket_manager import ConnectionManager, connection_manager


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_dispatcher() -> ConnectionManager:
    """Process-wide realtime dispatcher (overridable in tests)."""
    return connection_manager
