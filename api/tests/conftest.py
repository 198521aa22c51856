from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Generator

_TEST_DB = Path(__file__).resolve().parent / "test.db"

os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from chatter import models  # noqa: E402
from chatter.auth import create_access_token  # noqa: E402
from chatter.db import Base, SessionLocal, engine  # noqa: E402
from chatter.main import app, run_startup_tasks  # noqa: E402
from chatter.websocket_manager import Connection, connection_manager  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> Generator[None, None, None]:
    if _TEST_DB.exists():
        _TEST_DB.unlink()
    run_startup_tasks()
    yield
    engine.dispose()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing; every table is emptied afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()
        connection_manager.reset()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Factory creating users with unique usernames."""
    counter = {"n": 0}

    def _make(username: str | None = None, **fields) -> models.User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = models.User(
            username=username,
            full_name=fields.pop("full_name", username.title()),
            email=fields.pop("email", f"{username}@example.com"),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def follow(db: Session) -> Callable[[models.User, models.User], None]:
    """Insert follow edges directly, bypassing notifications."""

    def _follow(follower: models.User, target: models.User, mutual: bool = False) -> None:
        db.add(models.Follow(follower_id=follower.id, following_id=target.id))
        if mutual:
            db.add(models.Follow(follower_id=target.id, following_id=follower.id))
        db.commit()

    return _follow


@pytest.fixture()
def auth_headers() -> Callable[[models.User], dict[str, str]]:
    def _headers(user: models.User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def listen(db: Session) -> Callable[[models.User], Connection]:
    """Attach a socket-less connection to the dispatcher for a user."""

    def _listen(user: models.User) -> Connection:
        connection = Connection(user.id)
        assert connection_manager.connect(connection)
        return connection

    return _listen


@pytest.fixture()
def drain() -> Callable[..., list[dict]]:
    """Pop every queued envelope from a connection, optionally keeping one event name."""

    def _drain(connection: Connection, event: str | None = None) -> list[dict]:
        messages = []
        while not connection.outbox.empty():
            messages.append(connection.outbox.get_nowait())
        if event is not None:
            messages = [m for m in messages if m["event"] == event]
        return messages

    return _drain
