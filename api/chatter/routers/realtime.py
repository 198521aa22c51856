"""Realtime websocket endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from .. import settings
from ..auth import TOKEN_COOKIE, authenticate_token
from ..db import SessionLocal
from ..websocket_manager import Connection, connection_manager, envelope

router = APIRouter(prefix="", tags=["Realtime"])
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = None,  # JWT passed as query parameter, or the token cookie
):
    """
    WebSocket endpoint for realtime events.

    Clients connect via: ws://api.example.com/ws?token=<jwt_token>

    Server frames are ``{"event": name, "data": payload}``. Clients may send
    ``{"type": "ping" | "pong" | "join" | "leave", "room": ...}``.
    """
    token = token or websocket.cookies.get(TOKEN_COOKIE)
    try:
        with SessionLocal() as db:
            user_id = authenticate_token(token, db).id
    except HTTPException as e:
        logger.warning(f"WebSocket authentication failed: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e.detail))
        return

    await websocket.accept()

    connection = Connection(user_id, websocket, loop=asyncio.get_running_loop())
    if not connection_manager.connect(connection):
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="Connection limit reached")
        return

    connection.enqueue(
        envelope(
            "connected",
            {"user_id": user_id, "rooms": sorted(connection_manager.rooms_of(connection.connection_id))},
        )
    )
    writer = asyncio.create_task(connection.deliver())
    heartbeat = asyncio.create_task(_heartbeat(connection))

    idle_timeout = settings.HEARTBEAT_INTERVAL_SECONDS + settings.HEARTBEAT_TIMEOUT_SECONDS
    try:
        while True:
            raw = await asyncio.wait_for(websocket.receive_text(), timeout=idle_timeout)
            _handle_frame(connection, raw)
    except asyncio.TimeoutError:
        logger.info(f"WebSocket for user {user_id} idle for {idle_timeout}s, closing")
        await _close_quietly(websocket)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    except Exception as e:
        logger.error(f"WebSocket error for user {user_id}: {e}")
    finally:
        connection_manager.disconnect(connection.connection_id)
        heartbeat.cancel()
        writer.cancel()
        await asyncio.gather(heartbeat, writer, return_exceptions=True)


async def _heartbeat(connection: Connection) -> None:
    while True:
        await asyncio.sleep(settings.HEARTBEAT_INTERVAL_SECONDS)
        connection.enqueue(envelope("ping", {}))


async def _close_quietly(websocket: WebSocket) -> None:
    try:
        await websocket.close(code=status.WS_1001_GOING_AWAY)
    except RuntimeError as e:
        # Already closed by the transport
        logger.debug(f"WebSocket close skipped: {e}")


def _handle_frame(connection: Connection, raw: str) -> None:
    """Apply one client frame; replies go through the connection's outbox."""
    if raw == "ping":
        connection.enqueue(envelope("pong", {}))
        return

    try:
        frame = json.loads(raw)
    except ValueError:
        _reply_error(connection, "Invalid JSON frame")
        return
    if not isinstance(frame, dict):
        _reply_error(connection, "Frame must be a JSON object")
        return

    kind = frame.get("type")
    room = frame.get("room")

    if kind == "ping":
        connection.enqueue(envelope("pong", {}))
    elif kind == "pong":
        pass
    elif kind == "join":
        if not isinstance(room, str) or not connection_manager.can_join(connection.user_id, room):
            _reply_error(connection, "Not allowed to join room", room=room)
            return
        connection_manager.join(connection.connection_id, room)
        connection.enqueue(envelope("joined", {"room": room}))
    elif kind == "leave":
        if not isinstance(room, str):
            _reply_error(connection, "Missing room")
            return
        connection_manager.leave(connection.connection_id, room)
        connection.enqueue(envelope("left", {"room": room}))
    else:
        _reply_error(connection, f"Unknown frame type: {kind}")


def _reply_error(connection: Connection, message: str, **extra: Any) -> None:
    connection.enqueue(envelope("error", {"message": message, **extra}))
