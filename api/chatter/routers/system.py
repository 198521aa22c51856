"""System endpoints (health)."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_dispatcher
from ..websocket_manager import ConnectionManager

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health(
    dispatcher: ConnectionManager = Depends(get_dispatcher),
) -> schemas.HealthResponse:
    """Liveness check with the number of open realtime connections."""
    uptime_s = time.time() - _STARTUP_TIME
    return schemas.HealthResponse(
        status="ok", uptime_s=uptime_s, connections=dispatcher.get_connection_count()
    )
