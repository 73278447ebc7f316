"""
EggTrack Backend — Health Check Route
======================================

What:  Liveness/readiness probe for load balancers and uptime monitors.
How:   Reads the entries document once through the configured backend.

Status levels:
    healthy:   storage answered (a missing document still counts)
    degraded:  storage read failed; reads serve [] and writes will likely fail
"""

import logging
import time

from fastapi import APIRouter, Request

from eggtrack import __version__
from eggtrack.exceptions import StorageReadError
from eggtrack.schemas.entry import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    backend = request.app.state.entry_store.backend
    storage_status = "reachable"
    overall = "healthy"

    try:
        await backend.read_text()
    except StorageReadError as e:
        storage_status = "unreachable"
        overall = "degraded"
        logger.warning("Health check: storage unreachable: %s", e.message)

    return HealthResponse(
        status=overall,
        version=__version__,
        storage_backend=backend.name,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
