"""
FolioScan Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs SELECT 1 against the database and reports which blob backend this
       deployment uses. No authentication.
Who:   Called by container health checks, load balancers and monitoring.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)

The blob backend is reported, not probed: probing Drive or a link host on
every check would spend API quota.
"""

import logging
import time

from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from folioscan import __version__
from folioscan.config import settings
from folioscan.database import engine
from folioscan.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend service and its database, "
        "plus the active blob backend."
    ),
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check: database unreachable: %s", str(e))

    services = getattr(request.app.state, "services", None)
    backend = services.blob_store.backend_name if services is not None else settings.blob_backend

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        blob_backend=backend,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
