"""
FolioScan Backend — Access Log Middleware
==========================================

What:  One log line per HTTP request: method, path, status, duration.
How:   Times the downstream call with perf_counter and logs on the
       `folioscan.access` logger at a level derived from the status code.
Who:   Applied to every request, inside RequestIDMiddleware so the line
       carries the request id.

Log line:
    GET /api/v1/folders/root 200 12.3ms [a1b2c3d4] from 10.0.0.7

Not logged: request bodies, uploaded images, Authorization headers. The
structured fields are also attached via `extra` for JSON formatters.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from folioscan.middleware.request_id import request_id_var

logger = logging.getLogger("folioscan.access")

# Probe traffic that would drown out real requests
QUIET_PATHS = {"/health"}


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
