"""
FolioScan Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn folioscan.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌────────────┐ ┌──────┐ ┌──────┐           │
    │  │  Req ID  │→│ Access log │→│ GZip │→│ CORS │           │
    │  └──────────┘ └────────────┘ └──────┘ └──────┘           │
    │                                                          │
    │  Routes (/api/v1, bearer auth):                          │
    │  ┌─────────┐ ┌───────┐ ┌────────┐   ┌──────────────┐     │
    │  │ folders │ │ notes │ │ search │   │ GET /health  │     │
    │  └─────────┘ └───────┘ └────────┘   └──────────────┘     │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400 │ Auth→401 │ NotFound→404 │              │
    │  StorageUnavailable→503 │ CascadeFailed→500              │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Build the service container and the identity verifier
    4. Log startup complete

    Shutdown:
    1. Close the blob backend (HTTP clients)
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from folioscan import __version__
from folioscan.auth import FirebaseIdentityVerifier
from folioscan.config import settings
from folioscan.database import async_session_factory, dispose_engine
from folioscan.exceptions import (
    AuthenticationError,
    CascadeFailedError,
    FolioScanError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from folioscan.middleware.logging import RequestLoggingMiddleware
from folioscan.middleware.request_id import RequestIDMiddleware, request_id_var
from folioscan.routes import folders, health, notes, search
from folioscan.services.container import build_services

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Module loggers (logging.getLogger(__name__)) propagate to the root
    handler configured here; the access log uses `folioscan.access`.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the service graph on startup; release its resources on shutdown.

    A missing credential is logged rather than fatal so /health keeps
    answering. Without FIREBASE_CREDENTIALS every /api/v1 request is
    rejected with 401.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("FolioScan Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    app.state.services = build_services(settings, async_session_factory)
    logger.info("Blob backend: %s", app.state.services.blob_store.backend_name)

    app.state.identity_verifier = None
    if settings.firebase_credentials:
        app.state.identity_verifier = FirebaseIdentityVerifier.from_credentials_json(
            settings.firebase_credentials
        )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("FolioScan Backend shutting down...")
    await app.state.services.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError          → 400 Bad Request (client can fix the input)
        RequestValidationError   → 400 Bad Request (malformed body or form)
        AuthenticationError      → 401 Unauthorized
        NotFoundError            → 404 Not Found
        StorageUnavailableError  → 503 Service Unavailable (retry later)
        CascadeFailedError       → 500 Internal Server Error (retry is safe)
        FolioScanError (base)    → 500 Internal Server Error
        Exception (fallback)     → 500 Internal Server Error

    Store and backend error text only ever reaches the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
        logger.warning("[%s] Malformed request: %s", request_id_var.get(""), fields)
        return _error_response(
            400,
            "validation_error",
            "Request is missing required fields or has invalid values",
            details={"fields": fields},
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(
            401,
            "unauthorized",
            exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(StorageUnavailableError)
    async def handle_storage_unavailable(request: Request, exc: StorageUnavailableError):
        logger.error(
            "[%s] Storage unavailable: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(CascadeFailedError)
    async def handle_cascade_failed(request: Request, exc: CascadeFailedError):
        logger.error(
            "[%s] Cascade delete failed: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, "cascade_failed", exc.message)

    @app.exception_handler(FolioScanError)
    async def handle_application_error(request: Request, exc: FolioScanError):
        logger.error(
            "[%s] Application error %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all; the stack trace is logged server-side only."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    app = FastAPI(
        title="FolioScan API",
        description=(
            "Personal archive of scanned notes: nested folders, image uploads to a "
            "pluggable blob backend, name search and recursive folder delete."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition: RequestID runs first.

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "Content-Disposition",
        ],
    )

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(folders.router)
    app.include_router(notes.router)
    app.include_router(search.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
