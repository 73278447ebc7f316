"""
EggTrack Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() builds the storage backend and service graph once from a
       Settings object, stores them on app.state, then registers middleware,
       exception handlers and routers.
Who:   uvicorn (`uvicorn eggtrack.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Access Log       │
    │                                                          │
    │  Routes:                                                 │
    │    /api/data  /api/add  /api/delete  /api/egg-number     │
    │    /api/qr    /api/pdf  /api/sheet   /api/webhook        │
    │    /health    /                                          │
    │                                                          │
    │  app.state:                                              │
    │    settings → backend → EntryStore → EggIdAllocator      │
    │                                    → WebhookService      │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging, config validation (logged, never fatal), create the
               entries document if it does not exist yet
    Shutdown:  close the backend's HTTP client
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from eggtrack import __version__
from eggtrack.config import Settings, settings
from eggtrack.exceptions import (
    AuthError,
    EggTrackError,
    NotFoundError,
    RenderError,
    StorageWriteError,
    ValidationError,
)
from eggtrack.middleware.logging import RequestLoggingMiddleware
from eggtrack.middleware.rate_limit import RateLimitMiddleware
from eggtrack.middleware.request_id import RequestIDMiddleware, request_id_var
from eggtrack.routes import artifacts, egg_number, entries, health, pages, webhook
from eggtrack.services.allocator import EggIdAllocator
from eggtrack.services.entry_store import EntryStore
from eggtrack.services.webhook_service import WebhookService
from eggtrack.storage import build_backend

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(level: str = "INFO") -> None:
    """Root logger to stdout: `%(asctime)s [%(levelname)s] %(name)s: %(message)s`."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Replaced by eggtrack.access
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings
    store: EntryStore = app.state.entry_store

    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("EggTrack %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: reads and health checks still work
        logger.error("Configuration error: %s", str(e))

    logger.info("Storage: %s", store.backend.describe())
    try:
        await store.ensure_initialized()
    except StorageWriteError as e:
        logger.error("Could not initialize entries document: %s | Context: %s", e.message, e.context)

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("EggTrack shutting down...")
    await store.backend.aclose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the EggTrackError hierarchy to HTTP responses.

        ValidationError         → 400
        RequestValidationError  → 400 (bad query parameters)
        AuthError               → 401
        NotFoundError           → 404
        StorageWriteError       → 500, message returned
        RenderError             → 500
        EggTrackError (base)    → 500
        Exception (fallback)    → 500, generic message

    Context dicts of 5xx errors are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0].get("loc", ())) if errors else None
        logger.warning("[%s] Invalid request parameter: %s", request_id_var.get(""), field)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "validation_error",
                "Invalid request parameters",
                {"field": field, "errors": [err.get("msg", "") for err in errors]},
            ),
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(StorageWriteError)
    async def handle_storage_write_error(request: Request, exc: StorageWriteError):
        logger.error(
            "[%s] Storage write error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("storage_error", exc.message),
        )

    @app.exception_handler(RenderError)
    async def handle_render_error(request: Request, exc: RenderError):
        logger.error(
            "[%s] Render error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("render_error", exc.message),
        )

    @app.exception_handler(EggTrackError)
    async def handle_eggtrack_error(request: Request, exc: EggTrackError):
        logger.error(
            "[%s] %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again later.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build a fully wired application.

    Args:
        app_settings: Overrides the module-level `settings` (tests pass their own).
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Egg Label Tracker API",
        description=(
            "Tracks egg labels: entries arrive from Notion webhooks or the add "
            "endpoint and are printed as QR labels and label sheets."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    backend = build_backend(app_settings)
    store = EntryStore(backend, serialize_mutations=app_settings.serialize_mutations)
    allocator = EggIdAllocator(store)

    app.state.settings = app_settings
    app.state.entry_store = store
    app.state.allocator = allocator
    app.state.webhook_service = WebhookService(
        store,
        allocator,
        link_template=app_settings.webhook_link_template,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(entries.router)
    app.include_router(egg_number.router)
    app.include_router(artifacts.router)
    app.include_router(webhook.router)
    app.include_router(health.router)
    app.include_router(pages.router)

    return app


app = create_app()
