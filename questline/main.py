"""Questline: Main Application.

FastAPI application exposing the instance lifecycle API to admin tooling
and running the periodic auto-archive sweep.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from questline import __version__
from questline.infrastructure.database.session import close_db
from questline.infrastructure.periodic_tasks import auto_archive_instances
from questline.infrastructure.scheduler import PeriodicScheduler
from questline.instances.api import router as instances_router
from questline.instances.config import get_instance_settings
from questline.instances.side_effects import drain_background_dispatches
from questline.shared.utils.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)


APP_TITLE = "Questline"
APP_DESCRIPTION = """
Lifecycle control for scheduled quest instances.

Admin tooling drives instances through
`draft → recruiting → locked → live → completed → archived`,
pauses and resumes them, and cancels them. Every change is recorded in
the ops event log; pauses, cancellations and archives are also written
to the admin audit log.
"""
APP_VERSION = __version__
API_PREFIX = "/api/v1"

TAGS_METADATA = [
    {
        "name": "health",
        "description": "Health check and status endpoints",
    },
    {
        "name": "instances",
        "description": "Quest instance status transitions",
    },
]


def build_scheduler() -> PeriodicScheduler:
    """Register the periodic tasks enabled by settings."""
    settings = get_instance_settings()
    scheduler = PeriodicScheduler()
    if settings.auto_archive_enabled:
        scheduler.register(
            "auto_archive_instances",
            settings.auto_archive_interval_seconds,
            auto_archive_instances,
        )
    return scheduler


# ===========================================
# LIFECYCLE MANAGEMENT
# ===========================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    configure_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=os.getenv("LOG_JSON", "true").lower() == "true",
        service_name="questline",
    )
    logger.info("app_starting", title=APP_TITLE, version=APP_VERSION)

    scheduler = build_scheduler()
    await scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("app_stopping", title=APP_TITLE)
    await scheduler.stop()
    await drain_background_dispatches(get_instance_settings().side_effect_timeout_seconds)
    await close_db()


# ===========================================
# APPLICATION FACTORY
# ===========================================


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_timing(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc) if app.debug else "An unexpected error occurred",
            },
        )

    app.include_router(instances_router, prefix=API_PREFIX)

    register_root_endpoints(app)

    return app


def register_root_endpoints(app: FastAPI) -> None:
    """Register root-level endpoints."""

    @app.get("/", tags=["health"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": APP_TITLE,
            "version": APP_VERSION,
            "status": "running",
            "docs": "/docs",
            "api_prefix": API_PREFIX,
        }

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, Any]:
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "timestamp": time.time(),
        }


app = create_app()
