"""
FastAPI application for Pipeline Dashboard.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .config import Settings, get_settings
from .db.base import Database
from .errors import DashboardError
from .log import configure_logging
from .pipeline.routes import router as pipeline_router

# Initialize structured logging
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("starting_pipeline_dashboard", environment=settings.environment)

    owned = app.state.database is None
    if owned:
        app.state.database = Database(settings.database_url, settings.statement_timeout_ms)
        app.state.database.create_all()

    yield

    logger.info("shutting_down_pipeline_dashboard")
    if owned:
        app.state.database.dispose()
        app.state.database = None


# =============================================================================
# Error handlers
# =============================================================================


async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, code=exc.code)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.message, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("query", "body", "path"))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.info("request_rejected", path=request.url.path, errors=messages)
    return JSONResponse(
        status_code=400,
        content={"error": "invalid query parameters: " + "; ".join(messages), "code": "VALIDATION_ERROR"},
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("unhandled_storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"error": "internal storage error", "code": "STORAGE_ERROR"},
    )


# =============================================================================
# Application factory
# =============================================================================


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API application.

    When no database is given, one is created from settings at startup and
    disposed at shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title=settings.app_name,
        description="Stores pipeline reports and serves them back through a filtered, paginated API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DashboardError, dashboard_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    @app.get("/api")
    async def landing() -> Dict[str, str]:
        return {"message": f"Welcome to the {settings.app_name} API"}

    @app.get("/api/ping")
    async def ping() -> Dict[str, str]:
        return {"message": "pong"}

    @app.get("/api/about")
    async def about() -> Dict[str, Any]:
        """Return version information."""
        return {"version": {"api": __version__, "name": settings.app_name}}

    @app.get("/healthz")
    def healthz(request: Request) -> Dict[str, bool]:
        """Health check endpoint."""
        database: Optional[Database] = request.app.state.database
        db_ok = database.ping() if database is not None else False
        return {"ok": db_ok, "db": db_ok}

    app.include_router(pipeline_router)
    return app


app = create_app()
