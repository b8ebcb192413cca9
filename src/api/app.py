# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI application factory for the messaging and notifications API.

Run with:
    uvicorn src.api.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src import __version__
from src.api.dependencies import close_db, init_db
from src.api.middleware.auth import AuthMiddleware
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import Settings, get_settings
from src.infrastructure.database import DatabaseError
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and own the database pool for the app's lifetime.

    A database that is down at startup does not prevent the API from
    serving /health, which then reports it as unhealthy.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting messaging API %s (%s)", __version__, settings.environment)

    try:
        await init_db()
    except DatabaseError as e:
        logger.warning("Database unavailable at startup: %s", e)

    yield

    await close_db()
    logger.info("Messaging API stopped")


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Report storage failures as 503 without leaking driver details."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable"},
    )


def _add_cors(app: FastAPI, settings: Settings) -> None:
    origins = settings.cors.origins_list
    if not origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to build the app with. Defaults to the cached
            application settings.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    docs_enabled = settings.debug

    app = FastAPI(
        title="VAC Messaging API",
        description="Internal messages and class notifications for the music school",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
        # Redirects from /path/ to /path drop the Authorization header.
        redirect_slashes=False,
    )

    app.add_exception_handler(DatabaseError, database_error_handler)

    # Last added runs first: CORS answers preflights before auth runs.
    app.add_middleware(AuthMiddleware, settings=settings.jwt)
    _add_cors(app, settings)

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
