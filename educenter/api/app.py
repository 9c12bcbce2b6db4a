# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the application factory for the EduCenter billing API.

Example:
    uvicorn educenter.api.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from educenter import __version__
from educenter.api.routes import health
from educenter.api.v1 import router as v1_router
from educenter.core.config import Settings, load_settings
from educenter.infrastructure.background.scheduler import BillingScheduler
from educenter.infrastructure.database import Database, DatabaseError
from educenter.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup creates the Database (unless one was injected) and starts the
    billing scheduler when enabled. Shutdown stops both.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting EduCenter billing API: environment=%s, debug=%s",
        settings.environment,
        settings.debug,
    )

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database(settings)
        logger.info("Database engine initialized")

    scheduler: BillingScheduler | None = None
    if settings.billing.scheduler_enabled:
        scheduler = BillingScheduler(settings)
        scheduler.register_billing_jobs()
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()

    if owns_database:
        await app.state.database.close()
        logger.info("Database connections closed")


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database operation failed"},
    )


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. Loaded from the environment if omitted.
        database: Database to use instead of creating one at startup.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or load_settings()
    setup_logging(settings)

    app = FastAPI(
        title="EduCenter Billing API",
        description="Monthly billing for tutoring center students",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.settings = settings
    app.state.database = database
    app.state.scheduler = None

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(DatabaseError, database_error_handler)

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
