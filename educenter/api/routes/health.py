# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from educenter import __version__

logger = logging.getLogger(__name__)

router = APIRouter()

_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""

    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    database: ComponentHealth
    scheduler: ComponentHealth


async def check_database(request: Request) -> ComponentHealth:
    """Check the database connection."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        return ComponentHealth(status="unhealthy", message="Database not initialized")

    start = time.time()
    if not await database.check_connection():
        logger.error("Database health check failed")
        return ComponentHealth(status="unhealthy", message="Database unreachable")

    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


def check_scheduler(request: Request) -> ComponentHealth:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return ComponentHealth(status="disabled")
    if scheduler.is_running:
        return ComponentHealth(status="healthy")
    return ComponentHealth(status="unhealthy", message="Scheduler not running")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check if the API is healthy with component details."""
    settings = request.app.state.settings
    db_health = await check_database(request)
    scheduler_health = check_scheduler(request)

    statuses = [db_health.status, scheduler_health.status]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
    else:
        overall_status = "healthy"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        database=db_health,
        scheduler=scheduler_health,
    )
