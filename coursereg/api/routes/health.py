# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

- GET /health - Liveness with database status
- GET /health/ready - Readiness probe
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from coursereg import __version__
from coursereg.core.config import get_settings
from coursereg.infrastructure.database.connection import DatabaseError, get_engine
from coursereg.utils.datetime import utc_now

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
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    checked_at: datetime = Field(description="When health was checked")
    database: ComponentHealth


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool


async def check_database() -> ComponentHealth:
    """Check the enrollment store connection."""
    try:
        engine = get_engine()
        start = time.time()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency = (time.time() - start) * 1000
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    except (DatabaseError, SQLAlchemyError) as e:
        logger.error("Database health check failed: %s", str(e))
        return ComponentHealth(status="unhealthy", message=str(e))


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health() -> HealthResponse:
    database = await check_database()
    return HealthResponse(
        status="healthy" if database.status == "healthy" else "degraded",
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int(time.time() - _server_start_time),
        checked_at=utc_now(),
        database=database,
    )


@router.get("/health/ready", response_model=ReadinessResponse, summary="Readiness probe")
async def ready(response: Response) -> ReadinessResponse:
    database = await check_database()
    is_ready = database.status == "healthy"
    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(ready=is_ready)
