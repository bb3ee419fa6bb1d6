# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI application factory for the course registration service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from coursereg import __version__
from coursereg.api.dependencies import close_db, init_db
from coursereg.api.errors import register_exception_handlers
from coursereg.api.middleware.identity import IdentityMiddleware
from coursereg.api.routes import health
from coursereg.api.v1 import router as v1_router
from coursereg.core.config import get_settings
from coursereg.infrastructure.events import get_event_bus
from coursereg.infrastructure.notifications import EmailChannel, NotificationService
from coursereg.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    On startup configures logging, opens the database pool and subscribes
    the notification service to the event bus. On shutdown waits for
    in-flight notifications and closes the pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting course registration API: environment=%s, debug=%s",
        settings.environment,
        settings.debug,
    )

    await init_db()
    logger.info("Database connection initialized")

    event_bus = get_event_bus()
    notifications = NotificationService(EmailChannel(settings.smtp))
    notifications.subscribe(event_bus)
    app.state.notifications = notifications
    if not settings.smtp.is_configured:
        logger.warning("SMTP host not configured, email notifications will be skipped")

    yield

    await event_bus.drain()
    notifications.unsubscribe(event_bus)

    try:
        await close_db()
        logger.info("Database connection closed")
    except Exception as e:
        logger.warning("Error closing database connection: %s", str(e))

    logger.info("Shutting down course registration API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Course Registration API",
        description="Section registration, swaps, manual joins and drops",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    register_exception_handlers(app)
    app.add_middleware(IdentityMiddleware)

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
