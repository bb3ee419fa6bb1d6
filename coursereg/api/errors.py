# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Translation of domain errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    CapacityExceededError,
    DuplicateEnrollmentError,
    IneligibleError,
    InvalidInputError,
    InvalidRequestStateError,
    NotFoundError,
    RegistrationError,
    ScheduleClashError,
)
from coursereg.infrastructure.database.connection import DatabaseError

logger = logging.getLogger(__name__)

HTTP_422_UNPROCESSABLE = 422

ERROR_STATUS: dict[type[RegistrationError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    IneligibleError: HTTP_422_UNPROCESSABLE,
    DuplicateEnrollmentError: status.HTTP_409_CONFLICT,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    ScheduleClashError: status.HTTP_409_CONFLICT,
    InvalidRequestStateError: status.HTTP_409_CONFLICT,
    AuthorizationDeniedError: status.HTTP_403_FORBIDDEN,
    InvalidInputError: HTTP_422_UNPROCESSABLE,
}


def status_for(error: RegistrationError) -> int:
    """Pick the HTTP status for a domain error by its nearest mapped class."""
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_400_BAD_REQUEST


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    code = status_for(exc)
    logger.info(
        "Request rejected: path=%s, error=%s, status=%d, message=%s",
        request.url.path,
        type(exc).__name__,
        code,
        exc.message,
    )
    return JSONResponse(
        status_code=code,
        content={
            "detail": exc.message,
            "error": type(exc).__name__,
            "details": exc.details,
        },
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database error on %s: %s", request.url.path, str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable", "error": "DatabaseError"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handlers on an application."""
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
