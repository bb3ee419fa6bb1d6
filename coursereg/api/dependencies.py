# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependencies: database sessions and caller checks."""

from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.middleware.identity import CurrentUser, get_current_user
from coursereg.core.config import get_settings
from coursereg.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request."""
    async with get_session() as session:
        yield session


def require_auth(request: Request) -> CurrentUser:
    """Require an authenticated caller.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_student(request: Request) -> CurrentUser:
    """Require a student caller.

    Raises:
        HTTPException: If not authenticated or not a student.
    """
    user = require_auth(request)
    if not user.is_student:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access required",
        )
    return user


def require_approver(request: Request) -> CurrentUser:
    """Require a lecturer, head of programme or administrator.

    Raises:
        HTTPException: If not authenticated or not an approver.
    """
    user = require_auth(request)
    if not user.is_approver:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Lecturer or administrator access required",
        )
    return user
