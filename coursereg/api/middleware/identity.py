# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Caller identity resolution.

Token verification happens in the gateway in front of this service. The
gateway forwards the verified caller as two headers, X-User-Id and
X-User-Role, which this middleware turns into request.state.user.
Requests without them continue with request.state.user = None and the
endpoint decides whether authentication is required.
"""

import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from coursereg.infrastructure.database.models import GLOBAL_APPROVER_ROLES, UserRole
from coursereg.utils.logging import bind_context, clear_context

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
REQUEST_ID_HEADER = "X-Request-Id"


class CurrentUser:
    """Authenticated caller.

    Attributes:
        id: User id.
        role: Role code (student, lecturer, hop, admin).
    """

    def __init__(self, user_id: str, role: str) -> None:
        self.id = user_id
        self.role = role.lower()

    def has_any_role(self, *roles: str) -> bool:
        """Check if the caller has any of the given roles."""
        return self.role in roles

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value

    @property
    def is_approver(self) -> bool:
        """Check if the caller may decide manual-join or drop requests."""
        return self.role == UserRole.LECTURER.value or self.role in GLOBAL_APPROVER_ROLES

    @property
    def is_global_approver(self) -> bool:
        return self.role in GLOBAL_APPROVER_ROLES

    def __repr__(self) -> str:
        return f"<CurrentUser(id={self.id}, role={self.role})>"


def get_current_user(request: Request) -> CurrentUser | None:
    """Get the caller resolved by IdentityMiddleware, if any."""
    return getattr(request.state, "user", None)


class IdentityMiddleware(BaseHTTPMiddleware):
    """Populate request.state.user from gateway headers and bind log context."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        user_id = request.headers.get(USER_ID_HEADER)
        role = request.headers.get(USER_ROLE_HEADER)
        request.state.user = CurrentUser(user_id, role) if user_id and role else None

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        clear_context()
        bind_context(request_id=request_id, user_id=user_id)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
