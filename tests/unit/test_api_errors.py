# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for HTTP error translation and caller identity."""

import importlib
import warnings
from datetime import time

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI

from coursereg.api.dependencies import require_approver, require_auth, require_student
from coursereg.api.errors import register_exception_handlers, status_for
from coursereg.api.middleware.identity import CurrentUser, IdentityMiddleware
from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    CapacityExceededError,
    DuplicateEnrollmentError,
    IneligibleError,
    InvalidInputError,
    InvalidRequestStateError,
    RegistrationError,
    RequestNotFoundError,
    ScheduleClashError,
    SectionNotFoundError,
)
from coursereg.domains.scheduling.overlap import Clash, ScheduleEntry, TimeSlot, Weekday

pytestmark = pytest.mark.unit


def _clash() -> Clash:
    def entry(code: str, start: int, end: int) -> ScheduleEntry:
        return ScheduleEntry(
            slot=TimeSlot(Weekday.MONDAY, time(start), time(end)),
            section_id=f"{code}-1",
            section_number="1",
            subject_code=code,
        )

    return Clash(candidate=entry("CS102", 10, 12), existing=entry("CS101", 9, 11))


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(IdentityMiddleware)

    @app.get("/raise/{kind}")
    async def raise_error(kind: str) -> None:
        errors = {
            "capacity": CapacityExceededError("Section is at full capacity", {"capacity": 30}),
            "clash": ScheduleClashError(_clash().message, _clash()),
            "missing": SectionNotFoundError("Section not found or inactive"),
        }
        raise errors[kind]

    @app.get("/me")
    async def me(user: CurrentUser = Depends(require_auth)) -> dict:
        return {"id": user.id, "role": user.role}

    @app.get("/student-only")
    async def student_only(user: CurrentUser = Depends(require_student)) -> dict:
        return {"id": user.id}

    @app.get("/approver-only")
    async def approver_only(user: CurrentUser = Depends(require_approver)) -> dict:
        return {"id": user.id}

    return app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestStatusMapping:
    """Tests for the error kind to status table."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (RequestNotFoundError("x"), 404),
            (SectionNotFoundError("x"), 404),
            (IneligibleError("x"), 422),
            (DuplicateEnrollmentError("x"), 409),
            (CapacityExceededError("x"), 409),
            (ScheduleClashError("x", _clash()), 409),
            (InvalidRequestStateError("x"), 409),
            (AuthorizationDeniedError("x"), 403),
            (InvalidInputError("x"), 422),
            (RegistrationError("x"), 400),
        ],
    )
    def test_status_for(self, error, expected) -> None:
        assert status_for(error) == expected

    def test_status_table_loads_without_deprecation_warnings(self) -> None:
        import coursereg.api.errors as errors_module

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            importlib.reload(errors_module)

        assert errors_module.ERROR_STATUS[InvalidInputError] == 422


class TestErrorResponses:
    """Tests for handler output."""

    @pytest.mark.asyncio
    async def test_capacity_error_body(self, client) -> None:
        response = await client.get("/raise/capacity")

        assert response.status_code == 409
        assert response.json() == {
            "detail": "Section is at full capacity",
            "error": "CapacityExceededError",
            "details": {"capacity": 30},
        }

    @pytest.mark.asyncio
    async def test_clash_error_carries_both_entries(self, client) -> None:
        response = await client.get("/raise/clash")

        body = response.json()
        assert response.status_code == 409
        assert body["details"]["candidate"]["subject_code"] == "CS102"
        assert body["details"]["existing"]["subject_code"] == "CS101"
        assert body["details"]["existing"]["end_time"] == "11:00"

    @pytest.mark.asyncio
    async def test_not_found(self, client) -> None:
        response = await client.get("/raise/missing")

        assert response.status_code == 404
        assert response.headers["X-Request-Id"]


class TestIdentity:
    """Tests for gateway identity headers."""

    @pytest.mark.asyncio
    async def test_missing_identity_is_401(self, client) -> None:
        response = await client.get("/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_identity_headers(self, client) -> None:
        response = await client.get("/me", headers={"X-User-Id": "u-1", "X-User-Role": "Lecturer"})

        assert response.json() == {"id": "u-1", "role": "lecturer"}

    @pytest.mark.asyncio
    async def test_student_guard(self, client) -> None:
        headers = {"X-User-Id": "u-1", "X-User-Role": "lecturer"}

        assert (await client.get("/student-only", headers=headers)).status_code == 403
        assert (await client.get("/approver-only", headers=headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_approver_guard(self, client) -> None:
        headers = {"X-User-Id": "u-2", "X-User-Role": "student"}

        assert (await client.get("/approver-only", headers=headers)).status_code == 403
        assert (await client.get("/student-only", headers=headers)).status_code == 200

    def test_current_user_roles(self) -> None:
        assert CurrentUser("u", "hop").is_global_approver
        assert CurrentUser("u", "admin").is_approver
        assert not CurrentUser("u", "lecturer").is_global_approver
        assert CurrentUser("u", "student").has_any_role("student", "admin")
