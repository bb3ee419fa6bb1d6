# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""End-to-end HTTP tests over the v1 API and a SQLite store."""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from coursereg.api.app import create_app
from coursereg.api.dependencies import get_db
from coursereg.infrastructure.database.models import UserRole

pytestmark = pytest.mark.integration


@pytest.fixture
def app(db_sessionmaker) -> FastAPI:
    app = create_app()

    async def override_get_db():
        async with db_sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def as_user(user_id: str, role: UserRole = UserRole.STUDENT) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Role": role.value}


@pytest.mark.asyncio
async def test_register_and_list(client, seed) -> None:
    student = await seed.student()
    section = await seed.section(await seed.subject("CS101"))

    response = await client.post(
        "/api/v1/registrations", json={"section_id": section}, headers=as_user(student)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["registration_type"] == "normal"
    assert body["section"]["subject_code"] == "CS101"
    assert body["section"]["schedules"][0]["start_time"] == "09:00"

    listing = await client.get("/api/v1/registrations", headers=as_user(student))
    assert [r["id"] for r in listing.json()] == [body["id"]]


@pytest.mark.asyncio
async def test_clash_is_a_conflict(client, seed) -> None:
    student = await seed.student()
    await seed.enroll(student, await seed.section(await seed.subject("CS100")))
    section = await seed.section(await seed.subject("CS101"), meetings=[("monday", "10:00", "12:00")])

    response = await client.post(
        "/api/v1/registrations", json={"section_id": section}, headers=as_user(student)
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "ScheduleClashError"
    assert "clashes with CS100" in body["detail"]
    assert body["details"]["existing"]["subject_code"] == "CS100"


@pytest.mark.asyncio
async def test_missing_identity(client, seed) -> None:
    section = await seed.section(await seed.subject("CS101"))

    response = await client.post("/api/v1/registrations", json={"section_id": section})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_lecturer_cannot_register(client, seed) -> None:
    lecturer = await seed.staff()
    section = await seed.section(await seed.subject("CS101"))

    response = await client.post(
        "/api/v1/registrations",
        json={"section_id": section},
        headers=as_user(lecturer, UserRole.LECTURER),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manual_join_round_trip(client, seed) -> None:
    lecturer = await seed.staff()
    student = await seed.student()
    section = await seed.section(
        await seed.subject("CS101"), capacity=30, enrolled_count=30, lecturer_id=lecturer
    )

    full = await client.post(
        "/api/v1/registrations", json={"section_id": section}, headers=as_user(student)
    )
    assert full.status_code == 409
    assert full.json()["error"] == "CapacityExceededError"

    created = await client.post(
        "/api/v1/manual-join-requests",
        json={"section_id": section, "reason": "advisor approved, need to graduate"},
        headers=as_user(student),
    )
    assert created.status_code == 201

    pending = await client.get(
        "/api/v1/manual-join-requests/lecturer", headers=as_user(lecturer, UserRole.LECTURER)
    )
    assert [r["id"] for r in pending.json()] == [created.json()["id"]]

    approved = await client.post(
        f"/api/v1/manual-join-requests/{created.json()['id']}/approve",
        headers=as_user(lecturer, UserRole.LECTURER),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["enrolled_count"] == 31

    capacity = await client.get(
        f"/api/v1/sections/{section}/capacity", headers=as_user(student)
    )
    assert capacity.json() == {
        "section_id": section,
        "capacity": 30,
        "enrolled_count": 31,
        "available_seats": 0,
        "is_full": True,
    }


@pytest.mark.asyncio
async def test_short_reason_is_unprocessable(client, seed) -> None:
    student = await seed.student()
    section = await seed.section(await seed.subject("CS101"))

    response = await client.post(
        "/api/v1/manual-join-requests",
        json={"section_id": section, "reason": "pls"},
        headers=as_user(student),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidInputError"


@pytest.mark.asyncio
async def test_validate_schedule(client, seed) -> None:
    student = await seed.student()
    a = await seed.section(await seed.subject("CS100"))
    b = await seed.section(await seed.subject("CS101"), meetings=[("monday", "11:00", "12:00")])

    response = await client.post(
        "/api/v1/sections/validate-schedule",
        json={"section_ids": [a, b]},
        headers=as_user(student),
    )

    assert response.status_code == 200
    assert response.json() == {"has_clash": False, "clashes": []}
