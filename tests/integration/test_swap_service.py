# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for swap requests."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    EnrollmentNotFoundError,
    InvalidInputError,
    InvalidRequestStateError,
    ScheduleClashError,
)
from coursereg.domains.swap import SwapService
from coursereg.infrastructure.database.models import Registration, RequestStatus, SwapRequest
from coursereg.infrastructure.events import EventTypes

pytestmark = pytest.mark.integration


@pytest.fixture
def service(db_session, event_bus) -> SwapService:
    return SwapService(db=db_session, event_bus=event_bus)


@pytest_asyncio.fixture
async def pair(seed):
    """Two students holding different sections of CS101."""
    subject = await seed.subject("CS101")
    first_section = await seed.section(subject, "1", meetings=[("monday", "09:00", "11:00")])
    second_section = await seed.section(subject, "2", meetings=[("wednesday", "14:00", "16:00")])
    alice = await seed.student(name="Alice")
    bob = await seed.student(name="Bob")
    await seed.enroll(alice, first_section)
    await seed.enroll(bob, second_section)
    return {
        "alice": alice,
        "bob": bob,
        "first": first_section,
        "second": second_section,
    }


async def holdings(sessionmaker, student_id: str) -> list[tuple[str, str]]:
    async with sessionmaker() as session:
        rows = await session.execute(
            select(Registration.section_id, Registration.registration_type).where(
                Registration.student_id == student_id
            )
        )
        return [tuple(row) for row in rows]


async def request_status(sessionmaker, request_id: str) -> str:
    async with sessionmaker() as session:
        return (await session.get(SwapRequest, request_id)).status


class TestCreate:
    """Tests for create_swap_request()."""

    @pytest.mark.asyncio
    async def test_requester_clash_persists_nothing(self, service, seed, pair, db_sessionmaker) -> None:
        await seed.enroll(
            pair["alice"],
            await seed.section(await seed.subject("CS200"), meetings=[("wednesday", "15:00", "17:00")]),
        )

        with pytest.raises(ScheduleClashError) as exc_info:
            await service.create_swap_request(pair["alice"], pair["first"], pair["bob"], pair["second"])

        error = exc_info.value
        assert error.party == "requester"
        assert error.message.startswith("Requester would have schedule clash: ")
        assert error.details["existing"]["subject_code"] == "CS200"
        assert error.details["existing"]["start_time"] == "15:00"
        async with db_sessionmaker() as session:
            count = (await session.execute(select(func.count(SwapRequest.id)))).scalar_one()
        assert count == 0

    @pytest.mark.asyncio
    async def test_target_clash(self, service, seed, pair) -> None:
        await seed.enroll(
            pair["bob"],
            await seed.section(await seed.subject("CS300"), meetings=[("monday", "10:00", "12:00")]),
        )

        with pytest.raises(ScheduleClashError) as exc_info:
            await service.create_swap_request(pair["alice"], pair["first"], pair["bob"], pair["second"])

        assert exc_info.value.party == "target"

    @pytest.mark.asyncio
    async def test_creates_pending_request(self, service, pair, event_bus, published) -> None:
        response = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )
        await event_bus.drain()

        assert response.status == RequestStatus.PENDING.value
        assert response.requester_name == "Alice"
        assert response.target_section_number == "2"
        assert [e.event_type for e in published] == [EventTypes.Swap.REQUESTED]

    @pytest.mark.asyncio
    async def test_duplicate_pending_request(self, service, pair) -> None:
        await service.create_swap_request(pair["alice"], pair["first"], pair["bob"], pair["second"])

        with pytest.raises(InvalidRequestStateError, match="pending swap request already exists"):
            await service.create_swap_request(pair["bob"], pair["second"], pair["alice"], pair["first"])

    @pytest.mark.asyncio
    async def test_section_not_held(self, service, pair) -> None:
        with pytest.raises(EnrollmentNotFoundError, match="Requester is not registered"):
            await service.create_swap_request(pair["alice"], pair["second"], pair["bob"], pair["first"])

    @pytest.mark.asyncio
    async def test_different_subjects(self, service, seed, pair) -> None:
        other = await seed.section(await seed.subject("CS400"), meetings=[("friday", "09:00", "10:00")])
        await seed.enroll(pair["bob"], other)

        with pytest.raises(InvalidInputError, match="same subject"):
            await service.create_swap_request(pair["alice"], pair["first"], pair["bob"], other)


class TestRespond:
    """Tests for respond_to_swap_request()."""

    @pytest.mark.asyncio
    async def test_accept_exchanges_sections(
        self, service, pair, db_sessionmaker, load_section, event_bus, published
    ) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )

        response = await service.respond_to_swap_request(created.id, pair["bob"], accept=True)
        await event_bus.drain()

        assert response.status == RequestStatus.APPROVED.value
        assert response.approved_at is not None
        assert await holdings(db_sessionmaker, pair["alice"]) == [(pair["second"], "swap")]
        assert await holdings(db_sessionmaker, pair["bob"]) == [(pair["first"], "swap")]
        assert (await load_section(pair["first"])).enrolled_count == 1
        assert (await load_section(pair["second"])).enrolled_count == 1
        assert published[-1].event_type == EventTypes.Swap.APPROVED

    @pytest.mark.asyncio
    async def test_reject(self, service, pair, db_sessionmaker) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )

        response = await service.respond_to_swap_request(
            created.id, pair["bob"], accept=False, reason="Prefer my slot"
        )

        assert response.status == RequestStatus.REJECTED.value
        assert response.response_reason == "Prefer my slot"
        assert await holdings(db_sessionmaker, pair["alice"]) == [(pair["first"], "normal")]

    @pytest.mark.asyncio
    async def test_only_target_may_respond(self, service, pair, db_sessionmaker) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )

        with pytest.raises(AuthorizationDeniedError):
            await service.respond_to_swap_request(created.id, pair["alice"], accept=True)

        assert await request_status(db_sessionmaker, created.id) == RequestStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_clash_gained_after_creation_keeps_request_pending(
        self, service, seed, pair, db_sessionmaker
    ) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )
        await seed.enroll(
            pair["alice"],
            await seed.section(await seed.subject("CS200"), meetings=[("wednesday", "15:00", "17:00")]),
        )

        with pytest.raises(ScheduleClashError):
            await service.respond_to_swap_request(created.id, pair["bob"], accept=True)

        assert await request_status(db_sessionmaker, created.id) == RequestStatus.PENDING.value
        assert (pair["first"], "normal") in await holdings(db_sessionmaker, pair["alice"])

    @pytest.mark.asyncio
    async def test_resolved_request_cannot_be_answered(self, service, pair) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )
        await service.respond_to_swap_request(created.id, pair["bob"], accept=False)

        with pytest.raises(InvalidRequestStateError, match="already rejected"):
            await service.respond_to_swap_request(created.id, pair["bob"], accept=True)


class TestCancelAndDelete:
    """Tests for cancel_swap_request() and delete_swap_request()."""

    @pytest.mark.asyncio
    async def test_cancel_then_delete(self, service, pair, db_sessionmaker) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )

        with pytest.raises(InvalidRequestStateError):
            await service.delete_swap_request(created.id, pair["alice"])

        cancelled = await service.cancel_swap_request(created.id, pair["alice"])
        assert cancelled.status == RequestStatus.CANCELLED.value

        await service.delete_swap_request(created.id, pair["bob"])
        async with db_sessionmaker() as session:
            assert await session.get(SwapRequest, created.id) is None

    @pytest.mark.asyncio
    async def test_only_requester_may_cancel(self, service, pair) -> None:
        created = await service.create_swap_request(
            pair["alice"], pair["first"], pair["bob"], pair["second"]
        )

        with pytest.raises(AuthorizationDeniedError):
            await service.cancel_swap_request(created.id, pair["bob"])


class TestListing:
    """Tests for the swap request listings."""

    @pytest.mark.asyncio
    async def test_student_and_lecturer_views(self, service, seed) -> None:
        lecturer = await seed.staff()
        subject = await seed.subject("CS101")
        taught = await seed.section(subject, "1", lecturer_id=lecturer)
        other = await seed.section(subject, "2", meetings=[("friday", "09:00", "11:00")])
        alice = await seed.student()
        bob = await seed.student()
        await seed.enroll(alice, taught)
        await seed.enroll(bob, other)
        created = await service.create_swap_request(alice, taught, bob, other)

        assert [r.id for r in await service.list_swap_requests(bob)] == [created.id]
        assert await service.list_swap_requests(bob, RequestStatus.APPROVED) == []
        assert [r.id for r in await service.list_swap_requests_for_lecturer(lecturer)] == [created.id]
