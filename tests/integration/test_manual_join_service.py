# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for manual-join requests."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    DuplicateEnrollmentError,
    InvalidInputError,
    InvalidRequestStateError,
    RequestNotFoundError,
    ScheduleClashError,
)
from coursereg.domains.manual_join import ManualJoinService
from coursereg.infrastructure.database.models import (
    ManualJoinRequest,
    Registration,
    RequestStatus,
    UserRole,
)
from coursereg.infrastructure.events import EventTypes

pytestmark = pytest.mark.integration

REASON = "advisor approved, need to graduate"


@pytest.fixture
def service(db_session, registration_settings, event_bus) -> ManualJoinService:
    return ManualJoinService(db=db_session, settings=registration_settings, event_bus=event_bus)


async def load_request(sessionmaker, request_id: str) -> ManualJoinRequest:
    async with sessionmaker() as session:
        return await session.get(ManualJoinRequest, request_id)


class TestCreate:
    """Tests for create_request()."""

    @pytest.mark.asyncio
    async def test_full_section_request_is_pending(self, service, seed, event_bus, published) -> None:
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"), capacity=30, enrolled_count=30)

        response = await service.create_request(student, section, f"  {REASON}  ")
        await event_bus.drain()

        assert response.status == RequestStatus.PENDING.value
        assert response.reason == REASON
        assert response.enrolled_count == 30
        assert [e.event_type for e in published] == [EventTypes.ManualJoin.REQUESTED]

    @pytest.mark.asyncio
    async def test_short_reason(self, service, seed) -> None:
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"))

        with pytest.raises(InvalidInputError, match="at least 10 characters"):
            await service.create_request(student, section, "please")

    @pytest.mark.asyncio
    async def test_already_holding_subject(self, service, seed) -> None:
        student = await seed.student()
        subject = await seed.subject("CS101")
        await seed.enroll(student, await seed.section(subject, "1"))

        with pytest.raises(DuplicateEnrollmentError):
            await service.create_request(student, await seed.section(subject, "2"), REASON)

    @pytest.mark.asyncio
    async def test_second_pending_request(self, service, seed) -> None:
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"))
        await service.create_request(student, section, REASON)

        with pytest.raises(InvalidRequestStateError):
            await service.create_request(student, section, REASON)


class TestApprove:
    """Tests for approve()."""

    @pytest.mark.asyncio
    async def test_approval_goes_over_capacity(
        self, service, seed, db_sessionmaker, load_section, event_bus, published
    ) -> None:
        lecturer = await seed.staff()
        student = await seed.student()
        section = await seed.section(
            await seed.subject("CS101"), capacity=30, enrolled_count=30, lecturer_id=lecturer
        )
        created = await service.create_request(student, section, REASON)

        response = await service.approve(created.id, lecturer, "Room has space")
        await event_bus.drain()

        assert response.status == RequestStatus.APPROVED.value
        assert response.approved_by == lecturer
        assert response.approval_reason == "Room has space"
        assert response.enrolled_count == 31
        assert (await load_section(section)).enrolled_count == 31
        async with db_sessionmaker() as session:
            registration = (
                await session.execute(select(Registration).where(Registration.student_id == student))
            ).scalar_one()
        assert registration.registration_type == "manual"
        assert registration.approved_by == lecturer
        assert published[-1].event_type == EventTypes.ManualJoin.APPROVED

    @pytest.mark.asyncio
    async def test_clash_auto_rejects(
        self, service, seed, db_sessionmaker, load_section, event_bus, published
    ) -> None:
        lecturer = await seed.staff()
        student = await seed.student()
        section = await seed.section(
            await seed.subject("CS101"), capacity=30, enrolled_count=30, lecturer_id=lecturer
        )
        created = await service.create_request(student, section, REASON)
        await seed.enroll(
            student,
            await seed.section(await seed.subject("CS200"), meetings=[("monday", "10:00", "12:00")]),
        )

        with pytest.raises(ScheduleClashError):
            await service.approve(created.id, lecturer)
        await event_bus.drain()

        stored = await load_request(db_sessionmaker, created.id)
        assert stored.status == RequestStatus.REJECTED.value
        assert stored.rejected_by == lecturer
        assert stored.rejection_reason.startswith("Registration failed: CS101")
        assert (await load_section(section)).enrolled_count == 30
        assert published[-1].event_type == EventTypes.ManualJoin.REJECTED

    @pytest.mark.asyncio
    async def test_unexpected_failure_auto_rejects(
        self, service, seed, db_sessionmaker, load_section
    ) -> None:
        lecturer = await seed.staff()
        student = await seed.student()
        section = await seed.section(
            await seed.subject("CS101"), capacity=30, enrolled_count=30, lecturer_id=lecturer
        )
        created = await service.create_request(student, section, REASON)

        with patch.object(
            service.registrations,
            "admit",
            new=AsyncMock(side_effect=ValueError("Unknown weekday: 'tues'")),
        ):
            with pytest.raises(ValueError, match="Unknown weekday"):
                await service.approve(created.id, lecturer)

        stored = await load_request(db_sessionmaker, created.id)
        assert stored.status == RequestStatus.REJECTED.value
        assert stored.rejection_reason == "Registration failed: Unknown weekday: 'tues'"
        assert (await load_section(section)).enrolled_count == 30

    @pytest.mark.asyncio
    async def test_schedule_day_must_be_a_weekday_name(self, seed) -> None:
        subject = await seed.subject("CS101")

        with pytest.raises(IntegrityError):
            await seed.section(subject, meetings=[("tues", "09:00", "10:00")])

    @pytest.mark.asyncio
    async def test_lecturer_of_another_section(self, service, seed, db_sessionmaker) -> None:
        owner = await seed.staff()
        outsider = await seed.staff()
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=owner)
        created = await service.create_request(student, section, REASON)

        with pytest.raises(AuthorizationDeniedError):
            await service.approve(created.id, outsider)

        assert (await load_request(db_sessionmaker, created.id)).status == RequestStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_head_of_programme_may_approve_any_section(self, service, seed) -> None:
        hop = await seed.staff(UserRole.HOP)
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=await seed.staff())
        created = await service.create_request(student, section, REASON)

        response = await service.approve(created.id, hop)

        assert response.status == RequestStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_approve_twice(self, service, seed) -> None:
        lecturer = await seed.staff()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=lecturer)
        created = await service.create_request(await seed.student(), section, REASON)
        await service.approve(created.id, lecturer)

        with pytest.raises(InvalidRequestStateError, match="already approved"):
            await service.approve(created.id, lecturer)


class TestRejectAndHide:
    """Tests for reject() and hide_request()."""

    @pytest.mark.asyncio
    async def test_reject_then_hide(self, service, seed, load_section) -> None:
        lecturer = await seed.staff()
        student = await seed.student()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=lecturer, enrolled_count=4)
        created = await service.create_request(student, section, REASON)

        with pytest.raises(InvalidRequestStateError):
            await service.hide_request(created.id, student)

        rejected = await service.reject(created.id, lecturer, "Section is oversubscribed")
        assert rejected.status == RequestStatus.REJECTED.value
        assert rejected.rejection_reason == "Section is oversubscribed"
        assert (await load_section(section)).enrolled_count == 4

        await service.hide_request(created.id, student)
        assert await service.list_for_student(student) == []
        assert [r.id for r in await service.list_for_lecturer(lecturer, status=None)] == [created.id]

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, service, seed) -> None:
        lecturer = await seed.staff()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=lecturer)
        created = await service.create_request(await seed.student(), section, REASON)

        with pytest.raises(InvalidInputError, match="Rejection reason is required"):
            await service.reject(created.id, lecturer, "   ")

    @pytest.mark.asyncio
    async def test_hide_someone_elses_request(self, service, seed) -> None:
        lecturer = await seed.staff()
        section = await seed.section(await seed.subject("CS101"), lecturer_id=lecturer)
        created = await service.create_request(await seed.student(), section, REASON)
        await service.reject(created.id, lecturer, "No seats")

        with pytest.raises(RequestNotFoundError):
            await service.hide_request(created.id, await seed.student())


class TestListAll:
    """Tests for list_all()."""

    @pytest.mark.asyncio
    async def test_filters_by_programme(self, service, seed) -> None:
        admin = await seed.staff(UserRole.ADMIN)
        cs_section = await seed.section(await seed.subject("CS101"))
        ee_section = await seed.section(await seed.subject("EE101", programme="EE"))
        cs_request = await service.create_request(await seed.student(), cs_section, REASON)
        await service.create_request(await seed.student(programme="EE"), ee_section, REASON)

        assert len(await service.list_all(admin)) == 2
        assert [r.id for r in await service.list_all(admin, programme="CS")] == [cs_request.id]

    @pytest.mark.asyncio
    async def test_lecturer_cannot_list_all(self, service, seed) -> None:
        with pytest.raises(AuthorizationDeniedError):
            await service.list_all(await seed.staff())
