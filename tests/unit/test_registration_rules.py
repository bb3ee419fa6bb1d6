# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for registration rules that need no database."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from coursereg.domains.drop import DropRequestService
from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    IneligibleError,
    InvalidInputError,
)
from coursereg.domains.manual_join import ManualJoinService
from coursereg.domains.registration import RegistrationService
from coursereg.domains.registration.ledger import CapacitySnapshot, LedgerCheck
from coursereg.domains.registration.queries import authorize_section_approver
from coursereg.domains.swap import SwapService
from coursereg.infrastructure.database.models import User, UserRole
from coursereg.infrastructure.events import EventBus

pytestmark = pytest.mark.unit


@pytest.fixture
def mock_db():
    """Create mock database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def sample_student():
    """Create a sample student in semester 3 of CS."""
    student = MagicMock()
    student.id = str(uuid4())
    student.semester = 3
    student.programme = "CS"
    return student


@pytest.fixture
def sample_section():
    """Create a sample section of a semester 2 CS subject."""
    section = MagicMock()
    section.id = str(uuid4())
    section.lecturer_id = None
    section.subject.code = "CS201"
    section.subject.semester = 2
    section.subject.programme = "CS"
    return section


class TestEligibility:
    """Tests for RegistrationService.check_eligibility."""

    @pytest.mark.asyncio
    async def test_earlier_semester_allowed(self, mock_db, sample_student, sample_section) -> None:
        service = RegistrationService(db=mock_db, event_bus=EventBus())

        with patch(
            "coursereg.domains.registration.service.queries.is_offered_to_programme",
            new=AsyncMock(return_value=True),
        ):
            await service.check_eligibility(sample_student, sample_section)

    @pytest.mark.asyncio
    async def test_later_semester_rejected(self, mock_db, sample_student, sample_section) -> None:
        sample_section.subject.semester = 5
        service = RegistrationService(db=mock_db, event_bus=EventBus())

        with pytest.raises(IneligibleError) as exc_info:
            await service.check_eligibility(sample_student, sample_section)

        assert exc_info.value.message == (
            "Cannot register for semester 5 subject. You are in semester 3."
        )

    @pytest.mark.asyncio
    async def test_student_without_semester_rejected(self, mock_db, sample_student, sample_section) -> None:
        sample_student.semester = None
        service = RegistrationService(db=mock_db, event_bus=EventBus())

        with pytest.raises(IneligibleError) as exc_info:
            await service.check_eligibility(sample_student, sample_section)

        assert "no semester assigned" in exc_info.value.message
        assert "None" not in exc_info.value.message
        assert exc_info.value.details["student_semester"] is None

    @pytest.mark.asyncio
    async def test_other_programme_rejected(self, mock_db, sample_student, sample_section) -> None:
        sample_section.subject.programme = "EE"
        service = RegistrationService(db=mock_db, event_bus=EventBus())

        with patch(
            "coursereg.domains.registration.service.queries.is_offered_to_programme",
            new=AsyncMock(return_value=False),
        ):
            with pytest.raises(IneligibleError, match="CS201 is not offered to programme CS"):
                await service.check_eligibility(sample_student, sample_section)

    @pytest.mark.asyncio
    async def test_validate_schedule_requires_sections(self, mock_db) -> None:
        service = RegistrationService(db=mock_db, event_bus=EventBus())

        with pytest.raises(InvalidInputError, match="At least one section is required"):
            await service.validate_schedule([])

        mock_db.execute.assert_not_awaited()


class TestInputChecksBeforeStore:
    """Malformed input is rejected before any query runs."""

    @pytest.mark.asyncio
    async def test_manual_join_short_reason(self, mock_db, registration_settings) -> None:
        service = ManualJoinService(db=mock_db, settings=registration_settings, event_bus=EventBus())

        with pytest.raises(InvalidInputError, match="at least 10 characters"):
            await service.create_request("s1", "sec1", "please")

        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drop_short_reason(self, mock_db, registration_settings) -> None:
        service = DropRequestService(db=mock_db, settings=registration_settings, event_bus=EventBus())

        with pytest.raises(InvalidInputError):
            await service.create_request("s1", "reg1", "bye")

        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_manual_join_reject_requires_reason(self, mock_db, registration_settings) -> None:
        service = ManualJoinService(db=mock_db, settings=registration_settings, event_bus=EventBus())

        with pytest.raises(InvalidInputError, match="Rejection reason is required"):
            await service.reject("r1", "lecturer1", "   ")

    @pytest.mark.asyncio
    async def test_swap_with_self(self, mock_db) -> None:
        service = SwapService(db=mock_db, event_bus=EventBus())

        with pytest.raises(InvalidInputError, match="Cannot create a swap request with yourself"):
            await service.create_swap_request("s1", "sec1", "s1", "sec2")

    @pytest.mark.asyncio
    async def test_swap_same_section(self, mock_db) -> None:
        service = SwapService(db=mock_db, event_bus=EventBus())

        with pytest.raises(InvalidInputError, match="already in the same section"):
            await service.create_swap_request("s1", "sec1", "s2", "sec1")


class TestApproverScope:
    """Tests for authorize_section_approver."""

    def _user(self, role: UserRole) -> User:
        return User(id=str(uuid4()), email=f"{role.value}@example.edu", full_name="Staff", role=role.value)

    def test_global_approvers_pass(self, sample_section) -> None:
        authorize_section_approver(self._user(UserRole.HOP), sample_section)
        authorize_section_approver(self._user(UserRole.ADMIN), sample_section)

    def test_lecturer_of_section_passes(self, sample_section) -> None:
        lecturer = self._user(UserRole.LECTURER)
        sample_section.lecturer_id = lecturer.id

        authorize_section_approver(lecturer, sample_section)

    def test_other_lecturer_denied(self, sample_section) -> None:
        sample_section.lecturer_id = str(uuid4())

        with pytest.raises(AuthorizationDeniedError):
            authorize_section_approver(self._user(UserRole.LECTURER), sample_section)

    def test_student_denied(self, sample_section) -> None:
        with pytest.raises(AuthorizationDeniedError):
            authorize_section_approver(self._user(UserRole.STUDENT), sample_section)


class TestLedgerValues:
    """Tests for ledger value objects."""

    def test_snapshot_over_capacity(self) -> None:
        snapshot = CapacitySnapshot(section_id="s", capacity=30, enrolled_count=31)

        assert snapshot.available_seats == 0
        assert snapshot.is_full

    def test_snapshot_with_room(self) -> None:
        snapshot = CapacitySnapshot(section_id="s", capacity=30, enrolled_count=12)

        assert snapshot.available_seats == 18
        assert not snapshot.is_full

    def test_ledger_check(self) -> None:
        assert LedgerCheck("s", cached_count=3, actual_count=3).consistent
        assert not LedgerCheck("s", cached_count=4, actual_count=3).consistent
