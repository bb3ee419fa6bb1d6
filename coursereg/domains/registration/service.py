# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Registration engine.

This module provides the RegistrationService class for:
- Admitting a student into a section (eligibility, duplicate subject,
  capacity and timetable checks, then the ledger write)
- Removing a registration
- Read models: a student's registrations, sections open to them,
  capacity snapshots and clash previews

register() and unregister() each run as one transaction. admit() and
remove() are the same steps without the commit, for workflows that embed
them in a larger unit (manual-join approval, drop approval).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.domains.exceptions import (
    CapacityExceededError,
    DuplicateEnrollmentError,
    IneligibleError,
    InvalidInputError,
    ScheduleClashError,
)
from coursereg.domains.registration import queries
from coursereg.domains.registration.ledger import CapacityLedger, LedgerCheck
from coursereg.domains.registration.schemas import (
    CapacityResponse,
    RegistrationResponse,
    ScheduleCheckResponse,
    SectionSummary,
    clash_to_response,
    registration_to_response,
    section_to_summary,
    snapshot_to_response,
)
from coursereg.domains.scheduling.overlap import (
    find_all_clashes,
    find_clash,
    find_pairwise_clashes,
)
from coursereg.infrastructure.database.connection import atomic
from coursereg.infrastructure.database.models import (
    ProgramStructure,
    ProgramStructureCourse,
    Registration,
    RegistrationType,
    Section,
    Subject,
    User,
)
from coursereg.infrastructure.events import EventBus, EventTypes, get_event_bus

logger = logging.getLogger(__name__)


@dataclass
class Admission:
    """Rows touched by a successful admission."""

    registration: Registration
    section: Section
    student: User


def registration_event_payload(
    student: User,
    section: Section,
    registration: Registration | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the event payload describing a student and a section."""
    payload: dict[str, Any] = {
        "student_id": student.id,
        "student_email": student.email,
        "student_name": student.full_name,
        "section_id": section.id,
        "section_number": section.section_number,
        "subject_code": section.subject.code,
        "subject_name": section.subject.name,
        "schedule": [
            entry.slot.label for entry in queries.section_entries(section)
        ],
    }
    if registration is not None:
        payload["registration_id"] = registration.id
        payload["registration_type"] = registration.registration_type
    payload.update(extra)
    return payload


class RegistrationService:
    """Service for admitting students into sections and removing them.

    Attributes:
        db: Async database session.
        ledger: Capacity ledger writing into the same session.
    """

    def __init__(self, db: AsyncSession, event_bus: EventBus | None = None) -> None:
        """Initialize registration service.

        Args:
            db: Async database session.
            event_bus: Bus for outcome events. Defaults to the process-wide bus.
        """
        self.db = db
        self.ledger = CapacityLedger(db)
        self._events = event_bus or get_event_bus()

    async def register(
        self,
        student_id: str,
        section_id: str,
        *,
        registration_type: RegistrationType = RegistrationType.NORMAL,
        approved_by: str | None = None,
    ) -> RegistrationResponse:
        """Register a student into a section.

        Args:
            student_id: Student being registered.
            section_id: Target section.
            registration_type: Type tag for the registration. MANUAL skips
                the capacity limit.
            approved_by: Approver recorded on the registration.

        Returns:
            The committed registration.

        Raises:
            StudentNotFoundError: If the student is missing or inactive.
            SectionNotFoundError: If the section is missing or inactive.
            IneligibleError: On a semester or programme mismatch.
            DuplicateEnrollmentError: If a section of the subject is already held.
            CapacityExceededError: If the section is full (normal path).
            ScheduleClashError: If the section clashes with the timetable.
        """
        async with atomic(self.db):
            admission = await self.admit(
                student_id,
                section_id,
                registration_type=registration_type,
                approved_by=approved_by,
            )
            response = registration_to_response(admission.registration, admission.section)

        logger.info(
            "Registered student: student=%s, section=%s, type=%s, enrolled=%d/%d",
            student_id,
            section_id,
            admission.registration.registration_type,
            admission.section.enrolled_count,
            admission.section.capacity,
        )
        self._events.publish_background(
            EventTypes.Registration.CREATED,
            registration_event_payload(admission.student, admission.section, admission.registration),
        )
        return response

    async def admit(
        self,
        student_id: str,
        section_id: str,
        *,
        registration_type: RegistrationType = RegistrationType.NORMAL,
        approved_by: str | None = None,
    ) -> Admission:
        """Run every admission check and write the registration, without committing.

        Raises:
            Same as register().
        """
        student = await queries.get_student(self.db, student_id, lock=True)
        section = await queries.get_section(self.db, section_id, lock=True)
        await self.check_eligibility(student, section)

        existing = await queries.get_subject_registration(self.db, student.id, section.subject_id)
        if existing is not None:
            held = await queries.get_section(self.db, existing.section_id, active_only=False)
            raise DuplicateEnrollmentError(
                f"Already registered for {section.subject.code} (Section {held.section_number}). "
                "Cannot register for multiple sections of the same subject.",
                {
                    "subject_code": section.subject.code,
                    "registration_id": existing.id,
                    "section_id": held.id,
                    "section_number": held.section_number,
                },
            )

        bypass = registration_type == RegistrationType.MANUAL
        if not bypass and section.enrolled_count >= section.capacity:
            raise CapacityExceededError(
                "Section is at full capacity",
                {
                    "section_id": section.id,
                    "capacity": section.capacity,
                    "enrolled_count": section.enrolled_count,
                },
            )

        commitments = await queries.load_commitments(self.db, student.id)
        clash = find_clash(queries.section_entries(section), commitments)
        if clash is not None:
            raise ScheduleClashError(clash.message, clash)

        await self.ledger.claim_seat(section, bypass=bypass)
        registration = Registration(
            student_id=student.id,
            section_id=section.id,
            subject_id=section.subject_id,
            registration_type=RegistrationType(registration_type).value,
            approved_by=approved_by,
        )
        self.db.add(registration)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateEnrollmentError(
                f"Already registered for {section.subject.code}. "
                "Cannot register for multiple sections of the same subject.",
                {"subject_code": section.subject.code},
            ) from e

        return Admission(registration=registration, section=section, student=student)

    async def check_eligibility(self, student: User, section: Section) -> None:
        """Check semester and programme rules for a student and a section.

        Subjects from the student's semester or earlier are allowed. The
        subject must belong to, or be shared into, the student's programme.

        Raises:
            IneligibleError: If either rule fails.
        """
        subject = section.subject
        if student.semester is None:
            raise IneligibleError(
                "Cannot register: you have no semester assigned. Contact your programme office.",
                {"subject_semester": subject.semester, "student_semester": None},
            )
        if subject.semester > student.semester:
            raise IneligibleError(
                f"Cannot register for semester {subject.semester} subject. "
                f"You are in semester {student.semester}.",
                {"subject_semester": subject.semester, "student_semester": student.semester},
            )
        if not await queries.is_offered_to_programme(self.db, subject, student.programme):
            raise IneligibleError(
                f"{subject.code} is not offered to programme {student.programme}",
                {"subject_programme": subject.programme, "student_programme": student.programme},
            )

    async def unregister(self, student_id: str, registration_id: str) -> RegistrationResponse:
        """Remove a student's registration.

        Args:
            student_id: Student who owns the registration.
            registration_id: Registration to remove.

        Returns:
            The removed registration.

        Raises:
            EnrollmentNotFoundError: If it does not exist or belongs to someone else.
        """
        async with atomic(self.db):
            registration, section = await self.remove(student_id, registration_id)
            student = await self.db.get(User, student_id)
            response = registration_to_response(registration, section)

        logger.info(
            "Unregistered student: student=%s, section=%s, enrolled=%d/%d",
            student_id,
            section.id,
            section.enrolled_count,
            section.capacity,
        )
        self._events.publish_background(
            EventTypes.Registration.REMOVED,
            registration_event_payload(student, section, registration),
        )
        return response

    async def remove(self, student_id: str, registration_id: str) -> tuple[Registration, Section]:
        """Delete a registration and release its seat, without committing.

        Raises:
            EnrollmentNotFoundError: If it does not exist or belongs to someone else.
        """
        registration = await queries.get_student_registration(self.db, student_id, registration_id)
        section = await queries.get_section(
            self.db, registration.section_id, lock=True, active_only=False
        )
        await self.db.delete(registration)
        await self.db.flush()
        await self.ledger.release_seat(section)
        return registration, section

    async def list_student_registrations(self, student_id: str) -> list[RegistrationResponse]:
        """List a student's registrations ordered by subject code and section.

        Raises:
            StudentNotFoundError: If the student is missing or inactive.
        """
        async with atomic(self.db):
            await queries.get_student(self.db, student_id)
            stmt = (
                select(Registration)
                .join(Section, Section.id == Registration.section_id)
                .join(Subject, Subject.id == Section.subject_id)
                .where(Registration.student_id == student_id)
                .order_by(Subject.code, Section.section_number)
            )
            registrations = (await self.db.execute(stmt)).scalars().all()
            return [registration_to_response(r, r.section) for r in registrations]

    async def list_available_sections(self, student_id: str) -> list[SectionSummary]:
        """List active sections offered to the student's programme and semester.

        Includes subjects shared into the programme through an active
        programme structure for that semester.

        Raises:
            StudentNotFoundError: If the student is missing or inactive.
        """
        async with atomic(self.db):
            student = await queries.get_student(self.db, student_id)
            shared = (
                select(ProgramStructureCourse.subject_id)
                .join(ProgramStructure, ProgramStructure.id == ProgramStructureCourse.structure_id)
                .where(
                    ProgramStructure.programme == student.programme,
                    ProgramStructure.is_active.is_(True),
                    ProgramStructureCourse.semester == student.semester,
                )
            )
            stmt = (
                select(Section)
                .join(Subject, Subject.id == Section.subject_id)
                .where(
                    Section.is_active.is_(True),
                    Subject.is_active.is_(True),
                    or_(
                        and_(
                            Subject.programme == student.programme,
                            Subject.semester == student.semester,
                        ),
                        Subject.id.in_(shared),
                    ),
                )
                .order_by(Subject.code, Section.section_number)
            )
            sections = (await self.db.execute(stmt)).scalars().all()
            return [section_to_summary(section) for section in sections]

    async def check_capacity(self, section_id: str) -> CapacityResponse:
        """Get capacity, enrolled count and remaining seats of a section.

        Raises:
            SectionNotFoundError: If the section does not exist.
        """
        async with atomic(self.db):
            return snapshot_to_response(await self.ledger.snapshot(section_id))

    async def verify_ledger(self, section_id: str) -> LedgerCheck:
        """Recount a section's registrations and compare with the cached count."""
        async with atomic(self.db):
            return await self.ledger.verify(section_id)

    async def preview_conflicts(self, student_id: str, section_id: str) -> ScheduleCheckResponse:
        """List every clash a section would cause on a student's timetable.

        Nothing is written. A section the student already holds is left out
        of their timetable for the comparison.

        Raises:
            StudentNotFoundError: If the student is missing or inactive.
            SectionNotFoundError: If the section is missing or inactive.
        """
        async with atomic(self.db):
            student = await queries.get_student(self.db, student_id)
            section = await queries.get_section(self.db, section_id)
            commitments = await queries.load_commitments(
                self.db, student.id, exclude_section_ids=[section.id]
            )
            clashes = find_all_clashes(queries.section_entries(section), commitments)

        return ScheduleCheckResponse(
            has_clash=bool(clashes),
            clashes=[clash_to_response(clash) for clash in clashes],
        )

    async def validate_schedule(self, section_ids: Iterable[str]) -> ScheduleCheckResponse:
        """Check a set of sections for clashes among themselves.

        Raises:
            InvalidInputError: If no section id is given.
            SectionNotFoundError: If any section is missing or inactive.
        """
        unique_ids = list(dict.fromkeys(section_ids))
        if not unique_ids:
            raise InvalidInputError("At least one section is required")

        async with atomic(self.db):
            entries = []
            for section_id in unique_ids:
                section = await queries.get_section(self.db, section_id)
                entries.extend(queries.section_entries(section))
            clashes = find_pairwise_clashes(entries)

        return ScheduleCheckResponse(
            has_clash=bool(clashes),
            clashes=[clash_to_response(clash) for clash in clashes],
        )
