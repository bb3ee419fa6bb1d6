# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Store lookups shared by the registration workflows.

Every function here reads through the caller's session so the rows it
returns belong to the caller's unit of work. Passing lock=True takes a row
lock (SELECT ... FOR UPDATE) on databases that support it; on SQLite the
whole transaction already holds the write lock.
"""

from collections.abc import Iterable

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    EnrollmentNotFoundError,
    SectionNotFoundError,
    StudentNotFoundError,
)
from coursereg.domains.scheduling.overlap import EntrySource, ScheduleEntry, TimeSlot, Weekday
from coursereg.infrastructure.database.models import (
    ProgramStructure,
    ProgramStructureCourse,
    Registration,
    Section,
    Subject,
    User,
    UserRole,
)


async def get_student(db: AsyncSession, student_id: str, *, lock: bool = False) -> User:
    """Load an active student.

    Raises:
        StudentNotFoundError: If the user is missing, inactive or not a student.
    """
    stmt = select(User).where(
        User.id == student_id,
        User.role == UserRole.STUDENT.value,
        User.is_active.is_(True),
    )
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    student = (await db.execute(stmt)).scalar_one_or_none()
    if student is None:
        raise StudentNotFoundError(
            "Student not found or inactive", {"student_id": student_id}
        )
    return student


async def get_user(db: AsyncSession, user_id: str) -> User:
    """Load an active user of any role.

    Raises:
        AuthorizationDeniedError: If the user is missing or inactive.
    """
    stmt = select(User).where(User.id == user_id, User.is_active.is_(True))
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise AuthorizationDeniedError("Unknown or inactive user", {"user_id": user_id})
    return user


async def get_section(
    db: AsyncSession,
    section_id: str,
    *,
    lock: bool = False,
    active_only: bool = True,
) -> Section:
    """Load a section with its subject and schedule.

    A section whose subject is inactive counts as inactive.

    Raises:
        SectionNotFoundError: If the section is missing or inactive.
    """
    stmt = select(Section).where(Section.id == section_id)
    if lock:
        stmt = stmt.with_for_update(of=Section).execution_options(populate_existing=True)
    section = (await db.execute(stmt)).scalar_one_or_none()
    if section is None or (
        active_only and not (section.is_active and section.subject.is_active)
    ):
        raise SectionNotFoundError(
            "Section not found or inactive", {"section_id": section_id}
        )
    return section


async def get_student_registration(
    db: AsyncSession,
    student_id: str,
    registration_id: str,
) -> Registration:
    """Load a registration owned by the student.

    Raises:
        EnrollmentNotFoundError: If it does not exist or belongs to someone else.
    """
    stmt = select(Registration).where(
        Registration.id == registration_id,
        Registration.student_id == student_id,
    )
    registration = (await db.execute(stmt)).scalar_one_or_none()
    if registration is None:
        raise EnrollmentNotFoundError(
            "Registration not found or does not belong to student",
            {"registration_id": registration_id, "student_id": student_id},
        )
    return registration


async def get_registration_in_section(
    db: AsyncSession,
    student_id: str,
    section_id: str,
) -> Registration | None:
    """Find the student's registration in a specific section."""
    stmt = select(Registration).where(
        Registration.student_id == student_id,
        Registration.section_id == section_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_subject_registration(
    db: AsyncSession,
    student_id: str,
    subject_id: str,
) -> Registration | None:
    """Find the student's registration in any section of a subject."""
    stmt = select(Registration).where(
        Registration.student_id == student_id,
        Registration.subject_id == subject_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def is_offered_to_programme(db: AsyncSession, subject: Subject, programme: str | None) -> bool:
    """Check whether a subject may be taken by students of a programme.

    True when the subject belongs to the programme, when the programme has
    its own active subject with the same code, or when an active programme
    structure of that programme includes the subject.
    """
    if programme is None:
        return False
    if subject.programme == programme:
        return True

    same_code = select(Subject.id).where(
        Subject.code == subject.code,
        Subject.programme == programme,
        Subject.is_active.is_(True),
    )
    if (await db.execute(same_code.limit(1))).first() is not None:
        return True

    shared = (
        select(ProgramStructureCourse.id)
        .join(ProgramStructure, ProgramStructure.id == ProgramStructureCourse.structure_id)
        .where(
            ProgramStructure.programme == programme,
            ProgramStructure.is_active.is_(True),
            ProgramStructureCourse.subject_id == subject.id,
        )
    )
    return (await db.execute(shared.limit(1))).first() is not None


def section_entries(
    section: Section,
    source: EntrySource = EntrySource.CANDIDATE,
) -> list[ScheduleEntry]:
    """Convert a section's meetings into overlap-checker entries."""
    return [
        ScheduleEntry(
            slot=TimeSlot(Weekday.parse(meeting.day), meeting.start_time, meeting.end_time),
            section_id=section.id,
            section_number=section.section_number,
            subject_code=section.subject.code,
            subject_name=section.subject.name,
            source=source,
            room=meeting.room,
        )
        for meeting in section.schedules
    ]


async def load_commitments(
    db: AsyncSession,
    person_id: str,
    *,
    exclude_section_ids: Iterable[str] = (),
) -> list[ScheduleEntry]:
    """Load everything on a person's weekly timetable.

    The timetable is the union of sections the person is registered in and
    active sections the person teaches.

    Args:
        db: Session of the current unit of work.
        person_id: User whose timetable is loaded.
        exclude_section_ids: Sections to leave out, e.g. the one being swapped away.

    Returns:
        Entries for every meeting of every committed section.
    """
    excluded = set(exclude_section_ids)

    enrolled_stmt = (
        select(Section)
        .join(Registration, Registration.section_id == Section.id)
        .where(Registration.student_id == person_id)
    )
    teaching_stmt = select(Section).where(
        and_(Section.lecturer_id == person_id, Section.is_active.is_(True))
    )

    entries: list[ScheduleEntry] = []
    for stmt, source in (
        (enrolled_stmt, EntrySource.ENROLLED),
        (teaching_stmt, EntrySource.TEACHING),
    ):
        for section in (await db.execute(stmt)).scalars().all():
            if section.id in excluded:
                continue
            entries.extend(section_entries(section, source))
    return entries


def authorize_section_approver(approver: User, section: Section) -> None:
    """Check that an approver may decide requests for a section.

    Heads of programme and administrators may act on any section. Lecturers
    may act only on sections they teach.

    Raises:
        AuthorizationDeniedError: If the approver lacks scope.
    """
    if approver.is_global_approver:
        return
    if approver.role == UserRole.LECTURER.value and section.lecturer_id == approver.id:
        return
    raise AuthorizationDeniedError(
        "You are not authorized to manage requests for this section",
        {"approver_id": approver.id, "section_id": section.id},
    )
