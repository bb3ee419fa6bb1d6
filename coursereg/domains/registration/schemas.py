# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the registration engine."""

from datetime import datetime

from pydantic import BaseModel, Field

from coursereg.domains.registration.ledger import CapacitySnapshot, LedgerCheck
from coursereg.domains.scheduling.overlap import Clash, ScheduleEntry
from coursereg.infrastructure.database.models import Registration, Section
from coursereg.utils.datetime import format_clock


class RegisterRequest(BaseModel):
    """Request to register the caller into a section."""

    section_id: str


class ValidateScheduleRequest(BaseModel):
    """A set of sections to check against each other."""

    section_ids: list[str] = Field(default_factory=list)


class MeetingResponse(BaseModel):
    """One weekly meeting of a section."""

    day: str
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["11:00"])
    room: str | None = None
    building: str | None = None


class SectionSummary(BaseModel):
    """Section with its subject and timetable."""

    id: str
    section_number: str
    subject_id: str
    subject_code: str
    subject_name: str
    credit_hours: int
    semester: int
    programme: str
    capacity: int
    enrolled_count: int
    available_seats: int
    lecturer_id: str | None = None
    schedules: list[MeetingResponse] = Field(default_factory=list)


class RegistrationResponse(BaseModel):
    """A committed registration."""

    id: str
    student_id: str
    registration_type: str
    approved_by: str | None = None
    registered_at: datetime
    section: SectionSummary


class CapacityResponse(BaseModel):
    """Seat usage of a section."""

    section_id: str
    capacity: int
    enrolled_count: int
    available_seats: int
    is_full: bool


class ClashEntryResponse(BaseModel):
    """A meeting that takes part in a clash."""

    section_id: str
    section_number: str
    subject_code: str
    subject_name: str
    source: str
    day: str
    start_time: str
    end_time: str
    room: str | None = None


class ClashResponse(BaseModel):
    """A pair of colliding meetings."""

    message: str
    party: str | None = None
    candidate: ClashEntryResponse
    existing: ClashEntryResponse


class ScheduleCheckResponse(BaseModel):
    """Result of checking a set of sections for clashes."""

    has_clash: bool
    clashes: list[ClashResponse] = Field(default_factory=list)


def section_to_summary(section: Section) -> SectionSummary:
    """Convert a loaded section into its summary model."""
    subject = section.subject
    return SectionSummary(
        id=section.id,
        section_number=section.section_number,
        subject_id=subject.id,
        subject_code=subject.code,
        subject_name=subject.name,
        credit_hours=subject.credit_hours,
        semester=subject.semester,
        programme=subject.programme,
        capacity=section.capacity,
        enrolled_count=section.enrolled_count,
        available_seats=section.available_seats,
        lecturer_id=section.lecturer_id,
        schedules=[
            MeetingResponse(
                day=meeting.day,
                start_time=format_clock(meeting.start_time),
                end_time=format_clock(meeting.end_time),
                room=meeting.room,
                building=meeting.building,
            )
            for meeting in section.schedules
        ],
    )


def registration_to_response(registration: Registration, section: Section) -> RegistrationResponse:
    return RegistrationResponse(
        id=registration.id,
        student_id=registration.student_id,
        registration_type=registration.registration_type,
        approved_by=registration.approved_by,
        registered_at=registration.registered_at,
        section=section_to_summary(section),
    )


def snapshot_to_response(snapshot: CapacitySnapshot) -> CapacityResponse:
    return CapacityResponse(
        section_id=snapshot.section_id,
        capacity=snapshot.capacity,
        enrolled_count=snapshot.enrolled_count,
        available_seats=snapshot.available_seats,
        is_full=snapshot.is_full,
    )


def _entry_to_response(entry: ScheduleEntry) -> ClashEntryResponse:
    return ClashEntryResponse(**entry.to_dict())


def clash_to_response(clash: Clash) -> ClashResponse:
    return ClashResponse(
        message=clash.message,
        party=clash.party,
        candidate=_entry_to_response(clash.candidate),
        existing=_entry_to_response(clash.existing),
    )


class LedgerCheckResponse(BaseModel):
    """Cached seat count compared with the registration rows."""

    section_id: str
    cached_count: int
    actual_count: int
    consistent: bool


def ledger_check_to_response(check: LedgerCheck) -> LedgerCheckResponse:
    return LedgerCheckResponse(
        section_id=check.section_id,
        cached_count=check.cached_count,
        actual_count=check.actual_count,
        consistent=check.consistent,
    )
