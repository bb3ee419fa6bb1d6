# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course catalog: subjects, programme structures, sections and schedules."""

from datetime import time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coursereg.infrastructure.database.models.base import Base, IdMixin, TimestampMixin


class Subject(IdMixin, TimestampMixin, Base):
    """A course offered to one programme in one semester.

    The same code may exist under several programmes. A subject owned by one
    programme can also be shared into another through a programme structure.
    """

    __tablename__ = "subjects"

    code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    programme: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("code", "programme", name="uq_subjects_code_programme"),
        CheckConstraint("semester >= 1", name="ck_subjects_semester"),
    )

    def __repr__(self) -> str:
        return f"<Subject(code={self.code}, programme={self.programme})>"


class ProgramStructure(IdMixin, TimestampMixin, Base):
    """Curriculum of one programme intake, used to share subjects across programmes."""

    __tablename__ = "program_structures"

    programme: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    intake_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    effective_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ProgramStructureCourse(IdMixin, Base):
    """Link from a programme structure to a subject it includes."""

    __tablename__ = "program_structure_courses"

    structure_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("program_structures.id", ondelete="CASCADE"), nullable=False
    )
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("structure_id", "subject_id", name="uq_structure_courses_subject"),
    )


class Section(IdMixin, TimestampMixin, Base):
    """A scheduled offering of a subject with a seat limit.

    enrolled_count caches the number of registrations referencing the
    section. It is only ever changed by the capacity ledger, inside the same
    transaction as the registration insert or delete that caused it.
    """

    __tablename__ = "sections"

    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section_number: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    enrolled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lecturer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    subject: Mapped[Subject] = relationship(lazy="selectin")
    schedules: Mapped[list["SectionSchedule"]] = relationship(
        back_populates="section",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("subject_id", "section_number", name="uq_sections_subject_number"),
        CheckConstraint("capacity >= 0", name="ck_sections_capacity"),
        CheckConstraint("enrolled_count >= 0", name="ck_sections_enrolled_count"),
    )

    @property
    def available_seats(self) -> int:
        """Seats left before the section is full (never negative)."""
        return max(self.capacity - self.enrolled_count, 0)

    def __repr__(self) -> str:
        return f"<Section(id={self.id}, number={self.section_number}, {self.enrolled_count}/{self.capacity})>"


class SectionSchedule(IdMixin, Base):
    """One weekly meeting of a section."""

    __tablename__ = "section_schedules"

    section_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    building: Mapped[str | None] = mapped_column(String(100), nullable=True)

    section: Mapped[Section] = relationship(back_populates="schedules")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_section_schedules_times"),
        CheckConstraint(
            "day IN ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')",
            name="ck_section_schedules_day",
        ),
    )
