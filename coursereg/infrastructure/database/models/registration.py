# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment ledger rows."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coursereg.infrastructure.database.models.base import Base, IdMixin, TimestampMixin
from coursereg.infrastructure.database.models.catalog import Section
from coursereg.utils.datetime import utc_now


class RegistrationType(str, Enum):
    """How a registration came to exist."""

    NORMAL = "normal"
    MANUAL = "manual"
    SWAP = "swap"


class Registration(IdMixin, TimestampMixin, Base):
    """A student's seat in one section.

    subject_id duplicates section.subject_id so the store itself rejects a
    second registration for the same subject when two writers race.
    """

    __tablename__ = "registrations"

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    registration_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RegistrationType.NORMAL.value
    )
    approved_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    section: Mapped[Section] = relationship(lazy="selectin", foreign_keys=[section_id])

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_registrations_student_subject"),
    )

    def __repr__(self) -> str:
        return f"<Registration(student={self.student_id}, section={self.section_id}, type={self.registration_type})>"
