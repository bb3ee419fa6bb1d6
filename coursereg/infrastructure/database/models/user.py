# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Users: students, lecturers and global approvers."""

from enum import Enum

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coursereg.infrastructure.database.models.base import Base, IdMixin, TimestampMixin


class UserRole(str, Enum):
    """Role of a user account."""

    STUDENT = "student"
    LECTURER = "lecturer"
    HOP = "hop"
    ADMIN = "admin"


GLOBAL_APPROVER_ROLES = frozenset({UserRole.HOP.value, UserRole.ADMIN.value})


class User(IdMixin, TimestampMixin, Base):
    """A person known to the registration system.

    Students carry a semester ordinal and a programme code. Lecturers are
    linked to the sections they teach through Section.lecturer_id.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.STUDENT.value)
    student_number: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    programme: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_student(self) -> bool:
        """Check if the user is a student."""
        return self.role == UserRole.STUDENT.value

    @property
    def is_global_approver(self) -> bool:
        """Check if the user may approve requests for any section."""
        return self.role in GLOBAL_APPROVER_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
