# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial enrollment store schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-06
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _user_fk(name: str, *, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(name, sa.String(36), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create enrollment store tables."""
    # =========================================================================
    # USERS AND CATALOG
    # =========================================================================

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("student_number", sa.String(50), nullable=True, unique=True),
        sa.Column("semester", sa.Integer, nullable=True),
        sa.Column("programme", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_programme", "users", ["programme"])

    op.create_table(
        "subjects",
        _id(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("credit_hours", sa.Integer, nullable=False, server_default="3"),
        sa.Column("semester", sa.Integer, nullable=False),
        sa.Column("programme", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("code", "programme", name="uq_subjects_code_programme"),
        sa.CheckConstraint("semester >= 1", name="ck_subjects_semester"),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"])
    op.create_index("ix_subjects_programme", "subjects", ["programme"])

    op.create_table(
        "program_structures",
        _id(),
        sa.Column("programme", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("intake_type", sa.String(50), nullable=True),
        sa.Column("effective_year", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_program_structures_programme", "program_structures", ["programme"])

    op.create_table(
        "program_structure_courses",
        _id(),
        sa.Column(
            "structure_id",
            sa.String(36),
            sa.ForeignKey("program_structures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("semester", sa.Integer, nullable=True),
        sa.UniqueConstraint("structure_id", "subject_id", name="uq_structure_courses_subject"),
    )
    op.create_index(
        "ix_program_structure_courses_subject_id", "program_structure_courses", ["subject_id"]
    )

    op.create_table(
        "sections",
        _id(),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("section_number", sa.String(20), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("enrolled_count", sa.Integer, nullable=False, server_default="0"),
        _user_fk("lecturer_id", nullable=True, ondelete="SET NULL"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("subject_id", "section_number", name="uq_sections_subject_number"),
        sa.CheckConstraint("capacity >= 0", name="ck_sections_capacity"),
        sa.CheckConstraint("enrolled_count >= 0", name="ck_sections_enrolled_count"),
    )
    op.create_index("ix_sections_subject_id", "sections", ["subject_id"])
    op.create_index("ix_sections_lecturer_id", "sections", ["lecturer_id"])

    op.create_table(
        "section_schedules",
        _id(),
        sa.Column(
            "section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day", sa.String(10), nullable=False),
        sa.Column("start_time", sa.Time, nullable=False),
        sa.Column("end_time", sa.Time, nullable=False),
        sa.Column("room", sa.String(50), nullable=True),
        sa.Column("building", sa.String(100), nullable=True),
        sa.CheckConstraint("start_time < end_time", name="ck_section_schedules_times"),
        sa.CheckConstraint(
            "day IN ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')",
            name="ck_section_schedules_day",
        ),
    )
    op.create_index("ix_section_schedules_section_id", "section_schedules", ["section_id"])

    # =========================================================================
    # ENROLLMENT LEDGER
    # =========================================================================

    op.create_table(
        "registrations",
        _id(),
        _user_fk("student_id"),
        sa.Column(
            "section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("registration_type", sa.String(20), nullable=False),
        _user_fk("approved_by", nullable=True, ondelete="SET NULL"),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "subject_id", name="uq_registrations_student_subject"),
    )
    op.create_index("ix_registrations_student_id", "registrations", ["student_id"])
    op.create_index("ix_registrations_section_id", "registrations", ["section_id"])

    # =========================================================================
    # REQUEST WORKFLOWS
    # =========================================================================

    op.create_table(
        "swap_requests",
        _id(),
        _user_fk("requester_id"),
        sa.Column(
            "requester_section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("target_id"),
        sa.Column(
            "target_section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("response_reason", sa.Text, nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_swap_requests_requester_id", "swap_requests", ["requester_id"])
    op.create_index("ix_swap_requests_target_id", "swap_requests", ["target_id"])
    op.create_index("ix_swap_requests_status", "swap_requests", ["status"])

    op.create_table(
        "manual_join_requests",
        _id(),
        _user_fk("student_id"),
        sa.Column(
            "section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _user_fk("approved_by", nullable=True, ondelete="SET NULL"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_reason", sa.Text, nullable=True),
        _user_fk("rejected_by", nullable=True, ondelete="SET NULL"),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("hidden_by_student", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_manual_join_requests_student_id", "manual_join_requests", ["student_id"])
    op.create_index("ix_manual_join_requests_section_id", "manual_join_requests", ["section_id"])

    op.create_table(
        "drop_requests",
        _id(),
        _user_fk("student_id"),
        sa.Column(
            "registration_id",
            sa.String(36),
            sa.ForeignKey("registrations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "section_id",
            sa.String(36),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _user_fk("reviewed_by", nullable=True, ondelete="SET NULL"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_drop_requests_student_id", "drop_requests", ["student_id"])
    op.create_index("ix_drop_requests_registration_id", "drop_requests", ["registration_id"])
    op.create_index("ix_drop_requests_section_id", "drop_requests", ["section_id"])


def downgrade() -> None:
    """Drop enrollment store tables."""
    op.drop_table("drop_requests")
    op.drop_table("manual_join_requests")
    op.drop_table("swap_requests")
    op.drop_table("registrations")
    op.drop_table("section_schedules")
    op.drop_table("sections")
    op.drop_table("program_structure_courses")
    op.drop_table("program_structures")
    op.drop_table("subjects")
    op.drop_table("users")
