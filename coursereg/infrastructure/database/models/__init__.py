# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the enrollment store.

Importing this package registers every table on Base.metadata.
"""

from coursereg.infrastructure.database.models.base import Base, IdMixin, TimestampMixin, generate_id
from coursereg.infrastructure.database.models.catalog import (
    ProgramStructure,
    ProgramStructureCourse,
    Section,
    SectionSchedule,
    Subject,
)
from coursereg.infrastructure.database.models.registration import Registration, RegistrationType
from coursereg.infrastructure.database.models.requests import (
    DropRequest,
    ManualJoinRequest,
    RequestStatus,
    SwapRequest,
)
from coursereg.infrastructure.database.models.user import GLOBAL_APPROVER_ROLES, User, UserRole

__all__ = [
    "Base",
    "DropRequest",
    "GLOBAL_APPROVER_ROLES",
    "IdMixin",
    "ManualJoinRequest",
    "ProgramStructure",
    "ProgramStructureCourse",
    "Registration",
    "RegistrationType",
    "RequestStatus",
    "Section",
    "SectionSchedule",
    "Subject",
    "SwapRequest",
    "TimestampMixin",
    "User",
    "UserRole",
    "generate_id",
]
