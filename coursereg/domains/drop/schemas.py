# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for drop requests."""

from datetime import datetime

from pydantic import BaseModel


class CreateDropRequest(BaseModel):
    """Body of a new drop request. The student is the caller."""

    registration_id: str
    reason: str


class RejectDropRequest(BaseModel):
    """Reviewer's mandatory rejection reason."""

    rejection_reason: str


class DropRequestResponse(BaseModel):
    """A drop request with the names needed to display it."""

    id: str
    status: str
    reason: str
    student_id: str
    student_name: str
    student_number: str | None = None
    registration_id: str | None = None
    section_id: str
    section_number: str
    subject_code: str
    subject_name: str
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime
