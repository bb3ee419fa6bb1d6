# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for manual-join requests."""

from datetime import datetime

from pydantic import BaseModel, Field


class CreateManualJoinRequest(BaseModel):
    """Body of a new manual-join request. The student is the caller."""

    section_id: str
    reason: str = Field(..., examples=["Final semester, need this subject to graduate"])


class ApproveManualJoinRequest(BaseModel):
    """Approver's optional note."""

    approval_reason: str | None = Field(default=None, max_length=500)


class RejectManualJoinRequest(BaseModel):
    """Approver's mandatory rejection reason."""

    rejection_reason: str


class ManualJoinResponse(BaseModel):
    """A manual-join request with the names needed to display it."""

    id: str
    status: str
    reason: str
    student_id: str
    student_name: str
    student_number: str | None = None
    section_id: str
    section_number: str
    subject_code: str
    subject_name: str
    capacity: int
    enrolled_count: int
    approved_by: str | None = None
    approved_at: datetime | None = None
    approval_reason: str | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime
