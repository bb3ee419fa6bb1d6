# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for section swaps."""

from datetime import datetime

from pydantic import BaseModel, Field


class CreateSwapRequest(BaseModel):
    """Body of a new swap request. The requester is the caller."""

    requester_section_id: str
    target_id: str
    target_section_id: str


class RespondSwapRequest(BaseModel):
    """Target student's answer to a swap request."""

    accept: bool
    reason: str | None = Field(default=None, max_length=500)


class SwapRequestResponse(BaseModel):
    """A swap request with the names needed to display it."""

    id: str
    status: str
    subject_code: str
    subject_name: str
    requester_id: str
    requester_name: str
    requester_section_id: str
    requester_section_number: str
    target_id: str
    target_name: str
    target_section_id: str
    target_section_number: str
    response_reason: str | None = None
    responded_at: datetime | None = None
    approved_at: datetime | None = None
    created_at: datetime
