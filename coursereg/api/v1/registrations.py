# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student registration endpoints.

- POST / - Register the caller into a section
- GET / - List the caller's registrations
- DELETE /{registration_id} - Unregister from a section
- GET /available-sections - Sections open to the caller's programme and semester
- GET /conflicts/{section_id} - Preview clashes before registering
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.dependencies import get_db, require_student
from coursereg.api.middleware.identity import CurrentUser
from coursereg.domains.registration import RegistrationService
from coursereg.domains.registration.schemas import (
    RegisterRequest,
    RegistrationResponse,
    ScheduleCheckResponse,
    SectionSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> RegistrationService:
    return RegistrationService(db=db)


@router.post(
    "",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register for a section",
)
async def register(
    data: RegisterRequest,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """Register the caller into a section.

    Fails with 409 when the section is full, the caller already holds a
    section of the subject, or the section clashes with the timetable.
    """
    return await _get_service(db).register(current_user.id, data.section_id)


@router.get("", response_model=list[RegistrationResponse], summary="List my registrations")
async def list_registrations(
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> list[RegistrationResponse]:
    return await _get_service(db).list_student_registrations(current_user.id)


@router.delete(
    "/{registration_id}",
    response_model=RegistrationResponse,
    summary="Unregister from a section",
)
async def unregister(
    registration_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    logger.info("Unregister requested: student=%s, registration=%s", current_user.id, registration_id)
    return await _get_service(db).unregister(current_user.id, registration_id)


@router.get(
    "/available-sections",
    response_model=list[SectionSummary],
    summary="List sections available to me",
)
async def list_available_sections(
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> list[SectionSummary]:
    return await _get_service(db).list_available_sections(current_user.id)


@router.get(
    "/conflicts/{section_id}",
    response_model=ScheduleCheckResponse,
    summary="Preview clashes with a section",
)
async def preview_conflicts(
    section_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> ScheduleCheckResponse:
    return await _get_service(db).preview_conflicts(current_user.id, section_id)
