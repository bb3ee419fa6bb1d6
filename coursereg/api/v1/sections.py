# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Section endpoints.

- GET /{section_id}/capacity - Seats taken and left
- GET /{section_id}/ledger - Compare the cached seat count with registrations
- POST /validate-schedule - Check a set of sections against each other
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.dependencies import get_db, require_approver, require_auth
from coursereg.api.middleware.identity import CurrentUser
from coursereg.domains.registration import RegistrationService
from coursereg.domains.registration.schemas import (
    CapacityResponse,
    LedgerCheckResponse,
    ScheduleCheckResponse,
    ValidateScheduleRequest,
    ledger_check_to_response,
)

router = APIRouter()


@router.get("/{section_id}/capacity", response_model=CapacityResponse, summary="Section capacity")
async def check_capacity(
    section_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> CapacityResponse:
    return await RegistrationService(db=db).check_capacity(section_id)


@router.get("/{section_id}/ledger", response_model=LedgerCheckResponse, summary="Verify seat count")
async def verify_ledger(
    section_id: str,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> LedgerCheckResponse:
    check = await RegistrationService(db=db).verify_ledger(section_id)
    return ledger_check_to_response(check)


@router.post(
    "/validate-schedule",
    response_model=ScheduleCheckResponse,
    summary="Check sections for clashes",
)
async def validate_schedule(
    data: ValidateScheduleRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ScheduleCheckResponse:
    return await RegistrationService(db=db).validate_schedule(data.section_ids)
