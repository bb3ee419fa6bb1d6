# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Section swap endpoints.

- POST / - Propose a swap to another student
- GET / - List swaps the caller is part of
- GET /lecturer - List swaps touching the caller's sections
- POST /{request_id}/respond - Accept or reject (target only)
- POST /{request_id}/cancel - Cancel (requester only)
- DELETE /{request_id} - Delete a decided swap
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.dependencies import get_db, require_approver, require_student
from coursereg.api.middleware.identity import CurrentUser
from coursereg.domains.swap import SwapService
from coursereg.domains.swap.schemas import (
    CreateSwapRequest,
    RespondSwapRequest,
    SwapRequestResponse,
)
from coursereg.infrastructure.database.models import RequestStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> SwapService:
    return SwapService(db=db)


@router.post(
    "",
    response_model=SwapRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a section swap",
)
async def create_swap_request(
    data: CreateSwapRequest,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> SwapRequestResponse:
    """Propose exchanging the caller's section for the target's section.

    Both students must currently hold the named sections of the same
    subject, and neither may end up with a timetable clash.
    """
    return await _get_service(db).create_swap_request(
        requester_id=current_user.id,
        requester_section_id=data.requester_section_id,
        target_id=data.target_id,
        target_section_id=data.target_section_id,
    )


@router.get("", response_model=list[SwapRequestResponse], summary="List my swap requests")
async def list_swap_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> list[SwapRequestResponse]:
    return await _get_service(db).list_swap_requests(current_user.id, status_filter)


@router.get(
    "/lecturer",
    response_model=list[SwapRequestResponse],
    summary="List swaps for my sections",
)
async def list_swap_requests_for_lecturer(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = RequestStatus.PENDING,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> list[SwapRequestResponse]:
    return await _get_service(db).list_swap_requests_for_lecturer(current_user.id, status_filter)


@router.post(
    "/{request_id}/respond",
    response_model=SwapRequestResponse,
    summary="Accept or reject a swap",
)
async def respond_to_swap_request(
    request_id: str,
    data: RespondSwapRequest,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> SwapRequestResponse:
    logger.info(
        "Swap response: request=%s, respondent=%s, accept=%s",
        request_id,
        current_user.id,
        data.accept,
    )
    return await _get_service(db).respond_to_swap_request(
        request_id,
        current_user.id,
        accept=data.accept,
        reason=data.reason,
    )


@router.post(
    "/{request_id}/cancel",
    response_model=SwapRequestResponse,
    summary="Cancel a pending swap",
)
async def cancel_swap_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> SwapRequestResponse:
    return await _get_service(db).cancel_swap_request(request_id, current_user.id)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a decided swap",
)
async def delete_swap_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> None:
    await _get_service(db).delete_swap_request(request_id, current_user.id)
