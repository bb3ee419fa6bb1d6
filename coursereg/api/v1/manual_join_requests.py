# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Manual join endpoints.

- POST / - Ask to join a section past its capacity
- GET / - List the caller's requests
- GET /lecturer - Requests for sections the caller teaches
- GET /all - All requests (head of programme and administrators)
- POST /{request_id}/approve - Approve and register
- POST /{request_id}/reject - Reject with a reason
- DELETE /{request_id} - Hide a decided request from the student's list
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.dependencies import get_db, require_approver, require_student
from coursereg.api.middleware.identity import CurrentUser
from coursereg.domains.manual_join import ManualJoinService
from coursereg.domains.manual_join.schemas import (
    ApproveManualJoinRequest,
    CreateManualJoinRequest,
    ManualJoinResponse,
    RejectManualJoinRequest,
)
from coursereg.infrastructure.database.models import RequestStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> ManualJoinService:
    return ManualJoinService(db=db)


@router.post(
    "",
    response_model=ManualJoinResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a manual join",
)
async def create_manual_join_request(
    data: CreateManualJoinRequest,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> ManualJoinResponse:
    return await _get_service(db).create_request(current_user.id, data.section_id, data.reason)


@router.get("", response_model=list[ManualJoinResponse], summary="List my manual join requests")
async def list_my_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> list[ManualJoinResponse]:
    return await _get_service(db).list_for_student(current_user.id, status_filter)


@router.get(
    "/lecturer",
    response_model=list[ManualJoinResponse],
    summary="List requests for my sections",
)
async def list_lecturer_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = RequestStatus.PENDING,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> list[ManualJoinResponse]:
    return await _get_service(db).list_for_lecturer(current_user.id, status_filter)


@router.get("/all", response_model=list[ManualJoinResponse], summary="List all requests")
async def list_all_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    programme: Annotated[str | None, Query(description="Filter by programme")] = None,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> list[ManualJoinResponse]:
    return await _get_service(db).list_all(current_user.id, status_filter, programme)


@router.post(
    "/{request_id}/approve",
    response_model=ManualJoinResponse,
    summary="Approve a manual join",
)
async def approve_request(
    request_id: str,
    data: ApproveManualJoinRequest | None = None,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> ManualJoinResponse:
    """Approve a request and register the student past capacity.

    If registration fails the request is stored as rejected with the
    failure as its reason, and the failure is returned as the error.
    """
    logger.info("Manual join approval: request=%s, approver=%s", request_id, current_user.id)
    return await _get_service(db).approve(
        request_id,
        current_user.id,
        approval_reason=data.approval_reason if data else None,
    )


@router.post(
    "/{request_id}/reject",
    response_model=ManualJoinResponse,
    summary="Reject a manual join",
)
async def reject_request(
    request_id: str,
    data: RejectManualJoinRequest,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> ManualJoinResponse:
    return await _get_service(db).reject(request_id, current_user.id, data.rejection_reason)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Hide a decided request",
)
async def hide_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> None:
    await _get_service(db).hide_request(request_id, current_user.id)
