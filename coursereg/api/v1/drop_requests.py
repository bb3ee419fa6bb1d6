# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Drop request endpoints.

- POST / - Ask to be removed from a section
- GET / - List the caller's requests
- GET /lecturer - Requests for sections the caller teaches
- GET /all - All requests (head of programme and administrators)
- POST /{request_id}/approve - Approve and remove the registration
- POST /{request_id}/reject - Reject with a reason
- DELETE /{request_id} - Delete a decided request
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.api.dependencies import get_db, require_approver, require_student
from coursereg.api.middleware.identity import CurrentUser
from coursereg.domains.drop import DropRequestService
from coursereg.domains.drop.schemas import CreateDropRequest, DropRequestResponse, RejectDropRequest
from coursereg.infrastructure.database.models import RequestStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> DropRequestService:
    return DropRequestService(db=db)


@router.post(
    "",
    response_model=DropRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a drop",
)
async def create_drop_request(
    data: CreateDropRequest,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> DropRequestResponse:
    return await _get_service(db).create_request(current_user.id, data.registration_id, data.reason)


@router.get("", response_model=list[DropRequestResponse], summary="List my drop requests")
async def list_my_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> list[DropRequestResponse]:
    return await _get_service(db).list_for_student(current_user.id, status_filter)


@router.get(
    "/lecturer",
    response_model=list[DropRequestResponse],
    summary="List requests for my sections",
)
async def list_lecturer_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = RequestStatus.PENDING,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> list[DropRequestResponse]:
    return await _get_service(db).list_for_lecturer(current_user.id, status_filter)


@router.get("/all", response_model=list[DropRequestResponse], summary="List all requests")
async def list_all_requests(
    status_filter: Annotated[RequestStatus | None, Query(alias="status")] = None,
    programme: Annotated[str | None, Query(description="Filter by programme")] = None,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> list[DropRequestResponse]:
    return await _get_service(db).list_all(current_user.id, status_filter, programme)


@router.post("/{request_id}/approve", response_model=DropRequestResponse, summary="Approve a drop")
async def approve_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> DropRequestResponse:
    logger.info("Drop approval: request=%s, reviewer=%s", request_id, current_user.id)
    return await _get_service(db).approve(request_id, current_user.id)


@router.post("/{request_id}/reject", response_model=DropRequestResponse, summary="Reject a drop")
async def reject_request(
    request_id: str,
    data: RejectDropRequest,
    current_user: CurrentUser = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> DropRequestResponse:
    return await _get_service(db).reject(request_id, current_user.id, data.rejection_reason)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a decided request",
)
async def delete_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> None:
    await _get_service(db).delete_request(request_id, current_user.id)
