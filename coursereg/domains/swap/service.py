# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Swap coordinator for exchanging sections between two students.

A swap request names the requester's section and the target student's
section of the same subject. Creation simulates both post-swap timetables;
acceptance repeats those checks and rewrites both registrations in one
transaction, so at no point do both students hold the same section or
does either hold none. Seat counts are untouched because each section
loses one student and gains one.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    EnrollmentNotFoundError,
    InvalidInputError,
    InvalidRequestStateError,
    RequestNotFoundError,
    ScheduleClashError,
)
from coursereg.domains.registration import queries
from coursereg.domains.scheduling.overlap import find_clash
from coursereg.domains.swap.schemas import SwapRequestResponse
from coursereg.infrastructure.database.connection import atomic
from coursereg.infrastructure.database.models import (
    DropRequest,
    RegistrationType,
    RequestStatus,
    Section,
    SwapRequest,
    User,
)
from coursereg.infrastructure.events import EventBus, EventTypes, get_event_bus
from coursereg.utils.datetime import utc_now

logger = logging.getLogger(__name__)

REQUESTER = "requester"
TARGET = "target"


class SwapService:
    """Service for creating and resolving swap requests.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession, event_bus: EventBus | None = None) -> None:
        """Initialize swap service.

        Args:
            db: Async database session.
            event_bus: Bus for outcome events. Defaults to the process-wide bus.
        """
        self.db = db
        self._events = event_bus or get_event_bus()

    async def create_swap_request(
        self,
        requester_id: str,
        requester_section_id: str,
        target_id: str,
        target_section_id: str,
    ) -> SwapRequestResponse:
        """Propose exchanging sections with another student.

        Args:
            requester_id: Student proposing the swap.
            requester_section_id: Section the requester holds now.
            target_id: Student asked to swap.
            target_section_id: Section the target holds now.

        Returns:
            The pending swap request.

        Raises:
            InvalidInputError: If the students or sections are the same, or
                the sections belong to different subjects.
            StudentNotFoundError: If either student is missing or inactive.
            EnrollmentNotFoundError: If either student does not hold the stated section.
            ScheduleClashError: If either student would clash after the swap.
            InvalidRequestStateError: If a pending swap already links the two students.
        """
        if requester_id == target_id:
            raise InvalidInputError("Cannot create a swap request with yourself")
        if requester_section_id == target_section_id:
            raise InvalidInputError("Both students are already in the same section")

        async with atomic(self.db):
            requester, target = await self._lock_students(requester_id, target_id)
            requester_section, target_section = await self._check_exchange(
                requester, requester_section_id, target, target_section_id
            )

            existing = await self.db.execute(
                select(SwapRequest.id).where(
                    SwapRequest.status == RequestStatus.PENDING.value,
                    or_(
                        and_(SwapRequest.requester_id == requester.id, SwapRequest.target_id == target.id),
                        and_(SwapRequest.requester_id == target.id, SwapRequest.target_id == requester.id),
                    ),
                )
            )
            if existing.first() is not None:
                raise InvalidRequestStateError(
                    "A pending swap request already exists between these students"
                )

            request = SwapRequest(
                requester_id=requester.id,
                requester_section_id=requester_section.id,
                target_id=target.id,
                target_section_id=target_section.id,
                status=RequestStatus.PENDING.value,
            )
            self.db.add(request)
            await self.db.flush()
            response = self._to_response(request, requester, target, requester_section, target_section)

        logger.info(
            "Swap requested: request=%s, requester=%s, target=%s, subject=%s",
            request.id,
            requester.id,
            target.id,
            requester_section.subject.code,
        )
        self._publish(EventTypes.Swap.REQUESTED, request, requester, target, requester_section, target_section)
        return response

    async def respond_to_swap_request(
        self,
        request_id: str,
        respondent_id: str,
        *,
        accept: bool,
        reason: str | None = None,
    ) -> SwapRequestResponse:
        """Accept or reject a swap request as its target.

        Accepting re-verifies that both students still hold their sections
        and that neither would clash, then exchanges the sections. If any
        check fails the request stays pending.

        Args:
            request_id: Swap request to answer.
            respondent_id: Student answering; must be the target.
            accept: True to perform the exchange, False to reject.
            reason: Optional explanation recorded on the request.

        Returns:
            The resolved swap request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            AuthorizationDeniedError: If the respondent is not the target.
            InvalidRequestStateError: If the request is not pending.
            EnrollmentNotFoundError: If either registration has changed since creation.
            ScheduleClashError: If either student would now clash.
        """
        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            if request.target_id != respondent_id:
                raise AuthorizationDeniedError(
                    "Only the target student can respond to this swap request"
                )
            self._require_pending(request)

            now = utc_now()
            request.response_reason = reason
            request.responded_at = now

            if not accept:
                request.status = RequestStatus.REJECTED.value
                requester = await self._get_user(request.requester_id)
                target = await self._get_user(request.target_id)
                requester_section = await queries.get_section(
                    self.db, request.requester_section_id, active_only=False
                )
                target_section = await queries.get_section(
                    self.db, request.target_section_id, active_only=False
                )
                event_type = EventTypes.Swap.REJECTED
            else:
                requester, target = await self._lock_students(request.requester_id, request.target_id)
                requester_section, target_section = await self._check_exchange(
                    requester, request.requester_section_id, target, request.target_section_id
                )
                await self._exchange(request, requester_section, target_section)
                request.status = RequestStatus.APPROVED.value
                request.approved_at = now
                event_type = EventTypes.Swap.APPROVED

            await self.db.flush()
            response = self._to_response(request, requester, target, requester_section, target_section)

        logger.info(
            "Swap %s: request=%s, requester=%s, target=%s",
            request.status,
            request.id,
            request.requester_id,
            request.target_id,
        )
        self._publish(event_type, request, requester, target, requester_section, target_section)
        return response

    async def cancel_swap_request(self, request_id: str, requester_id: str) -> SwapRequestResponse:
        """Withdraw a pending swap request as its requester.

        Raises:
            RequestNotFoundError: If the request does not exist.
            AuthorizationDeniedError: If the caller is not the requester.
            InvalidRequestStateError: If the request is not pending.
        """
        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            if request.requester_id != requester_id:
                raise AuthorizationDeniedError("Only the requester can cancel this swap request")
            self._require_pending(request)

            request.status = RequestStatus.CANCELLED.value
            request.responded_at = utc_now()
            await self.db.flush()
            response = (await self._to_responses([request]))[0]

        logger.info("Swap cancelled: request=%s, requester=%s", request.id, requester_id)
        self._events.publish_background(
            EventTypes.Swap.CANCELLED,
            {"request_id": request.id, "requester_id": request.requester_id, "target_id": request.target_id},
        )
        return response

    async def delete_swap_request(self, request_id: str, student_id: str) -> None:
        """Delete a resolved swap request as either party.

        Raises:
            RequestNotFoundError: If the request does not exist.
            AuthorizationDeniedError: If the caller is neither party.
            InvalidRequestStateError: If the request is still pending.
        """
        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            if student_id not in (request.requester_id, request.target_id):
                raise AuthorizationDeniedError("You are not a party to this swap request")
            if request.status == RequestStatus.PENDING.value:
                raise InvalidRequestStateError("Pending swap requests cannot be deleted; cancel it first")
            await self.db.delete(request)

        logger.info("Swap request deleted: request=%s, by=%s", request_id, student_id)

    async def list_swap_requests(
        self,
        student_id: str,
        status: RequestStatus | None = None,
    ) -> list[SwapRequestResponse]:
        """List swap requests the student sent or received, newest first."""
        stmt = select(SwapRequest).where(
            or_(SwapRequest.requester_id == student_id, SwapRequest.target_id == student_id)
        )
        if status is not None:
            stmt = stmt.where(SwapRequest.status == RequestStatus(status).value)
        stmt = stmt.order_by(SwapRequest.created_at.desc())

        async with atomic(self.db):
            requests = (await self.db.execute(stmt)).scalars().all()
            return await self._to_responses(requests)

    async def list_swap_requests_for_lecturer(
        self,
        lecturer_id: str,
        status: RequestStatus | None = RequestStatus.PENDING,
    ) -> list[SwapRequestResponse]:
        """List swap requests touching any section the lecturer teaches."""
        taught = select(Section.id).where(Section.lecturer_id == lecturer_id)
        stmt = select(SwapRequest).where(
            or_(
                SwapRequest.requester_section_id.in_(taught),
                SwapRequest.target_section_id.in_(taught),
            )
        )
        if status is not None:
            stmt = stmt.where(SwapRequest.status == RequestStatus(status).value)
        stmt = stmt.order_by(SwapRequest.created_at.desc())

        async with atomic(self.db):
            await queries.get_user(self.db, lecturer_id)
            requests = (await self.db.execute(stmt)).scalars().all()
            return await self._to_responses(requests)

    async def _lock_students(self, first_id: str, second_id: str) -> tuple[User, User]:
        """Lock two students in id order and return them in argument order."""
        locked = {}
        for student_id in sorted((first_id, second_id)):
            locked[student_id] = await queries.get_student(self.db, student_id, lock=True)
        return locked[first_id], locked[second_id]

    async def _check_exchange(
        self,
        requester: User,
        requester_section_id: str,
        target: User,
        target_section_id: str,
    ) -> tuple[Section, Section]:
        """Verify both holdings and simulate both post-swap timetables."""
        if await queries.get_registration_in_section(self.db, requester.id, requester_section_id) is None:
            raise EnrollmentNotFoundError(
                "Requester is not registered in the specified section",
                {"student_id": requester.id, "section_id": requester_section_id},
            )
        if await queries.get_registration_in_section(self.db, target.id, target_section_id) is None:
            raise EnrollmentNotFoundError(
                "Target student is not registered in the specified section",
                {"student_id": target.id, "section_id": target_section_id},
            )

        requester_section = await queries.get_section(self.db, requester_section_id)
        target_section = await queries.get_section(self.db, target_section_id)
        if requester_section.subject_id != target_section.subject_id:
            raise InvalidInputError(
                "Both sections must belong to the same subject",
                {
                    "requester_subject": requester_section.subject.code,
                    "target_subject": target_section.subject.code,
                },
            )

        await self._check_party(REQUESTER, requester, requester_section, target_section)
        await self._check_party(TARGET, target, target_section, requester_section)
        return requester_section, target_section

    async def _check_party(self, party: str, student: User, leaving: Section, joining: Section) -> None:
        """Check one student's timetable without the section they give up."""
        commitments = await queries.load_commitments(
            self.db, student.id, exclude_section_ids=[leaving.id]
        )
        clash = find_clash(queries.section_entries(joining), commitments)
        if clash is not None:
            label = "Requester" if party == REQUESTER else "Target student"
            raise ScheduleClashError(
                f"{label} would have schedule clash: {clash.message}",
                replace(clash, party=party),
                party=party,
            )

    async def _exchange(self, request: SwapRequest, requester_section: Section, target_section: Section) -> None:
        """Move both registrations to the other section and tag them as swaps.

        Pending drop requests for either registration follow it to its new
        section.
        """
        requester_reg = await queries.get_registration_in_section(
            self.db, request.requester_id, requester_section.id
        )
        target_reg = await queries.get_registration_in_section(
            self.db, request.target_id, target_section.id
        )
        for registration, section in (
            (requester_reg, target_section),
            (target_reg, requester_section),
        ):
            registration.section_id = section.id
            registration.registration_type = RegistrationType.SWAP.value
            self.db.expire(registration, ["section"])
            await self.db.execute(
                update(DropRequest)
                .where(
                    DropRequest.registration_id == registration.id,
                    DropRequest.status == RequestStatus.PENDING.value,
                )
                .values(section_id=section.id)
                .execution_options(synchronize_session="fetch")
            )

    async def _get_request(self, request_id: str, *, lock: bool = False) -> SwapRequest:
        stmt = select(SwapRequest).where(SwapRequest.id == request_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = (await self.db.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError("Swap request not found", {"request_id": request_id})
        return request

    async def _get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise RequestNotFoundError("Swap request party no longer exists", {"user_id": user_id})
        return user

    @staticmethod
    def _require_pending(request: SwapRequest) -> None:
        if request.status != RequestStatus.PENDING.value:
            raise InvalidRequestStateError(
                f"Swap request is already {request.status}",
                {"request_id": request.id, "status": request.status},
            )

    def _publish(
        self,
        event_type: str,
        request: SwapRequest,
        requester: User,
        target: User,
        requester_section: Section,
        target_section: Section,
    ) -> None:
        self._events.publish_background(
            event_type,
            {
                "request_id": request.id,
                "status": request.status,
                "reason": request.response_reason,
                "subject_code": requester_section.subject.code,
                "subject_name": requester_section.subject.name,
                "requester_id": requester.id,
                "requester_email": requester.email,
                "requester_name": requester.full_name,
                "requester_section_number": requester_section.section_number,
                "target_id": target.id,
                "target_email": target.email,
                "target_name": target.full_name,
                "target_section_number": target_section.section_number,
            },
        )

    @staticmethod
    def _to_response(
        request: SwapRequest,
        requester: User,
        target: User,
        requester_section: Section,
        target_section: Section,
    ) -> SwapRequestResponse:
        return SwapRequestResponse(
            id=request.id,
            status=request.status,
            subject_code=requester_section.subject.code,
            subject_name=requester_section.subject.name,
            requester_id=requester.id,
            requester_name=requester.full_name,
            requester_section_id=requester_section.id,
            requester_section_number=requester_section.section_number,
            target_id=target.id,
            target_name=target.full_name,
            target_section_id=target_section.id,
            target_section_number=target_section.section_number,
            response_reason=request.response_reason,
            responded_at=request.responded_at,
            approved_at=request.approved_at,
            created_at=request.created_at,
        )

    async def _to_responses(self, requests: Sequence[SwapRequest]) -> list[SwapRequestResponse]:
        """Convert requests, loading their parties and sections in two queries."""
        if not requests:
            return []
        user_ids = {r.requester_id for r in requests} | {r.target_id for r in requests}
        section_ids = {r.requester_section_id for r in requests} | {r.target_section_id for r in requests}
        users = {
            u.id: u
            for u in (await self.db.execute(select(User).where(User.id.in_(list(user_ids))))).scalars()
        }
        sections = {
            s.id: s
            for s in (await self.db.execute(select(Section).where(Section.id.in_(list(section_ids))))).scalars()
        }
        return [
            self._to_response(
                r,
                users[r.requester_id],
                users[r.target_id],
                sections[r.requester_section_id],
                sections[r.target_section_id],
            )
            for r in requests
        ]
