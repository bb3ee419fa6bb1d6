# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Drop workflow for removing a committed registration on request.

States: pending -> approved | rejected.

Approval removes the registration in a savepoint. When removal fails the
request is rejected with the failure recorded and the error is raised,
the same two-outcome approval the manual-join workflow uses.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.core.config import get_settings
from coursereg.core.config.settings import RegistrationSettings
from coursereg.domains.drop.schemas import DropRequestResponse
from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    InvalidRequestStateError,
    RequestNotFoundError,
)
from coursereg.domains.registration import queries
from coursereg.domains.registration.service import RegistrationService, registration_event_payload
from coursereg.domains.validation import require_text, validate_reason
from coursereg.infrastructure.database.connection import DatabaseError, atomic
from coursereg.infrastructure.database.models import (
    DropRequest,
    ProgramStructure,
    ProgramStructureCourse,
    Registration,
    RequestStatus,
    Section,
    Subject,
    User,
)
from coursereg.infrastructure.events import EventBus, EventTypes, get_event_bus
from coursereg.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DropRequestService:
    """Service for drop requests.

    Attributes:
        db: Async database session.
        registrations: Registration engine sharing the same session.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: RegistrationSettings | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.db = db
        self._settings = settings or get_settings().registration
        self._events = event_bus or get_event_bus()
        self.registrations = RegistrationService(db, self._events)

    async def create_request(self, student_id: str, registration_id: str, reason: str) -> DropRequestResponse:
        """Ask to be removed from a registered section.

        Args:
            student_id: Student asking.
            registration_id: Registration to drop; must belong to the student.
            reason: Justification for the reviewer.

        Returns:
            The pending request.

        Raises:
            InvalidInputError: If the reason length is out of bounds.
            EnrollmentNotFoundError: If the registration is not the student's.
            InvalidRequestStateError: If a pending request for it exists.
        """
        reason = validate_reason(reason, self._settings)

        async with atomic(self.db):
            student = await queries.get_student(self.db, student_id, lock=True)
            registration = await queries.get_student_registration(self.db, student.id, registration_id)

            pending = await self.db.execute(
                select(DropRequest.id).where(
                    DropRequest.registration_id == registration.id,
                    DropRequest.status == RequestStatus.PENDING.value,
                )
            )
            if pending.first() is not None:
                raise InvalidRequestStateError(
                    "A pending drop request already exists for this registration"
                )

            section = await queries.get_section(self.db, registration.section_id, active_only=False)
            request = DropRequest(
                student_id=student.id,
                registration_id=registration.id,
                section_id=section.id,
                reason=reason,
                status=RequestStatus.PENDING.value,
            )
            self.db.add(request)
            await self.db.flush()
            response = self._to_response(request, student, section)

        logger.info(
            "Drop requested: request=%s, student=%s, registration=%s",
            request.id,
            student.id,
            registration.id,
        )
        self._publish(EventTypes.Drop.REQUESTED, request, student, section)
        return response

    async def approve(self, request_id: str, reviewer_id: str) -> DropRequestResponse:
        """Approve a request and remove the registration.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not pending.
            AuthorizationDeniedError: If the reviewer lacks scope over the section.
            RegistrationError: If removal fails. The request has been
                committed as rejected before this is raised. Other errors
                raised while removing are handled the same way; database
                failures roll everything back and propagate.
        """
        failure: Exception | None = None

        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            self._require_pending(request)
            reviewer = await queries.get_user(self.db, reviewer_id)
            section = await self._current_section(request)
            queries.authorize_section_approver(reviewer, section)
            student = await self._get_student_row(request.student_id)

            now = utc_now()
            registration_id = request.registration_id
            try:
                async with self.db.begin_nested():
                    if registration_id is None:
                        raise RequestNotFoundError("The registration has already been removed")
                    request.registration_id = None
                    await self.db.flush()
                    await self.registrations.remove(request.student_id, registration_id)
            except (DatabaseError, SQLAlchemyError):
                raise
            except Exception as e:
                failure = e
                await self.db.refresh(section)
                await self.db.refresh(request)
                request.status = RequestStatus.REJECTED.value
                request.rejection_reason = f"Failed to drop student: {e}"
            else:
                request.status = RequestStatus.APPROVED.value
            request.reviewed_by = reviewer.id
            request.reviewed_at = now

            await self.db.flush()
            response = self._to_response(request, student, section)

        if failure is not None:
            logger.info(
                "Drop request auto-rejected: request=%s, student=%s, error=%s",
                request.id,
                request.student_id,
                failure,
            )
            self._publish(EventTypes.Drop.REJECTED, request, student, section)
            raise failure

        logger.info(
            "Drop approved: request=%s, student=%s, section=%s, by=%s",
            request.id,
            request.student_id,
            section.id,
            reviewer.id,
        )
        self._publish(EventTypes.Drop.APPROVED, request, student, section)
        return response

    async def reject(self, request_id: str, reviewer_id: str, rejection_reason: str) -> DropRequestResponse:
        """Reject a request, keeping the registration.

        Raises:
            InvalidInputError: If the rejection reason is blank.
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not pending.
            AuthorizationDeniedError: If the reviewer lacks scope over the section.
        """
        rejection_reason = require_text(rejection_reason, "Rejection reason is required")

        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            self._require_pending(request)
            reviewer = await queries.get_user(self.db, reviewer_id)
            section = await self._current_section(request)
            queries.authorize_section_approver(reviewer, section)
            student = await self._get_student_row(request.student_id)

            request.status = RequestStatus.REJECTED.value
            request.reviewed_by = reviewer.id
            request.reviewed_at = utc_now()
            request.rejection_reason = rejection_reason
            await self.db.flush()
            response = self._to_response(request, student, section)

        logger.info("Drop rejected: request=%s, student=%s, by=%s", request.id, request.student_id, reviewer.id)
        self._publish(EventTypes.Drop.REJECTED, request, student, section)
        return response

    async def delete_request(self, request_id: str, student_id: str) -> None:
        """Delete a resolved request as its owner.

        Raises:
            RequestNotFoundError: If the request does not exist or is not the student's.
            InvalidRequestStateError: If the request is still pending.
        """
        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            if request.student_id != student_id:
                raise RequestNotFoundError("Drop request not found", {"request_id": request_id})
            if request.status == RequestStatus.PENDING.value:
                raise InvalidRequestStateError("Cannot delete a pending request")
            await self.db.delete(request)

        logger.info("Drop request deleted: request=%s, student=%s", request_id, student_id)

    async def list_for_student(
        self,
        student_id: str,
        status: RequestStatus | None = None,
    ) -> list[DropRequestResponse]:
        """List a student's drop requests, newest first."""
        stmt = select(DropRequest).where(DropRequest.student_id == student_id)
        return await self._list(stmt, status)

    async def list_for_lecturer(
        self,
        lecturer_id: str,
        status: RequestStatus | None = RequestStatus.PENDING,
    ) -> list[DropRequestResponse]:
        """List requests for sections the lecturer teaches."""
        taught = select(Section.id).where(Section.lecturer_id == lecturer_id)
        stmt = select(DropRequest).where(DropRequest.section_id.in_(taught))
        return await self._list(stmt, status)

    async def list_all(
        self,
        reviewer_id: str,
        status: RequestStatus | None = None,
        programme: str | None = None,
    ) -> list[DropRequestResponse]:
        """List every drop request, optionally for one programme's subjects.

        Raises:
            AuthorizationDeniedError: If the caller is not a global approver.
        """
        async with atomic(self.db):
            reviewer = await queries.get_user(self.db, reviewer_id)
        if not reviewer.is_global_approver:
            raise AuthorizationDeniedError("Only heads of programme and administrators can list all requests")

        stmt = select(DropRequest)
        if programme is not None:
            shared = (
                select(ProgramStructureCourse.subject_id)
                .join(ProgramStructure, ProgramStructure.id == ProgramStructureCourse.structure_id)
                .where(ProgramStructure.programme == programme)
            )
            stmt = (
                stmt.join(Section, Section.id == DropRequest.section_id)
                .join(Subject, Subject.id == Section.subject_id)
                .where(or_(Subject.programme == programme, Subject.id.in_(shared)))
            )
        return await self._list(stmt, status)

    async def _list(self, stmt, status: RequestStatus | None) -> list[DropRequestResponse]:
        if status is not None:
            stmt = stmt.where(DropRequest.status == RequestStatus(status).value)
        stmt = stmt.order_by(DropRequest.created_at.desc())
        async with atomic(self.db):
            requests = (await self.db.execute(stmt)).scalars().all()
            return await self._to_responses(requests)

    async def _get_request(self, request_id: str, *, lock: bool = False) -> DropRequest:
        stmt = select(DropRequest).where(DropRequest.id == request_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = (await self.db.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError("Drop request not found", {"request_id": request_id})
        return request

    async def _current_section(self, request: DropRequest) -> Section:
        """Load the section the request's registration is in now.

        A swap can move the registration to another section of the subject
        while the request is pending; the request follows it. Once the
        registration is gone the section recorded on the request is used.
        """
        if request.registration_id is not None:
            current = await self.db.execute(
                select(Registration.section_id).where(Registration.id == request.registration_id)
            )
            section_id = current.scalar_one_or_none()
            if section_id is not None and section_id != request.section_id:
                request.section_id = section_id
                await self.db.flush()
        return await queries.get_section(self.db, request.section_id, active_only=False)

    async def _get_student_row(self, student_id: str) -> User:
        student = await self.db.get(User, student_id)
        if student is None:
            raise RequestNotFoundError("Requesting student no longer exists", {"student_id": student_id})
        return student

    @staticmethod
    def _require_pending(request: DropRequest) -> None:
        if request.status != RequestStatus.PENDING.value:
            raise InvalidRequestStateError(
                f"Drop request is already {request.status}",
                {"request_id": request.id, "status": request.status},
            )

    def _publish(self, event_type: str, request: DropRequest, student: User, section: Section) -> None:
        self._events.publish_background(
            event_type,
            registration_event_payload(
                student,
                section,
                request_id=request.id,
                status=request.status,
                reason=request.reason,
                rejection_reason=request.rejection_reason,
            ),
        )

    @staticmethod
    def _to_response(request: DropRequest, student: User, section: Section) -> DropRequestResponse:
        return DropRequestResponse(
            id=request.id,
            status=request.status,
            reason=request.reason,
            student_id=student.id,
            student_name=student.full_name,
            student_number=student.student_number,
            registration_id=request.registration_id,
            section_id=section.id,
            section_number=section.section_number,
            subject_code=section.subject.code,
            subject_name=section.subject.name,
            reviewed_by=request.reviewed_by,
            reviewed_at=request.reviewed_at,
            rejection_reason=request.rejection_reason,
            created_at=request.created_at,
        )

    async def _to_responses(self, requests: Sequence[DropRequest]) -> list[DropRequestResponse]:
        if not requests:
            return []
        student_ids = list({r.student_id for r in requests})
        section_ids = list({r.section_id for r in requests})
        students = {
            u.id: u for u in (await self.db.execute(select(User).where(User.id.in_(student_ids)))).scalars()
        }
        sections = {
            s.id: s
            for s in (await self.db.execute(select(Section).where(Section.id.in_(section_ids)))).scalars()
        }
        return [
            self._to_response(r, students[r.student_id], sections[r.section_id])
            for r in requests
        ]
