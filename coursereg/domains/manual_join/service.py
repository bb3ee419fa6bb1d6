# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Manual-join workflow for admitting students above section capacity.

States: pending -> approved | rejected.

Approval is one transaction with two possible outcomes. The registration
is attempted inside a savepoint with the capacity limit bypassed (every
other admission rule, including the timetable check, still applies). If it
succeeds the request becomes approved. If it fails with a registration
error the savepoint is rolled back, the request becomes rejected with the
failure recorded, the transaction commits and the original error is
raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursereg.core.config import get_settings
from coursereg.core.config.settings import RegistrationSettings
from coursereg.domains.exceptions import (
    AuthorizationDeniedError,
    DuplicateEnrollmentError,
    InvalidRequestStateError,
    RequestNotFoundError,
)
from coursereg.domains.manual_join.schemas import ManualJoinResponse
from coursereg.domains.registration import queries
from coursereg.domains.registration.service import RegistrationService, registration_event_payload
from coursereg.domains.validation import require_text, validate_reason
from coursereg.infrastructure.database.connection import DatabaseError, atomic
from coursereg.infrastructure.database.models import (
    ManualJoinRequest,
    ProgramStructure,
    ProgramStructureCourse,
    RegistrationType,
    RequestStatus,
    Section,
    Subject,
    User,
)
from coursereg.infrastructure.events import EventBus, EventTypes, get_event_bus
from coursereg.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class ManualJoinService:
    """Service for manual-join requests.

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
        """Initialize manual-join service.

        Args:
            db: Async database session.
            settings: Reason length bounds. Defaults to application settings.
            event_bus: Bus for outcome events. Defaults to the process-wide bus.
        """
        self.db = db
        self._settings = settings or get_settings().registration
        self._events = event_bus or get_event_bus()
        self.registrations = RegistrationService(db, self._events)

    async def create_request(self, student_id: str, section_id: str, reason: str) -> ManualJoinResponse:
        """Ask to join a section regardless of its capacity.

        Args:
            student_id: Student asking.
            section_id: Section wanted.
            reason: Justification for the approver.

        Returns:
            The pending request.

        Raises:
            InvalidInputError: If the reason length is out of bounds.
            StudentNotFoundError: If the student is missing or inactive.
            SectionNotFoundError: If the section is missing or inactive.
            IneligibleError: On a semester or programme mismatch.
            DuplicateEnrollmentError: If a section of the subject is already held.
            InvalidRequestStateError: If a pending request for the section exists.
        """
        reason = validate_reason(reason, self._settings)

        async with atomic(self.db):
            student = await queries.get_student(self.db, student_id, lock=True)
            section = await queries.get_section(self.db, section_id)
            await self.registrations.check_eligibility(student, section)

            existing = await queries.get_subject_registration(self.db, student.id, section.subject_id)
            if existing is not None:
                raise DuplicateEnrollmentError(
                    f"Already registered for {section.subject.code}. "
                    "Cannot request to join another section of the same subject.",
                    {"subject_code": section.subject.code, "registration_id": existing.id},
                )

            pending = await self.db.execute(
                select(ManualJoinRequest.id).where(
                    ManualJoinRequest.student_id == student.id,
                    ManualJoinRequest.section_id == section.id,
                    ManualJoinRequest.status == RequestStatus.PENDING.value,
                )
            )
            if pending.first() is not None:
                raise InvalidRequestStateError(
                    "You already have a pending manual join request for this section"
                )

            request = ManualJoinRequest(
                student_id=student.id,
                section_id=section.id,
                reason=reason,
                status=RequestStatus.PENDING.value,
            )
            self.db.add(request)
            await self.db.flush()
            response = self._to_response(request, student, section)

        logger.info(
            "Manual join requested: request=%s, student=%s, section=%s",
            request.id,
            student.id,
            section.id,
        )
        self._events.publish_background(
            EventTypes.ManualJoin.REQUESTED,
            registration_event_payload(student, section, request_id=request.id, reason=reason),
        )
        return response

    async def approve(
        self,
        request_id: str,
        approver_id: str,
        approval_reason: str | None = None,
    ) -> ManualJoinResponse:
        """Approve a request and register the student with capacity bypassed.

        Args:
            request_id: Request to approve.
            approver_id: Lecturer of the section, or a global approver.
            approval_reason: Optional note recorded on the request.

        Returns:
            The approved request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not pending.
            AuthorizationDeniedError: If the approver lacks scope over the section.
            RegistrationError: Any admission failure. The request has been
                committed as rejected before this is raised. Other errors
                raised while admitting are handled the same way; database
                failures roll everything back and propagate.
        """
        failure: Exception | None = None

        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            self._require_pending(request)
            approver = await queries.get_user(self.db, approver_id)
            section = await queries.get_section(self.db, request.section_id, active_only=False)
            queries.authorize_section_approver(approver, section)
            student = await self._get_student_row(request.student_id)

            now = utc_now()
            try:
                async with self.db.begin_nested():
                    await self.registrations.admit(
                        request.student_id,
                        request.section_id,
                        registration_type=RegistrationType.MANUAL,
                        approved_by=approver.id,
                    )
            except (DatabaseError, SQLAlchemyError):
                raise
            except Exception as e:
                failure = e
                await self.db.refresh(section)
                request.status = RequestStatus.REJECTED.value
                request.rejected_by = approver.id
                request.rejected_at = now
                request.rejection_reason = f"Registration failed: {e}"
            else:
                request.status = RequestStatus.APPROVED.value
                request.approved_by = approver.id
                request.approved_at = now
                request.approval_reason = (approval_reason or "").strip() or None

            await self.db.flush()
            response = self._to_response(request, student, section)

        if failure is not None:
            logger.info(
                "Manual join auto-rejected: request=%s, student=%s, section=%s, error=%s",
                request.id,
                request.student_id,
                request.section_id,
                failure,
            )
            self._publish(EventTypes.ManualJoin.REJECTED, request, student, section)
            raise failure

        logger.info(
            "Manual join approved: request=%s, student=%s, section=%s, by=%s, enrolled=%d/%d",
            request.id,
            request.student_id,
            section.id,
            approver.id,
            section.enrolled_count,
            section.capacity,
        )
        self._publish(EventTypes.ManualJoin.APPROVED, request, student, section)
        return response

    async def reject(self, request_id: str, rejecter_id: str, rejection_reason: str) -> ManualJoinResponse:
        """Reject a request without touching the registrations.

        Raises:
            InvalidInputError: If the rejection reason is blank.
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not pending.
            AuthorizationDeniedError: If the rejecter lacks scope over the section.
        """
        rejection_reason = require_text(rejection_reason, "Rejection reason is required")

        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            self._require_pending(request)
            rejecter = await queries.get_user(self.db, rejecter_id)
            section = await queries.get_section(self.db, request.section_id, active_only=False)
            queries.authorize_section_approver(rejecter, section)
            student = await self._get_student_row(request.student_id)

            request.status = RequestStatus.REJECTED.value
            request.rejected_by = rejecter.id
            request.rejected_at = utc_now()
            request.rejection_reason = rejection_reason
            await self.db.flush()
            response = self._to_response(request, student, section)

        logger.info(
            "Manual join rejected: request=%s, student=%s, by=%s",
            request.id,
            request.student_id,
            rejecter.id,
        )
        self._publish(EventTypes.ManualJoin.REJECTED, request, student, section)
        return response

    async def hide_request(self, request_id: str, student_id: str) -> None:
        """Remove a resolved request from the student's own list.

        Raises:
            RequestNotFoundError: If the request does not exist or is not the student's.
            InvalidRequestStateError: If the request is still pending.
        """
        async with atomic(self.db):
            request = await self._get_request(request_id, lock=True)
            if request.student_id != student_id:
                raise RequestNotFoundError(
                    "Manual join request not found", {"request_id": request_id}
                )
            if request.status == RequestStatus.PENDING.value:
                raise InvalidRequestStateError("Cannot delete a pending request")
            request.hidden_by_student = True

        logger.info("Manual join request hidden: request=%s, student=%s", request_id, student_id)

    async def list_for_student(
        self,
        student_id: str,
        status: RequestStatus | None = None,
    ) -> list[ManualJoinResponse]:
        """List a student's visible requests, newest first."""
        stmt = select(ManualJoinRequest).where(
            ManualJoinRequest.student_id == student_id,
            ManualJoinRequest.hidden_by_student.is_(False),
        )
        return await self._list(stmt, status)

    async def list_for_lecturer(
        self,
        lecturer_id: str,
        status: RequestStatus | None = RequestStatus.PENDING,
    ) -> list[ManualJoinResponse]:
        """List requests for sections the lecturer teaches."""
        taught = select(Section.id).where(Section.lecturer_id == lecturer_id)
        stmt = select(ManualJoinRequest).where(ManualJoinRequest.section_id.in_(taught))
        return await self._list(stmt, status)

    async def list_all(
        self,
        approver_id: str,
        status: RequestStatus | None = None,
        programme: str | None = None,
    ) -> list[ManualJoinResponse]:
        """List every request, optionally for one programme's subjects.

        Raises:
            AuthorizationDeniedError: If the caller is not a global approver.
        """
        async with atomic(self.db):
            approver = await queries.get_user(self.db, approver_id)
        if not approver.is_global_approver:
            raise AuthorizationDeniedError("Only heads of programme and administrators can list all requests")

        stmt = select(ManualJoinRequest)
        if programme is not None:
            shared = (
                select(ProgramStructureCourse.subject_id)
                .join(ProgramStructure, ProgramStructure.id == ProgramStructureCourse.structure_id)
                .where(ProgramStructure.programme == programme)
            )
            stmt = (
                stmt.join(Section, Section.id == ManualJoinRequest.section_id)
                .join(Subject, Subject.id == Section.subject_id)
                .where(or_(Subject.programme == programme, Subject.id.in_(shared)))
            )
        return await self._list(stmt, status)

    async def _list(self, stmt, status: RequestStatus | None) -> list[ManualJoinResponse]:
        if status is not None:
            stmt = stmt.where(ManualJoinRequest.status == RequestStatus(status).value)
        stmt = stmt.order_by(ManualJoinRequest.created_at.desc())
        async with atomic(self.db):
            requests = (await self.db.execute(stmt)).scalars().all()
            return await self._to_responses(requests)

    async def _get_request(self, request_id: str, *, lock: bool = False) -> ManualJoinRequest:
        stmt = select(ManualJoinRequest).where(ManualJoinRequest.id == request_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = (await self.db.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError("Manual join request not found", {"request_id": request_id})
        return request

    async def _get_student_row(self, student_id: str) -> User:
        student = await self.db.get(User, student_id)
        if student is None:
            raise RequestNotFoundError("Requesting student no longer exists", {"student_id": student_id})
        return student

    @staticmethod
    def _require_pending(request: ManualJoinRequest) -> None:
        if request.status != RequestStatus.PENDING.value:
            raise InvalidRequestStateError(
                f"Manual join request is already {request.status}",
                {"request_id": request.id, "status": request.status},
            )

    def _publish(self, event_type: str, request: ManualJoinRequest, student: User, section: Section) -> None:
        self._events.publish_background(
            event_type,
            registration_event_payload(
                student,
                section,
                request_id=request.id,
                status=request.status,
                approval_reason=request.approval_reason,
                rejection_reason=request.rejection_reason,
            ),
        )

    @staticmethod
    def _to_response(request: ManualJoinRequest, student: User, section: Section) -> ManualJoinResponse:
        return ManualJoinResponse(
            id=request.id,
            status=request.status,
            reason=request.reason,
            student_id=student.id,
            student_name=student.full_name,
            student_number=student.student_number,
            section_id=section.id,
            section_number=section.section_number,
            subject_code=section.subject.code,
            subject_name=section.subject.name,
            capacity=section.capacity,
            enrolled_count=section.enrolled_count,
            approved_by=request.approved_by,
            approved_at=request.approved_at,
            approval_reason=request.approval_reason,
            rejected_by=request.rejected_by,
            rejected_at=request.rejected_at,
            rejection_reason=request.rejection_reason,
            created_at=request.created_at,
        )

    async def _to_responses(self, requests: Sequence[ManualJoinRequest]) -> list[ManualJoinResponse]:
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
