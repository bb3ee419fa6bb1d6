# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy for registration operations.

Every failed precondition aborts its operation with one of these, and the
operation's transaction is rolled back before the error reaches the caller.
The API layer maps each kind to an HTTP status.

- RegistrationError: Base exception for all registration errors
- NotFoundError: Student, section, enrollment or request missing or inactive
- IneligibleError: Semester or programme mismatch
- DuplicateEnrollmentError: Student already holds a section of the subject
- CapacityExceededError: Normal-path registration into a full section
- ScheduleClashError: Timetable overlap, carries the clash
- InvalidRequestStateError: Request not in the expected lifecycle state
- AuthorizationDeniedError: Actor lacks scope for the action
- InvalidInputError: Malformed input such as a short reason
"""

from typing import Any

from coursereg.domains.scheduling.overlap import Clash


class RegistrationError(Exception):
    """Base exception for all registration errors.

    Attributes:
        message: Human-readable error description.
        details: Additional error context, safe to return to clients.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize registration error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class NotFoundError(RegistrationError):
    """Raised when an entity does not exist or is inactive."""

    pass


class StudentNotFoundError(NotFoundError):
    """Raised when a student does not exist or is inactive."""

    pass


class SectionNotFoundError(NotFoundError):
    """Raised when a section does not exist or is inactive."""

    pass


class EnrollmentNotFoundError(NotFoundError):
    """Raised when a registration does not exist or belongs to someone else."""

    pass


class RequestNotFoundError(NotFoundError):
    """Raised when a swap, manual-join or drop request does not exist."""

    pass


class IneligibleError(RegistrationError):
    """Raised on a semester or programme mismatch."""

    pass


class DuplicateEnrollmentError(RegistrationError):
    """Raised when the student already holds a section of the same subject."""

    pass


class CapacityExceededError(RegistrationError):
    """Raised when a normal-path registration targets a full section."""

    pass


class ScheduleClashError(RegistrationError):
    """Raised when a timetable overlap is detected.

    Attributes:
        clash: The candidate meeting and the commitment it collides with.
        party: Whose timetable clashes ("requester" or "target" for swaps).
    """

    def __init__(self, message: str, clash: Clash, party: str | None = None):
        self.clash = clash
        self.party = party
        details = clash.to_dict()
        details["party"] = party
        super().__init__(message, details)


class InvalidRequestStateError(RegistrationError):
    """Raised when a request is not in the state an action requires."""

    pass


class AuthorizationDeniedError(RegistrationError):
    """Raised when the actor lacks scope over the target section or request."""

    pass


class InvalidInputError(RegistrationError):
    """Raised on malformed input."""

    pass
