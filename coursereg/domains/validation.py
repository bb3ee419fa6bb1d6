# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Input checks shared by the request workflows."""

from coursereg.core.config.settings import RegistrationSettings
from coursereg.domains.exceptions import InvalidInputError


def validate_reason(reason: str | None, settings: RegistrationSettings) -> str:
    """Check a student's justification against the configured length bounds.

    Args:
        reason: Text supplied by the student.
        settings: Registration settings holding the bounds.

    Returns:
        The reason with surrounding whitespace removed.

    Raises:
        InvalidInputError: If the reason is too short or too long.
    """
    text = (reason or "").strip()
    if len(text) < settings.min_reason_length:
        raise InvalidInputError(
            f"Reason must be at least {settings.min_reason_length} characters",
            {"min_length": settings.min_reason_length, "length": len(text)},
        )
    if len(text) > settings.max_reason_length:
        raise InvalidInputError(
            f"Reason must not exceed {settings.max_reason_length} characters",
            {"max_length": settings.max_reason_length, "length": len(text)},
        )
    return text


def require_text(value: str | None, message: str) -> str:
    """Return the stripped value, or raise if nothing is left.

    Raises:
        InvalidInputError: If the value is missing or blank.
    """
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(message)
    return text
