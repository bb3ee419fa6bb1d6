# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification templates for student-facing outcomes.

Each renderer turns an event payload into the notifications it should
produce. Events without a renderer produce no notification.
"""

from collections.abc import Callable
from typing import Any

from coursereg.infrastructure.events.types import EventTypes
from coursereg.infrastructure.notifications.channels.base import NotificationPayload

Renderer = Callable[[dict[str, Any]], list[NotificationPayload]]


def _course(data: dict[str, Any]) -> str:
    return f"{data.get('subject_code', '')} {data.get('subject_name', '')}".strip()


def _to_student(data: dict[str, Any], notification_type: str, title: str, message: str) -> NotificationPayload:
    return NotificationPayload(
        notification_type=notification_type,
        title=title,
        message=message,
        recipient_id=data["student_id"],
        recipient_email=data.get("student_email", ""),
        recipient_name=data.get("student_name", ""),
        data=data,
    )


def _with_reason(message: str, reason: str | None) -> str:
    if reason:
        return f"{message}\n\nReason: {reason}"
    return message


def registration_confirmed(data: dict[str, Any]) -> list[NotificationPayload]:
    schedule = data.get("schedule") or []
    message = f"You have been successfully registered for {_course(data)}, Section {data['section_number']}."
    if schedule:
        message += "\n\nSchedule:\n" + "\n".join(f"- {slot}" for slot in schedule)
    return [_to_student(data, "registration_confirmed", "Registration Confirmed", message)]


def drop_request_approved(data: dict[str, Any]) -> list[NotificationPayload]:
    message = (
        f"Your request to drop {_course(data)} has been approved. "
        "This course has been removed from your registration."
    )
    return [_to_student(data, "drop_request_approved", "Drop Request Approved", message)]


def drop_request_rejected(data: dict[str, Any]) -> list[NotificationPayload]:
    message = _with_reason(
        f"Your request to drop {_course(data)} has been rejected.",
        data.get("rejection_reason"),
    )
    message += "\n\nPlease contact your Head of Programme for more information."
    return [_to_student(data, "drop_request_rejected", "Drop Request Rejected", message)]


def manual_join_approved(data: dict[str, Any]) -> list[NotificationPayload]:
    message = (
        f"Your request to join {_course(data)} (Section {data['section_number']}) has been approved. "
        "Check your timetable for the updated schedule."
    )
    return [_to_student(data, "manual_join_approved", "Manual Join Approved", message)]


def manual_join_rejected(data: dict[str, Any]) -> list[NotificationPayload]:
    message = _with_reason(
        f"Your request to join {_course(data)} has been rejected.",
        data.get("rejection_reason"),
    )
    message += "\n\nTry registering for a different section with available seats."
    return [_to_student(data, "manual_join_rejected", "Manual Join Rejected", message)]


def swap_approved(data: dict[str, Any]) -> list[NotificationPayload]:
    course = _course(data)
    notices = []
    for party, new_section in (
        ("requester", data["target_section_number"]),
        ("target", data["requester_section_number"]),
    ):
        notices.append(
            NotificationPayload(
                notification_type="swap_approved",
                title="Section Swap Completed",
                message=f"Your section swap for {course} is complete. You are now in Section {new_section}.",
                recipient_id=data[f"{party}_id"],
                recipient_email=data.get(f"{party}_email", ""),
                recipient_name=data.get(f"{party}_name", ""),
                data=data,
            )
        )
    return notices


TEMPLATES: dict[str, Renderer] = {
    EventTypes.Registration.CREATED: registration_confirmed,
    EventTypes.Drop.APPROVED: drop_request_approved,
    EventTypes.Drop.REJECTED: drop_request_rejected,
    EventTypes.ManualJoin.APPROVED: manual_join_approved,
    EventTypes.ManualJoin.REJECTED: manual_join_rejected,
    EventTypes.Swap.APPROVED: swap_approved,
}


def render_notifications(event_type: str, data: dict[str, Any]) -> list[NotificationPayload]:
    """Render the notifications an event should produce."""
    renderer = TEMPLATES.get(event_type)
    if renderer is None:
        return []
    return renderer(data)
