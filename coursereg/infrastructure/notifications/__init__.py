# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student notifications for registration outcomes."""

from coursereg.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
)
from coursereg.infrastructure.notifications.service import NotificationService
from coursereg.infrastructure.notifications.templates import TEMPLATES, render_notifications

__all__ = [
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "EmailChannel",
    "NotificationPayload",
    "NotificationService",
    "TEMPLATES",
    "render_notifications",
]
