# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification service reacting to registration outcome events.

The service subscribes to the event bus and sends one email per rendered
notification. Delivery problems are logged and reported as channel
results; they never propagate back to the operation that published the
event.

Example:
    service = NotificationService(EmailChannel(settings.smtp))
    service.subscribe(get_event_bus())
"""

import logging

from coursereg.infrastructure.events.bus import EventBus, EventData
from coursereg.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    DeliveryStatus,
)
from coursereg.infrastructure.notifications.templates import TEMPLATES, render_notifications

logger = logging.getLogger(__name__)


class NotificationService:
    """Dispatches student notifications for outcome events.

    Attributes:
        channel: Channel every notification is sent through.
    """

    def __init__(self, channel: BaseChannel) -> None:
        self.channel = channel

    def subscribe(self, bus: EventBus) -> None:
        """Subscribe to every event type that has a template."""
        for event_type in TEMPLATES:
            bus.subscribe(event_type, self.handle_event)
        logger.info("NotificationService subscribed to %d event types", len(TEMPLATES))

    def unsubscribe(self, bus: EventBus) -> None:
        for event_type in TEMPLATES:
            bus.unsubscribe(event_type, self.handle_event)

    async def handle_event(self, event: EventData) -> list[ChannelResult]:
        """Render and send the notifications for one event.

        Args:
            event: Published event.

        Returns:
            One result per notification.
        """
        try:
            payloads = render_notifications(event.event_type, event.payload)
        except KeyError as e:
            logger.error(
                "Cannot render notification for %s: missing %s",
                event.event_type,
                str(e),
            )
            return []

        results = []
        for payload in payloads:
            try:
                result = await self.channel.send(payload)
            except Exception as e:
                logger.error(
                    "Notification %s to %s failed: %s",
                    payload.notification_type,
                    payload.recipient_email,
                    str(e),
                    exc_info=True,
                )
                result = self.channel.create_failure_result(str(e))
            if result.status == DeliveryStatus.FAILED:
                logger.warning(
                    "Notification not delivered: type=%s, recipient=%s, error=%s",
                    payload.notification_type,
                    payload.recipient_id,
                    result.error_message,
                )
            results.append(result)
        return results
