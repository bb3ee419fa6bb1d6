# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus.

Services publish outcome events here once their unit of work has
committed. Handler failures are logged and never reach the publisher, so a
broken subscriber cannot turn a successful registration into an error.

Supports exact event types ("registration.created"), wildcard patterns
("swap.*") and multiple async handlers per type.

Example:
    from coursereg.infrastructure.events import get_event_bus, EventTypes

    bus = get_event_bus()
    bus.subscribe(EventTypes.Registration.CREATED, on_registered)

    # Fire and forget from a service
    bus.publish_background(EventTypes.Registration.CREATED, {"student_id": "123"})

    # Tests and shutdown wait for in-flight deliveries
    await bus.drain()
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from coursereg.utils.datetime import utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


def _is_pattern(event_type: str) -> bool:
    return "*" in event_type or "?" in event_type


class EventBus:
    """In-memory async event bus with pattern matching support.

    Designed for single-process async use. Deliveries started with
    publish_background() are tracked so they can be awaited with drain().
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._pending: set[asyncio.Task[EventData]] = set()
        self._event_count = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type or wildcard pattern.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function called with the EventData.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        registry.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler.

        Returns:
            True if the handler was found and removed, False otherwise.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    def _matching_handlers(self, event_type: str) -> list[EventHandler]:
        handlers = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers.extend(pattern_handlers)
        return handlers

    async def publish(self, event_type: str, payload: dict[str, Any]) -> EventData:
        """Publish an event and wait for every matching handler.

        Handlers run concurrently. Errors in individual handlers are logged
        but don't stop other handlers.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers = self._matching_handlers(event_type)
        if not handlers:
            logger.debug("No handlers for event: %s", event_type)
            return event

        logger.debug("Publishing event %s to %d handlers", event_type, len(handlers))

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(handler) for handler in handlers])
        return event

    def publish_background(self, event_type: str, payload: dict[str, Any]) -> asyncio.Task[EventData]:
        """Schedule publish() without waiting for it.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            The scheduled task.
        """
        task = asyncio.get_running_loop().create_task(self.publish(event_type, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait until every background delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get subscription and event counts."""
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "exact_subscriptions": len(self._handlers),
            "pattern_subscriptions": len(self._pattern_handlers),
            "total_handlers": exact_count + pattern_count,
            "events_published": self._event_count,
            "pending_deliveries": len(self._pending),
        }


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop the process-wide event bus and its subscriptions."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
