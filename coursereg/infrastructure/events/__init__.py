# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-process event publishing for registration outcomes."""

from coursereg.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from coursereg.infrastructure.events.types import EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventTypes",
    "get_event_bus",
    "reset_event_bus",
]
