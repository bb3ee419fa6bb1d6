# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type constants for registration outcomes.

Services publish these after their transaction commits. Subscribers (the
notification dispatcher, audit sinks) match them exactly or by wildcard,
e.g. "swap.*".
"""


class EventTypes:
    """All event types organized by workflow."""

    class Registration:
        """Enrollment ledger changes."""

        CREATED = "registration.created"
        REMOVED = "registration.removed"

    class Swap:
        """Section swap workflow."""

        REQUESTED = "swap.requested"
        APPROVED = "swap.approved"
        REJECTED = "swap.rejected"
        CANCELLED = "swap.cancelled"

    class ManualJoin:
        """Manual-join workflow."""

        REQUESTED = "manual_join.requested"
        APPROVED = "manual_join.approved"
        REJECTED = "manual_join.rejected"

    class Drop:
        """Drop workflow."""

        REQUESTED = "drop.requested"
        APPROVED = "drop.approved"
        REJECTED = "drop.rejected"

    @classmethod
    def all(cls) -> list[str]:
        """List every declared event type."""
        groups = (cls.Registration, cls.Swap, cls.ManualJoin, cls.Drop)
        return [
            value
            for group in groups
            for name, value in vars(group).items()
            if name.isupper()
        ]
