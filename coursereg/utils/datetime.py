# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime helpers.

All timestamps are stored as timezone-aware UTC values. Use these helpers
for model defaults instead of calling datetime.now() directly.
"""

from datetime import datetime, time, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def format_clock(value: time) -> str:
    """Render a time of day as HH:MM, the way timetables print it.

    Args:
        value: Time of day.

    Returns:
        Zero-padded hour and minute string.

    Example:
        >>> format_clock(time(9, 5))
        '09:05'
    """
    return value.strftime("%H:%M")
