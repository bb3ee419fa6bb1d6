# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Timetable overlap checking."""

from coursereg.domains.scheduling.overlap import (
    Clash,
    EntrySource,
    ScheduleEntry,
    TimeSlot,
    Weekday,
    find_all_clashes,
    find_clash,
    find_pairwise_clashes,
    intervals_overlap,
    iter_clashes,
    sort_entries,
)

__all__ = [
    "Clash",
    "EntrySource",
    "ScheduleEntry",
    "TimeSlot",
    "Weekday",
    "find_all_clashes",
    "find_clash",
    "find_pairwise_clashes",
    "intervals_overlap",
    "iter_clashes",
    "sort_entries",
]
