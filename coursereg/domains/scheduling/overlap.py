# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Weekly timetable overlap detection.

Two meetings on the same day clash when their half-open intervals
[start, end) intersect: s1 < e2 and s2 < e1. A class ending at 11:00 and
one starting at 11:00 do not clash. Everything here is pure; callers load
the schedules they want compared.

Example:
    >>> slot = TimeSlot(Weekday.MONDAY, time(9), time(11))
    >>> slot.overlaps(TimeSlot(Weekday.MONDAY, time(11), time(13)))
    False
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from itertools import combinations
from typing import Any

from coursereg.utils.datetime import format_clock


class Weekday(str, Enum):
    """Day a section meets on."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def ordinal(self) -> int:
        """Position in the week, Monday first."""
        return list(Weekday).index(self)

    @property
    def label(self) -> str:
        """Capitalized day name."""
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: "str | Weekday") -> "Weekday":
        """Parse a day name, case-insensitively, accepting 3-letter abbreviations.

        Raises:
            ValueError: If the value does not name a day.
        """
        if isinstance(value, Weekday):
            return value
        text = value.strip().lower()
        for day in cls:
            if text == day.value or text == day.value[:3]:
                return day
        raise ValueError(f"Unknown weekday: {value!r}")


class EntrySource(str, Enum):
    """Why a person is committed to a meeting."""

    ENROLLED = "enrolled"
    TEACHING = "teaching"
    CANDIDATE = "candidate"


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """Check whether two half-open intervals on the same day intersect."""
    return start1 < end2 and start2 < end1


@dataclass(frozen=True)
class TimeSlot:
    """A weekly meeting time."""

    day: Weekday
    start: time
    end: time

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ValueError(
                f"Start time must be before end time: {format_clock(self.start)}-{format_clock(self.end)}"
            )

    def overlaps(self, other: "TimeSlot") -> bool:
        """Check whether this slot clashes with another."""
        return self.day == other.day and intervals_overlap(
            self.start, self.end, other.start, other.end
        )

    @property
    def label(self) -> str:
        """Human-readable slot, e.g. 'Monday 09:00-11:00'."""
        return f"{self.day.label} {format_clock(self.start)}-{format_clock(self.end)}"

    @property
    def sort_key(self) -> tuple[int, time, time]:
        return (self.day.ordinal, self.start, self.end)


@dataclass(frozen=True)
class ScheduleEntry:
    """A meeting attributed to the section and subject it belongs to."""

    slot: TimeSlot
    section_id: str
    section_number: str
    subject_code: str
    subject_name: str = ""
    source: EntrySource = EntrySource.ENROLLED
    room: str | None = None

    def describe(self) -> str:
        """Render the entry as '<code> <name> (Section <n>) on <slot>'."""
        title = f"{self.subject_code} {self.subject_name}".strip()
        return f"{title} (Section {self.section_number}) on {self.slot.label}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_id": self.section_id,
            "section_number": self.section_number,
            "subject_code": self.subject_code,
            "subject_name": self.subject_name,
            "source": self.source.value,
            "day": self.slot.day.value,
            "start_time": format_clock(self.slot.start),
            "end_time": format_clock(self.slot.end),
            "room": self.room,
        }


@dataclass(frozen=True)
class Clash:
    """A candidate meeting colliding with an existing commitment."""

    candidate: ScheduleEntry
    existing: ScheduleEntry
    party: str | None = field(default=None, compare=False)

    @property
    def message(self) -> str:
        return (
            f"{self.candidate.subject_code} ({self.candidate.slot.label}) "
            f"clashes with {self.existing.describe()}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "existing": self.existing.to_dict(),
            "party": self.party,
            "message": self.message,
        }


def sort_entries(entries: Iterable[ScheduleEntry]) -> list[ScheduleEntry]:
    """Order entries by day of week, then start and end time."""
    return sorted(entries, key=lambda e: (e.slot.sort_key, e.subject_code, e.section_number))


def iter_clashes(
    candidate: Iterable[ScheduleEntry],
    existing: Iterable[ScheduleEntry],
) -> Iterable[Clash]:
    """Yield every clash between candidate entries and existing ones.

    Each candidate entry is evaluated independently against the whole
    existing schedule. Results come in week order of the candidate entry,
    then of the colliding existing entry.
    """
    committed = sort_entries(existing)
    for entry in sort_entries(candidate):
        for other in committed:
            if entry.slot.overlaps(other.slot):
                yield Clash(candidate=entry, existing=other)


def find_clash(
    candidate: Iterable[ScheduleEntry],
    existing: Iterable[ScheduleEntry],
) -> Clash | None:
    """Return the first clash between candidate and existing entries, if any."""
    return next(iter(iter_clashes(candidate, existing)), None)


def find_all_clashes(
    candidate: Iterable[ScheduleEntry],
    existing: Iterable[ScheduleEntry],
) -> list[Clash]:
    """Return every clash between candidate and existing entries."""
    return list(iter_clashes(candidate, existing))


def find_pairwise_clashes(entries: Sequence[ScheduleEntry]) -> list[Clash]:
    """Find clashes among a set of entries from several sections.

    Meetings of the same section are never compared with each other.
    Each clashing pair is reported once, earlier entry as the candidate.
    """
    clashes = []
    for first, second in combinations(sort_entries(entries), 2):
        if first.section_id == second.section_id:
            continue
        if first.slot.overlaps(second.slot):
            clashes.append(Clash(candidate=first, existing=second))
    return clashes
