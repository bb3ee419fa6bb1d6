# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests (real SQLite store)
"""

from collections.abc import Iterator
from datetime import time

import pytest

from coursereg.core.config import clear_settings_cache
from coursereg.core.config.settings import RegistrationSettings
from coursereg.domains.scheduling.overlap import EntrySource, ScheduleEntry, TimeSlot, Weekday
from coursereg.infrastructure.events import reset_event_bus


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (uses a SQLite store)"
    )


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_globals() -> Iterator[None]:
    """Reset cached settings and the process-wide event bus around each test."""
    clear_settings_cache()
    reset_event_bus()
    yield
    clear_settings_cache()
    reset_event_bus()


@pytest.fixture
def registration_settings() -> RegistrationSettings:
    """Provide registration rules with the default reason bounds."""
    return RegistrationSettings(min_reason_length=10, max_reason_length=500)


# =============================================================================
# Helper Fixtures
# =============================================================================


def make_entry(
    day: str,
    start: str,
    end: str,
    *,
    code: str = "CS101",
    section: str = "1",
    section_id: str | None = None,
    source: EntrySource = EntrySource.ENROLLED,
) -> ScheduleEntry:
    """Build a schedule entry from plain strings."""
    return ScheduleEntry(
        slot=TimeSlot(Weekday.parse(day), time.fromisoformat(start), time.fromisoformat(end)),
        section_id=section_id or f"{code}-{section}",
        section_number=section,
        subject_code=code,
        subject_name=f"{code} Course",
        source=source,
    )


@pytest.fixture
def entry_factory():
    """Provide make_entry to tests without importing conftest."""
    return make_entry
