# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for integration tests.

Each test gets its own SQLite database file created from the ORM metadata,
an engine configured the way the application configures it, and a Seeder
for inserting catalog rows.
"""

from datetime import time
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from coursereg.core.config.settings import DatabaseSettings
from coursereg.infrastructure.database.connection import create_engine, create_sessionmaker
from coursereg.infrastructure.database.models import (
    Base,
    ProgramStructure,
    ProgramStructureCourse,
    Registration,
    RegistrationType,
    Section,
    SectionSchedule,
    Subject,
    User,
    UserRole,
    generate_id,
)
from coursereg.infrastructure.events import EventBus, EventData

Meeting = tuple[str, str, str]


class Seeder:
    """Insert catalog and enrollment rows, each in its own committed transaction."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def _add(self, *rows) -> None:
        async with self._sessionmaker() as session:
            session.add_all(rows)
            await session.commit()

    async def student(self, *, programme: str = "CS", semester: int = 3, name: str | None = None) -> str:
        n = self._next()
        user = User(
            id=generate_id(),
            email=f"student{n}@student.example.edu",
            full_name=name or f"Student {n}",
            role=UserRole.STUDENT.value,
            student_number=f"S{n:05d}",
            semester=semester,
            programme=programme,
        )
        await self._add(user)
        return user.id

    async def staff(self, role: UserRole = UserRole.LECTURER, *, name: str | None = None) -> str:
        n = self._next()
        user = User(
            id=generate_id(),
            email=f"{role.value}{n}@example.edu",
            full_name=name or f"{role.value.title()} {n}",
            role=role.value,
        )
        await self._add(user)
        return user.id

    async def subject(self, code: str, *, programme: str = "CS", semester: int = 1, name: str | None = None) -> str:
        subject = Subject(
            id=generate_id(),
            code=code,
            name=name or f"{code} Course",
            credit_hours=3,
            semester=semester,
            programme=programme,
        )
        await self._add(subject)
        return subject.id

    async def section(
        self,
        subject_id: str,
        number: str = "1",
        *,
        capacity: int = 30,
        enrolled_count: int = 0,
        lecturer_id: str | None = None,
        meetings: list[Meeting] | None = None,
    ) -> str:
        section = Section(
            id=generate_id(),
            subject_id=subject_id,
            section_number=number,
            capacity=capacity,
            enrolled_count=enrolled_count,
            lecturer_id=lecturer_id,
        )
        schedules = [
            SectionSchedule(
                id=generate_id(),
                section_id=section.id,
                day=day,
                start_time=time.fromisoformat(start),
                end_time=time.fromisoformat(end),
                room=f"R{self._next()}",
            )
            for day, start, end in (meetings if meetings is not None else [("monday", "09:00", "11:00")])
        ]
        await self._add(section, *schedules)
        return section.id

    async def enroll(self, student_id: str, section_id: str) -> str:
        """Insert a registration directly and keep the cached count in step."""
        async with self._sessionmaker() as session:
            section = await session.get(Section, section_id)
            registration = Registration(
                id=generate_id(),
                student_id=student_id,
                section_id=section_id,
                subject_id=section.subject_id,
                registration_type=RegistrationType.NORMAL.value,
            )
            session.add(registration)
            await session.execute(
                update(Section)
                .where(Section.id == section_id)
                .values(enrolled_count=Section.enrolled_count + 1)
            )
            await session.commit()
        return registration.id

    async def share(self, subject_id: str, *, programme: str, semester: int) -> None:
        """Include a subject in another programme's structure."""
        structure = ProgramStructure(id=generate_id(), programme=programme, name=f"{programme} structure")
        link = ProgramStructureCourse(
            id=generate_id(),
            structure_id=structure.id,
            subject_id=subject_id,
            semester=semester,
        )
        await self._add(structure)
        await self._add(link)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "coursereg.db"


@pytest_asyncio.fixture(scope="function")
async def db_engine(db_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine on a fresh SQLite file with every table."""
    engine = create_engine(
        DatabaseSettings(url_override=f"sqlite+aiosqlite:///{db_path}", busy_timeout=10.0)
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def db_sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Session the service under test works in."""
    async with db_sessionmaker() as session:
        yield session


@pytest.fixture
def seed(db_sessionmaker) -> Seeder:
    return Seeder(db_sessionmaker)


@pytest_asyncio.fixture(scope="function")
async def event_bus() -> AsyncGenerator[EventBus, None]:
    bus = EventBus()
    yield bus
    await bus.drain()


@pytest.fixture
def published(event_bus: EventBus) -> list[EventData]:
    """Record every event published on the test bus."""
    events: list[EventData] = []

    async def record(event: EventData) -> None:
        events.append(event)

    event_bus.subscribe("*", record)
    return events


async def read_section(sessionmaker: async_sessionmaker[AsyncSession], section_id: str) -> Section:
    """Load a section through a separate session, as another reader would."""
    async with sessionmaker() as session:
        return await session.get(Section, section_id)


@pytest.fixture
def load_section(db_sessionmaker):
    async def _load(section_id: str) -> Section:
        return await read_section(db_sessionmaker, section_id)

    return _load
