# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Capacity ledger for section seat counts.

sections.enrolled_count caches the number of registrations in a section.
The ledger changes it with a single conditional UPDATE executed in the
caller's transaction, next to the registration insert or delete that
caused the change:

    UPDATE sections SET enrolled_count = enrolled_count + 1
    WHERE id = :id AND enrolled_count < capacity
    RETURNING enrolled_count

When no row comes back the section was full at the moment of the write,
so two concurrent claims for the last seat can never both succeed. The
capacity condition is dropped only for manual-join approvals (bypass).
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from coursereg.domains.exceptions import CapacityExceededError, SectionNotFoundError
from coursereg.infrastructure.database.models import Registration, Section

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacitySnapshot:
    """Seat usage of one section."""

    section_id: str
    capacity: int
    enrolled_count: int

    @property
    def available_seats(self) -> int:
        return max(self.capacity - self.enrolled_count, 0)

    @property
    def is_full(self) -> bool:
        return self.enrolled_count >= self.capacity


@dataclass(frozen=True)
class LedgerCheck:
    """Comparison of the cached counter with the live registration count."""

    section_id: str
    cached_count: int
    actual_count: int

    @property
    def consistent(self) -> bool:
        return self.cached_count == self.actual_count


class CapacityLedger:
    """Seat accounting for sections.

    Attributes:
        db: Session of the unit of work the ledger writes into.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def claim_seat(self, section: Section, *, bypass: bool = False) -> int:
        """Take one seat in a section.

        Args:
            section: Section being joined.
            bypass: Allow the count to exceed capacity (manual-join approval).

        Returns:
            The new enrolled count.

        Raises:
            CapacityExceededError: If the section is full and bypass is off.
        """
        stmt = (
            update(Section)
            .where(Section.id == section.id)
            .values(enrolled_count=Section.enrolled_count + 1)
            .returning(Section.enrolled_count)
            .execution_options(synchronize_session=False)
        )
        if not bypass:
            stmt = stmt.where(Section.enrolled_count < Section.capacity)

        new_count = (await self.db.execute(stmt)).scalar_one_or_none()
        if new_count is None:
            raise CapacityExceededError(
                "Section is at full capacity",
                {
                    "section_id": section.id,
                    "capacity": section.capacity,
                    "enrolled_count": section.enrolled_count,
                },
            )

        set_committed_value(section, "enrolled_count", new_count)
        if new_count > section.capacity:
            logger.info(
                "Section over capacity by override: section=%s, enrolled=%d, capacity=%d",
                section.id,
                new_count,
                section.capacity,
            )
        return new_count

    async def release_seat(self, section: Section) -> int:
        """Give back one seat in a section.

        Returns:
            The new enrolled count.
        """
        stmt = (
            update(Section)
            .where(Section.id == section.id, Section.enrolled_count > 0)
            .values(enrolled_count=Section.enrolled_count - 1)
            .returning(Section.enrolled_count)
            .execution_options(synchronize_session=False)
        )
        new_count = (await self.db.execute(stmt)).scalar_one_or_none()
        if new_count is None:
            logger.warning(
                "Released a seat in a section with no seats taken: section=%s", section.id
            )
            return 0

        set_committed_value(section, "enrolled_count", new_count)
        return new_count

    async def snapshot(self, section_id: str) -> CapacitySnapshot:
        """Read the current seat usage of a section.

        Raises:
            SectionNotFoundError: If the section does not exist.
        """
        stmt = select(Section.capacity, Section.enrolled_count).where(Section.id == section_id)
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            raise SectionNotFoundError("Section not found", {"section_id": section_id})
        return CapacitySnapshot(
            section_id=section_id,
            capacity=row.capacity,
            enrolled_count=row.enrolled_count,
        )

    async def count_registrations(self, section_id: str) -> int:
        """Count live registrations referencing a section."""
        stmt = select(func.count(Registration.id)).where(Registration.section_id == section_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def verify(self, section_id: str) -> LedgerCheck:
        """Compare the cached counter with the live registration count.

        Raises:
            SectionNotFoundError: If the section does not exist.
        """
        snapshot = await self.snapshot(section_id)
        actual = await self.count_registrations(section_id)
        check = LedgerCheck(
            section_id=section_id,
            cached_count=snapshot.enrolled_count,
            actual_count=actual,
        )
        if not check.consistent:
            logger.warning(
                "Enrolled count drift: section=%s, cached=%d, actual=%d",
                section_id,
                check.cached_count,
                check.actual_count,
            )
        return check
