# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the enrollment store.

Example:
    from coursereg.infrastructure.database import get_session, atomic

    async with get_session() as session:
        async with atomic(session):
            session.add(section)
"""

from coursereg.infrastructure.database.connection import (
    DatabaseError,
    atomic,
    check_database_connection,
    close_database,
    create_engine,
    create_sessionmaker,
    enable_sqlite_immediate_transactions,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)

__all__ = [
    "DatabaseError",
    "atomic",
    "check_database_connection",
    "close_database",
    "create_engine",
    "create_sessionmaker",
    "enable_sqlite_immediate_transactions",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
]
