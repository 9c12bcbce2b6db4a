# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for PostgreSQL connections.

Example:
    from educenter.infrastructure.database import Database

    database = Database(settings)
    async with database.session() as session:
        result = await session.execute(select(StudentGroupBillingProfile))
"""

from educenter.infrastructure.database.connection import Database, DatabaseError

__all__ = [
    "Database",
    "DatabaseError",
]
