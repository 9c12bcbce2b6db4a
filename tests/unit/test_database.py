# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the Database connection wrapper."""

import pytest
from sqlalchemy import func, select, text

from educenter.domains.billing.exceptions import ProfileNotFoundError
from educenter.infrastructure.database import Database, DatabaseError
from educenter.infrastructure.database.models import Center


class TestDatabase:
    def test_sqlite_detection(self, settings):
        assert Database(settings).is_sqlite
        assert not Database(settings, url="postgresql+asyncpg://u:p@localhost/db").is_sqlite

    @pytest.mark.asyncio
    async def test_check_connection(self, database):
        assert await database.check_connection() is True

    @pytest.mark.asyncio
    async def test_session_commits_on_success(self, database):
        async with database.session() as session:
            session.add(Center(name="North"))

        async with database.session() as session:
            count = await session.scalar(select(func.count(Center.id)))
        assert count == 1

    @pytest.mark.asyncio
    async def test_session_rolls_back_domain_errors(self, database):
        with pytest.raises(ProfileNotFoundError):
            async with database.session() as session:
                session.add(Center(name="North"))
                await session.flush()
                raise ProfileNotFoundError("missing")

        async with database.session() as session:
            count = await session.scalar(select(func.count(Center.id)))
        assert count == 0

    @pytest.mark.asyncio
    async def test_sqlalchemy_errors_wrapped(self, database):
        with pytest.raises(DatabaseError) as exc_info:
            async with database.session() as session:
                await session.execute(text("SELECT * FROM no_such_table"))

        assert exc_info.value.original_error is not None
        assert "Database operation failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_foreign_keys_enforced(self, database):
        with pytest.raises(DatabaseError):
            async with database.session() as session:
                await session.execute(
                    text(
                        'INSERT INTO "groups" (center_id, name, created_at, updated_at) '
                        "VALUES (999, 'Ghost', CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
                    )
                )
