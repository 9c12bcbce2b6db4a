# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

Uses SQLAlchemy 2.0 async API with the asyncpg driver in production.
SQLite (aiosqlite) URLs are accepted for local development and tests.

The Database object owns one engine and sessionmaker. It is constructed
explicitly from settings and handed to whoever needs it (API lifespan,
worker jobs); there is no module-level connection state.

Example:
    from educenter.infrastructure.database import Database

    database = Database(settings)

    async with database.session() as session:
        result = await session.execute(select(MonthlyPayment))
        rows = result.scalars().all()

    await database.close()
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from educenter.infrastructure.database.models import Base

if TYPE_CHECKING:
    from educenter.core.config.settings import Settings


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the database error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Async engine and session factory for the billing database.

    Attributes:
        url: Connection URL the engine was created with.
    """

    def __init__(self, settings: "Settings", url: str | None = None) -> None:
        """Create the engine and sessionmaker.

        Args:
            settings: Application settings containing database configuration.
            url: Optional URL overriding settings.database.url.

        Raises:
            DatabaseError: If engine creation fails.
        """
        self.url = url or settings.database.url
        engine_kwargs: dict[str, Any] = {"echo": False}

        if not self.is_sqlite:
            engine_kwargs.update(
                pool_size=settings.database.pool_size,
                max_overflow=settings.database.max_overflow,
                pool_pre_ping=True,
                pool_recycle=1800,
            )

        try:
            self._engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to initialize database connection", e) from e

        if self.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def is_sqlite(self) -> bool:
        """Whether the engine targets SQLite."""
        return self.url.startswith("sqlite")

    @property
    def engine(self) -> AsyncEngine:
        """The SQLAlchemy async engine."""
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """The SQLAlchemy async sessionmaker."""
        return self._sessionmaker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Get an async session.

        The session is committed on success and rolled back on exception.
        SQLAlchemy failures are wrapped in DatabaseError; domain exceptions
        propagate unchanged.

        Yields:
            AsyncSession for database operations.

        Raises:
            DatabaseError: If a database operation fails.
        """
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Database operation failed", e) from e
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables from the ORM metadata.

        Intended for development and tests; production uses Alembic.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def check_connection(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if the database is reachable, False otherwise.
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    async def close(self) -> None:
        """Dispose of the connection pool."""
        await self._engine.dispose()
