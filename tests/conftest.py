# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Service and API tests run against a temporary SQLite database (aiosqlite)
built from the ORM metadata. The Dramatiq broker is the StubBroker.
"""

import os

os.environ.setdefault("WORKER_BROKER", "stub")
os.environ.setdefault("BILLING_SCHEDULER_ENABLED", "false")

import asyncio  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from educenter.core.config.settings import (  # noqa: E402
    BillingSettings,
    DatabaseSettings,
    Settings,
    WorkerSettings,
)
from educenter.infrastructure.database import Database  # noqa: E402
from educenter.infrastructure.database.models import (  # noqa: E402
    Center,
    Group,
    MonthlyPayment,
    MonthlyPaymentStatus,
    Student,
    StudentGroupBillingProfile,
)

# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )


# =============================================================================
# Settings and database
# =============================================================================


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return sqlite_url(tmp_path / "billing.db")


@pytest.fixture
def settings(database_url: str) -> Settings:
    """Settings pointing at the temporary database."""
    return Settings(
        environment="development",
        log_level="WARNING",
        database=DatabaseSettings(url_override=database_url),
        worker=WorkerSettings(broker="stub"),
        billing=BillingSettings(scheduler_enabled=False),
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created."""
    db = Database(settings)
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A session on the temporary database."""
    async with database.sessionmaker() as s:
        yield s


# =============================================================================
# Seed data
# =============================================================================


@dataclass
class SeedData:
    center_id: int
    other_center_id: int
    student_id: int
    second_student_id: int
    other_center_student_id: int
    group_id: int
    second_group_id: int
    other_center_group_id: int


async def seed_reference_data(session: AsyncSession) -> SeedData:
    """Insert two centers with students and groups."""
    session.add_all(
        [
            Center(id=1, name="Main Center"),
            Center(id=2, name="Branch Center"),
        ]
    )
    await session.flush()
    session.add_all(
        [
            Student(id=1, center_id=1, first_name="Aziza", last_name="Karimova", username="aziza"),
            Student(id=2, center_id=1, first_name="Bekzod", last_name="Tursunov", username="bekzod"),
            Student(id=3, center_id=2, first_name="Dilshod", last_name="Rahimov", username="dilshod"),
            Group(id=1, center_id=1, name="Math A"),
            Group(id=2, center_id=1, name="English B"),
            Group(id=3, center_id=2, name="Physics C"),
        ]
    )
    await session.commit()
    return SeedData(
        center_id=1,
        other_center_id=2,
        student_id=1,
        second_student_id=2,
        other_center_student_id=3,
        group_id=1,
        second_group_id=2,
        other_center_group_id=3,
    )


@pytest_asyncio.fixture
async def seed(session: AsyncSession) -> SeedData:
    return await seed_reference_data(session)


async def _prepare_database(settings: Settings) -> None:
    db = Database(settings)
    try:
        await db.create_all()
        async with db.sessionmaker() as s:
            await seed_reference_data(s)
    finally:
        await db.close()


@pytest.fixture
def seeded_settings(settings: Settings) -> Settings:
    """Settings whose database already holds tables and seed data.

    For synchronous tests (TestClient, actors) that run their own event loop.
    """
    asyncio.run(_prepare_database(settings))
    return settings


async def add_profile(
    session: AsyncSession,
    *,
    student_id: int = 1,
    group_id: int = 1,
    center_id: int = 1,
    join_date: date = date(2026, 1, 5),
    leave_date: date | None = None,
    monthly_amount: Decimal | str = "300000",
    due_day: int = 10,
) -> StudentGroupBillingProfile:
    """Insert a profile directly, bypassing service validation."""
    profile = StudentGroupBillingProfile(
        center_id=center_id,
        student_id=student_id,
        group_id=group_id,
        join_date=join_date,
        leave_date=leave_date,
        monthly_amount=Decimal(monthly_amount),
        due_day=due_day,
    )
    session.add(profile)
    await session.commit()
    return profile


async def add_payment(
    session: AsyncSession,
    *,
    student_id: int = 1,
    group_id: int = 1,
    center_id: int = 1,
    billing_month: date = date(2026, 1, 1),
    due_date: date | None = None,
    amount_due: Decimal | str = "300000",
    amount_paid: Decimal | str = "0",
    status: MonthlyPaymentStatus = MonthlyPaymentStatus.PENDING,
    **extra: Any,
) -> MonthlyPayment:
    """Insert a ledger row directly."""
    payment = MonthlyPayment(
        center_id=center_id,
        student_id=student_id,
        group_id=group_id,
        billing_month=billing_month,
        due_date=due_date or billing_month.replace(day=10),
        amount_due=Decimal(amount_due),
        amount_paid=Decimal(amount_paid),
        status=status,
        **extra,
    )
    session.add(payment)
    await session.commit()
    return payment


@pytest.fixture
def make_profile(session: AsyncSession):
    """Factory inserting billing profiles into the test session."""

    async def _make(**kwargs: Any) -> StudentGroupBillingProfile:
        return await add_profile(session, **kwargs)

    return _make


@pytest.fixture
def make_payment(session: AsyncSession):
    """Factory inserting ledger rows into the test session."""

    async def _make(**kwargs: Any) -> MonthlyPayment:
        return await add_payment(session, **kwargs)

    return _make
