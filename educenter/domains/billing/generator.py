# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Monthly billing cycle generator.

Creates one ledger row per active billing profile for a billing month.
Rows are inserted with ON CONFLICT DO NOTHING on the
(student_id, group_id, billing_month) key, so repeated or concurrent runs
for the same month never duplicate rows and never modify rows that exist
already, whatever their status.

generate_up_to backfills every month from a profile's join month up to a
given month, so months that were never generated still get their rows.

Example:
    generator = CycleGenerator(session)
    report = await generator.generate_for_month(date(2026, 1, 1))
    print(report.rows_created, report.rows_existing)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.domains.billing.calendar import (
    compute_due_date,
    is_active_for_month,
    round_money,
    validate_profile_values,
)
from educenter.domains.billing.exceptions import BillingIntegrityError, InvalidProfileError
from educenter.domains.billing.profiles import ActiveProfile, BillingProfileService
from educenter.infrastructure.database.models import MonthlyPayment, MonthlyPaymentStatus
from educenter.utils.datetime import iter_month_starts, month_start, utc_now
from educenter.utils.logging import bound_context, get_logger

logger = get_logger(__name__)

_CONFLICT_KEY = ["student_id", "group_id", "billing_month"]

# Rows per INSERT; keeps bind parameters under the asyncpg and SQLite limits
_INSERT_BATCH_SIZE = 1000


@dataclass
class GenerationFailure:
    """A profile the generator skipped."""

    profile_id: int
    student_id: int
    group_id: int
    reason: str
    message: str


@dataclass
class GenerationReport:
    """Outcome of one generation run.

    Attributes:
        billing_month: First day of the generated month.
        profiles_considered: Active profiles loaded for the month.
        rows_created: Ledger rows inserted by this run.
        rows_existing: Valid profiles whose row was already present.
        failures: Profiles skipped because their data was invalid.
    """

    billing_month: date
    profiles_considered: int = 0
    rows_created: int = 0
    rows_existing: int = 0
    failures: list[GenerationFailure] = field(default_factory=list)


@dataclass
class BackfillReport:
    """Outcome of a backfill run, one GenerationReport per month."""

    up_to_month: date
    months: list[GenerationReport] = field(default_factory=list)

    @property
    def first_month(self) -> date | None:
        return self.months[0].billing_month if self.months else None

    @property
    def rows_created(self) -> int:
        return sum(m.rows_created for m in self.months)

    @property
    def rows_existing(self) -> int:
        return sum(m.rows_existing for m in self.months)

    @property
    def failures(self) -> list[GenerationFailure]:
        return [f for m in self.months for f in m.failures]


class CycleGenerator:
    """Generates monthly ledger rows from billing profiles.

    Attributes:
        db: Async database session.
        profiles: Profile store providing the active-profile read contract.
    """

    def __init__(
        self,
        db: AsyncSession,
        profiles: BillingProfileService | None = None,
    ) -> None:
        self.db = db
        self.profiles = profiles or BillingProfileService(db)

    async def generate_for_month(
        self,
        month: date | None = None,
        *,
        today: date | None = None,
        center_id: int | None = None,
    ) -> GenerationReport:
        """Ensure every active profile has a ledger row for a month.

        Args:
            month: Any date in the target month. Defaults to today's month.
            today: Reference date when month is omitted. Defaults to UTC today.
            center_id: Restrict generation to one center.

        Returns:
            GenerationReport with created, existing and failed counts.

        Raises:
            BillingIntegrityError: If a profile references a missing student
                or group.
        """
        now = utc_now()
        billing_month = month_start(month or today or now.date())

        with bound_context(billing_month=billing_month.isoformat(), center_id=center_id):
            profiles = await self.profiles.list_active_profiles(billing_month, center_id)
            report = await self._generate_month(billing_month, profiles, now)

            await self.db.commit()

            logger.info(
                "monthly_payments_generated",
                profiles=report.profiles_considered,
                created=report.rows_created,
                existing=report.rows_existing,
                failed=len(report.failures),
            )
        return report

    async def generate_up_to(
        self,
        month: date | None = None,
        *,
        today: date | None = None,
        center_id: int | None = None,
    ) -> BackfillReport:
        """Ensure ledger rows exist for every month up to and including a month.

        Each profile gets a row for every month it is active, starting at
        its join month. Rows that exist already are left untouched, so the
        call is safe to repeat. All months are written in one transaction.

        Args:
            month: Any date in the last month to fill. Defaults to today's month.
            today: Reference date when month is omitted. Defaults to UTC today.
            center_id: Restrict generation to one center.

        Returns:
            BackfillReport with one GenerationReport per month, starting at
            the earliest join month.

        Raises:
            BillingIntegrityError: If a profile references a missing student
                or group.
        """
        now = utc_now()
        last_month = month_start(month or today or now.date())
        report = BackfillReport(up_to_month=last_month)

        with bound_context(up_to_month=last_month.isoformat(), center_id=center_id):
            profiles = await self.profiles.list_profiles_joined_by(last_month, center_id)
            if profiles:
                first_month = month_start(min(p.join_date for p in profiles))
                for billing_month in iter_month_starts(first_month, last_month):
                    active = [
                        p
                        for p in profiles
                        if is_active_for_month(p.join_date, p.leave_date, billing_month)
                    ]
                    report.months.append(
                        await self._generate_month(billing_month, active, now)
                    )

            await self.db.commit()

            logger.info(
                "monthly_payments_backfilled",
                first_month=report.first_month.isoformat() if report.first_month else None,
                months=len(report.months),
                created=report.rows_created,
                existing=report.rows_existing,
                failed=len(report.failures),
            )
        return report

    async def _generate_month(
        self,
        billing_month: date,
        profiles: list[ActiveProfile],
        now: datetime,
    ) -> GenerationReport:
        """Insert the missing rows of one month without committing."""
        report = GenerationReport(
            billing_month=billing_month,
            profiles_considered=len(profiles),
        )

        values: list[dict[str, Any]] = []
        for profile in profiles:
            try:
                values.append(self._build_row(profile, billing_month, now))
            except InvalidProfileError as e:
                logger.warning(
                    "billing_profile_skipped",
                    billing_month=billing_month.isoformat(),
                    profile_id=profile.profile_id,
                    student_id=profile.student_id,
                    group_id=profile.group_id,
                    reason=e.reason,
                    error=e.message,
                )
                report.failures.append(
                    GenerationFailure(
                        profile_id=profile.profile_id,
                        student_id=profile.student_id,
                        group_id=profile.group_id,
                        reason=e.reason,
                        message=e.message,
                    )
                )

        if values:
            report.rows_created = await self._insert_missing(values)
        report.rows_existing = len(values) - report.rows_created
        return report

    def _build_row(
        self,
        profile: ActiveProfile,
        billing_month: date,
        now: datetime,
    ) -> dict[str, Any]:
        validate_profile_values(
            monthly_amount=profile.monthly_amount,
            due_day=profile.due_day,
            join_date=profile.join_date,
            leave_date=profile.leave_date,
        )
        amount_due = round_money(profile.monthly_amount)
        settled = amount_due == Decimal("0.00")

        return {
            "center_id": profile.center_id,
            "student_id": profile.student_id,
            "group_id": profile.group_id,
            "billing_month": billing_month,
            "due_date": compute_due_date(billing_month, profile.due_day),
            "amount_due": amount_due,
            "amount_paid": Decimal("0.00"),
            "status": MonthlyPaymentStatus.PAID if settled else MonthlyPaymentStatus.PENDING,
            "paid_at": now if settled else None,
        }

    async def _insert_missing(self, values: list[dict[str, Any]]) -> int:
        """Insert rows in batches, skipping keys that already exist.

        Returns:
            Number of rows actually inserted.
        """
        dialect = self.db.get_bind().dialect.name
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert

        inserted = 0
        for start in range(0, len(values), _INSERT_BATCH_SIZE):
            stmt = (
                insert(MonthlyPayment)
                .values(values[start : start + _INSERT_BATCH_SIZE])
                .on_conflict_do_nothing(index_elements=_CONFLICT_KEY)
                .returning(MonthlyPayment.id)
            )

            try:
                result = await self.db.execute(stmt)
                inserted += len(result.scalars().all())
            except IntegrityError as e:
                # Conflicts on the ledger key are absorbed above; anything left
                # is a dangling student, group or center reference.
                await self.db.rollback()
                logger.error("monthly_payments_integrity_error", error=str(e.orig))
                raise BillingIntegrityError(
                    "Billing profiles reference missing students or groups",
                    details={"error": str(e.orig)},
                ) from e

        return inserted
