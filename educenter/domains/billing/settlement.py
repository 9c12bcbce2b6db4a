# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Leave settlement for a student leaving a group.

A settlement walks every month from the profile's join month to the leave
month, prorates the monthly amount by the days the student was enrolled
and compares it with what was already paid. Closing a settlement writes
the prorated amounts to the ledger and stores the leave date on the
profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.domains.billing.calendar import (
    active_coverage,
    compute_due_date,
    prorated_amount,
    round_money,
)
from educenter.domains.billing.exceptions import InvalidSettlementError
from educenter.domains.billing.profiles import BillingProfileService
from educenter.domains.billing.status import apply_status, derive_status
from educenter.infrastructure.database.models import (
    MonthlyPayment,
    MonthlyPaymentStatus,
    StudentGroupBillingProfile,
)
from educenter.utils.datetime import iter_month_starts, utc_now

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class SettlementMonth:
    billing_month: date
    active_from: date
    active_to: date
    active_days: int
    days_in_month: int
    due_date: date
    amount_due: Decimal
    amount_paid: Decimal
    remaining: Decimal
    status: MonthlyPaymentStatus
    payment_id: int | None = None


@dataclass
class Settlement:
    """Prorated balance of a (student, group) pair up to a leave date."""

    student_id: int
    group_id: int
    join_date: date
    leave_date: date
    monthly_amount: Decimal
    months: list[SettlementMonth] = field(default_factory=list)
    applied: bool = False

    @property
    def total_due(self) -> Decimal:
        return round_money(sum((m.amount_due for m in self.months), ZERO))

    @property
    def total_paid(self) -> Decimal:
        return round_money(sum((m.amount_paid for m in self.months), ZERO))

    @property
    def total_remaining(self) -> Decimal:
        return round_money(sum((m.remaining for m in self.months), ZERO))


class SettlementService:
    """Computes and applies leave settlements.

    Attributes:
        db: Async database session.
        profiles: Billing profile service.
    """

    def __init__(
        self,
        db: AsyncSession,
        profiles: BillingProfileService | None = None,
    ) -> None:
        self.db = db
        self.profiles = profiles or BillingProfileService(db)

    async def preview(
        self,
        student_id: int,
        group_id: int,
        leave_date: date,
        center_id: int | None = None,
    ) -> Settlement:
        """Compute a settlement without writing anything.

        Raises:
            ProfileNotFoundError: If the pair has no billing profile.
            InvalidSettlementError: If leave_date is before join_date or the
                monthly amount is zero.
        """
        profile = await self.profiles.get_profile_for(student_id, group_id, center_id)
        settlement, _ = await self._build(profile, leave_date)
        return settlement

    async def close(
        self,
        student_id: int,
        group_id: int,
        leave_date: date,
        center_id: int | None = None,
    ) -> Settlement:
        """Compute a settlement and write it to the ledger.

        Missing months get a row with the prorated amount, existing
        non-cancelled rows get their amount and due date replaced and their
        status re-derived. The profile's leave_date is set.

        Raises:
            ProfileNotFoundError: If the pair has no billing profile.
            InvalidSettlementError: If leave_date is before join_date or the
                monthly amount is zero.
        """
        profile = await self.profiles.get_profile_for(student_id, group_id, center_id)
        settlement, existing = await self._build(profile, leave_date)
        now = utc_now()
        note = f"Leave settlement ({leave_date.isoformat()})"

        new_rows: list[tuple[SettlementMonth, MonthlyPayment]] = []
        for month in settlement.months:
            row = existing.get(month.billing_month)
            if row is None:
                row = MonthlyPayment(
                    center_id=profile.center_id,
                    student_id=profile.student_id,
                    group_id=profile.group_id,
                    billing_month=month.billing_month,
                    due_date=month.due_date,
                    amount_due=month.amount_due,
                    amount_paid=ZERO,
                    status=MonthlyPaymentStatus.PENDING,
                    note=note,
                )
                apply_status(row, now)
                self.db.add(row)
                new_rows.append((month, row))
            elif row.status != MonthlyPaymentStatus.CANCELLED:
                row.amount_due = month.amount_due
                row.due_date = month.due_date
                apply_status(row, now)
                if not row.note:
                    row.note = note
            month.status = row.status

        profile.leave_date = leave_date
        await self.db.flush()
        for month, row in new_rows:
            month.payment_id = row.id

        await self.db.commit()
        settlement.applied = True

        logger.info(
            "Closed settlement: student=%s, group=%s, leave_date=%s, due=%s, paid=%s, remaining=%s",
            student_id,
            group_id,
            leave_date,
            settlement.total_due,
            settlement.total_paid,
            settlement.total_remaining,
        )
        return settlement

    async def _build(
        self,
        profile: StudentGroupBillingProfile,
        leave_date: date,
    ) -> tuple[Settlement, dict[date, MonthlyPayment]]:
        if leave_date < profile.join_date:
            raise InvalidSettlementError(
                "leave_date must not be before join_date",
                details={
                    "join_date": profile.join_date.isoformat(),
                    "leave_date": leave_date.isoformat(),
                },
            )
        monthly_amount = Decimal(profile.monthly_amount)
        if monthly_amount <= 0:
            raise InvalidSettlementError(
                "Monthly amount is zero; set it on the billing profile first",
                details={"profile_id": profile.id},
            )

        month_starts = list(iter_month_starts(profile.join_date, leave_date))
        result = await self.db.execute(
            select(MonthlyPayment).where(
                MonthlyPayment.student_id == profile.student_id,
                MonthlyPayment.group_id == profile.group_id,
                MonthlyPayment.billing_month.in_(month_starts),
            )
        )
        existing = {row.billing_month: row for row in result.scalars().all()}

        today = utc_now().date()
        settlement = Settlement(
            student_id=profile.student_id,
            group_id=profile.group_id,
            join_date=profile.join_date,
            leave_date=leave_date,
            monthly_amount=round_money(monthly_amount),
        )

        for first in month_starts:
            coverage = active_coverage(first, profile.join_date, leave_date)
            if coverage is None:
                continue

            row = existing.get(first)
            due_date = compute_due_date(first, profile.due_day)

            if row is not None and row.status == MonthlyPaymentStatus.CANCELLED:
                amount_due = ZERO
                amount_paid = ZERO
                status = MonthlyPaymentStatus.CANCELLED
            else:
                amount_due = prorated_amount(monthly_amount, coverage)
                amount_paid = round_money(row.amount_paid) if row is not None else ZERO
                status = derive_status(
                    current=row.status if row is not None else MonthlyPaymentStatus.PENDING,
                    amount_due=amount_due,
                    amount_paid=amount_paid,
                    due_date=due_date,
                    today=today,
                )

            settlement.months.append(
                SettlementMonth(
                    billing_month=first,
                    active_from=coverage.active_from,
                    active_to=coverage.active_to,
                    active_days=coverage.active_days,
                    days_in_month=coverage.days_in_month,
                    due_date=due_date,
                    amount_due=amount_due,
                    amount_paid=amount_paid,
                    remaining=max(ZERO, round_money(amount_due - amount_paid)),
                    status=status,
                    payment_id=row.id if row is not None else None,
                )
            )

        return settlement, existing
