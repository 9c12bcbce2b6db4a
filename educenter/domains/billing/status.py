# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Monthly payment status derivation.

The status of a ledger row is a function of its amounts, its due date and
the current time:

1. cancelled is terminal
2. amount_paid >= amount_due -> paid (paid_at set once)
3. today > due_date -> overdue
4. otherwise pending

StatusRefresher applies the rule in bulk so overdue rows surface without a
payment event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.infrastructure.database.models import MonthlyPayment, MonthlyPaymentStatus
from educenter.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def derive_status(
    *,
    current: MonthlyPaymentStatus,
    amount_due: Decimal,
    amount_paid: Decimal,
    due_date: date,
    today: date,
) -> MonthlyPaymentStatus:
    """Compute the status a row should have.

    Args:
        current: Stored status.
        amount_due: Amount owed for the month.
        amount_paid: Sum of recorded payments.
        due_date: Due date of the row.
        today: Current date.

    Returns:
        The derived status. Does not mutate anything.
    """
    if current == MonthlyPaymentStatus.CANCELLED:
        return MonthlyPaymentStatus.CANCELLED
    if Decimal(amount_paid) >= Decimal(amount_due):
        return MonthlyPaymentStatus.PAID
    if today > due_date:
        return MonthlyPaymentStatus.OVERDUE
    return MonthlyPaymentStatus.PENDING


def apply_status(
    row: MonthlyPayment,
    now: datetime | None = None,
    paid_event_at: datetime | None = None,
) -> bool:
    """Re-derive and store the status of a ledger row.

    Args:
        row: The ledger row to update in place.
        now: Current time; defaults to UTC now.
        paid_event_at: Time of the payment that crossed the threshold. Used
            for paid_at when the row becomes paid and paid_at is unset.

    Returns:
        True if status or paid_at changed.
    """
    now = now or utc_now()
    new_status = derive_status(
        current=row.status,
        amount_due=row.amount_due,
        amount_paid=row.amount_paid,
        due_date=row.due_date,
        today=now.date(),
    )

    changed = new_status != row.status
    row.status = new_status

    if new_status == MonthlyPaymentStatus.PAID:
        if row.paid_at is None:
            row.paid_at = paid_event_at or now
            changed = True
    elif new_status != MonthlyPaymentStatus.CANCELLED and row.paid_at is not None:
        # Row reopened by a raised amount_due
        row.paid_at = None
        changed = True

    return changed


@dataclass
class StatusRefreshReport:
    """Outcome of a bulk status refresh."""

    today: date
    examined: int = 0
    updated: int = 0
    now_overdue: int = 0
    now_paid: int = 0
    now_pending: int = 0


class StatusRefresher:
    """Applies the status rule to every open ledger row.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def refresh(
        self,
        today: date | None = None,
        center_id: int | None = None,
    ) -> StatusRefreshReport:
        """Recompute statuses of pending, overdue and reopened paid rows.

        Args:
            today: Date to evaluate due dates against. Defaults to UTC today.
            center_id: Restrict to one center.

        Returns:
            Counts of examined and changed rows.
        """
        now = utc_now()
        if today is not None and today != now.date():
            now = datetime.combine(today, now.timetz())

        stmt = select(MonthlyPayment).where(
            or_(
                MonthlyPayment.status.in_(
                    [MonthlyPaymentStatus.PENDING, MonthlyPaymentStatus.OVERDUE]
                ),
                (MonthlyPayment.status == MonthlyPaymentStatus.PAID)
                & (MonthlyPayment.amount_paid < MonthlyPayment.amount_due),
            )
        )
        if center_id is not None:
            stmt = stmt.where(MonthlyPayment.center_id == center_id)

        result = await self.db.execute(stmt)
        rows = result.scalars().all()

        report = StatusRefreshReport(today=now.date(), examined=len(rows))
        for row in rows:
            if not apply_status(row, now):
                continue
            report.updated += 1
            if row.status == MonthlyPaymentStatus.OVERDUE:
                report.now_overdue += 1
            elif row.status == MonthlyPaymentStatus.PAID:
                report.now_paid += 1
            elif row.status == MonthlyPaymentStatus.PENDING:
                report.now_pending += 1

        await self.db.commit()

        logger.info(
            "Refreshed payment statuses: today=%s, center=%s, examined=%d, updated=%d",
            report.today,
            center_id,
            report.examined,
            report.updated,
        )
        return report
