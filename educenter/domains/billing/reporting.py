# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Ledger listing and debt reporting.

This module provides the BillingReportService class for:
- Paginated monthly ledger with status, group, debt and name filters
- Per-student outstanding debt up to a month
- One student's ledger rows across months
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, case, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.domains.billing.calendar import round_money
from educenter.domains.billing.exceptions import StudentNotFoundError
from educenter.domains.billing.generator import CycleGenerator
from educenter.infrastructure.database.models import (
    Group,
    MonthlyPayment,
    MonthlyPaymentStatus,
    Student,
)
from educenter.models.billing import (
    DebtFilter,
    DebtSummaryResponse,
    LedgerItemResponse,
    LedgerListResponse,
    LedgerSort,
    LedgerTotals,
    StudentDebtMonth,
    StudentDebtResponse,
    StudentPaymentsResponse,
)
from educenter.utils.datetime import month_start

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 5

_REMAINING = case(
    (MonthlyPayment.amount_due > MonthlyPayment.amount_paid,
     MonthlyPayment.amount_due - MonthlyPayment.amount_paid),
    else_=0,
)

_HAS_DEBT = and_(
    MonthlyPayment.status != MonthlyPaymentStatus.CANCELLED,
    MonthlyPayment.amount_paid < MonthlyPayment.amount_due,
)


def _money(value: object) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return round_money(Decimal(str(value)))


def _ledger_item(payment: MonthlyPayment, student: Student, group: Group) -> LedgerItemResponse:
    return LedgerItemResponse(
        id=payment.id,
        center_id=payment.center_id,
        student_id=payment.student_id,
        group_id=payment.group_id,
        billing_month=payment.billing_month,
        due_date=payment.due_date,
        amount_due=payment.amount_due,
        amount_paid=payment.amount_paid,
        remaining=payment.remaining,
        status=payment.status,
        last_payment_at=payment.last_payment_at,
        paid_at=payment.paid_at,
        note=payment.note,
        student_name=student.full_name or student.username,
        group_name=group.name,
    )


class BillingReportService:
    """Reporting over the monthly ledger.

    Attributes:
        db: Async database session.
        default_page_size: Page size when none is requested.
        max_page_size: Upper bound for requested page sizes.
    """

    def __init__(
        self,
        db: AsyncSession,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self.db = db
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _page_size(self, page_size: int | None) -> int:
        if page_size is None:
            page_size = self.default_page_size
        return max(MIN_PAGE_SIZE, min(page_size, self.max_page_size))

    async def list_ledger(
        self,
        center_id: int,
        month: date,
        *,
        status: MonthlyPaymentStatus | None = None,
        group_id: int | None = None,
        debt: DebtFilter = DebtFilter.ALL,
        search: str | None = None,
        sort_by: LedgerSort = LedgerSort.DUE_DATE,
        page: int = 1,
        page_size: int | None = None,
    ) -> LedgerListResponse:
        """List ledger rows of one billing month.

        Args:
            center_id: Center to report on.
            month: Any date in the billing month.
            status: Only rows with this status.
            group_id: Only rows of this group.
            debt: Outstanding balance filter.
            search: Case-insensitive match on student name or username.
            sort_by: Ordering of the items.
            page: 1-based page number.
            page_size: Items per page, clamped to the configured bounds.

        Returns:
            Page of rows with totals computed over the whole filtered set.
        """
        billing_month = month_start(month)
        page = max(1, page)
        page_size = self._page_size(page_size)

        conditions = [
            MonthlyPayment.center_id == center_id,
            MonthlyPayment.billing_month == billing_month,
        ]
        if status is not None:
            conditions.append(MonthlyPayment.status == status)
        if group_id is not None:
            conditions.append(MonthlyPayment.group_id == group_id)
        if debt == DebtFilter.WITH_DEBT:
            conditions.append(_HAS_DEBT)
        elif debt == DebtFilter.NO_DEBT:
            conditions.append(not_(_HAS_DEBT))
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(Student.first_name).like(pattern),
                    func.lower(Student.last_name).like(pattern),
                    func.lower(Student.username).like(pattern),
                )
            )

        base = (
            select(MonthlyPayment, Student, Group)
            .join(Student, Student.id == MonthlyPayment.student_id)
            .join(Group, Group.id == MonthlyPayment.group_id)
            .where(*conditions)
        )

        if sort_by == LedgerSort.STUDENT:
            order = (Student.last_name, Student.first_name, MonthlyPayment.id)
        elif sort_by == LedgerSort.REMAINING:
            order = (_REMAINING.desc(), MonthlyPayment.id)
        else:
            order = (MonthlyPayment.due_date, MonthlyPayment.id)

        result = await self.db.execute(
            base.order_by(*order).offset((page - 1) * page_size).limit(page_size)
        )
        items = [_ledger_item(*row) for row in result.all()]

        filtered = (
            select(MonthlyPayment.id)
            .join(Student, Student.id == MonthlyPayment.student_id)
            .join(Group, Group.id == MonthlyPayment.group_id)
            .where(*conditions)
            .subquery()
        )
        totals_row = (
            await self.db.execute(
                select(
                    func.count(MonthlyPayment.id),
                    func.sum(MonthlyPayment.amount_due),
                    func.sum(MonthlyPayment.amount_paid),
                    func.sum(_REMAINING),
                ).where(MonthlyPayment.id.in_(select(filtered.c.id)))
            )
        ).one()

        status_rows = await self.db.execute(
            select(MonthlyPayment.status, func.count(MonthlyPayment.id))
            .where(MonthlyPayment.id.in_(select(filtered.c.id)))
            .group_by(MonthlyPayment.status)
        )
        count_by_status = {s.value: 0 for s in MonthlyPaymentStatus}
        for row_status, count in status_rows.all():
            count_by_status[MonthlyPaymentStatus(row_status).value] = count

        return LedgerListResponse(
            billing_month=billing_month,
            items=items,
            total=totals_row[0] or 0,
            page=page,
            page_size=page_size,
            totals=LedgerTotals(
                amount_due=_money(totals_row[1]),
                amount_paid=_money(totals_row[2]),
                remaining=_money(totals_row[3]),
                count_by_status=count_by_status,
            ),
        )

    async def debt_summary(
        self,
        center_id: int,
        up_to_month: date,
        *,
        ensure_rows: bool = True,
        page: int = 1,
        page_size: int | None = None,
    ) -> DebtSummaryResponse:
        """Outstanding balances per student up to and including a month.

        Only non-cancelled rows with amount_paid < amount_due count.
        Students are ordered by total remaining, largest first.

        With ensure_rows, missing ledger rows are generated first for every
        month since each profile joined, so months that were never
        generated still count as debt.

        Raises:
            BillingIntegrityError: If backfilling meets a dangling profile.
        """
        last_month = month_start(up_to_month)
        if ensure_rows:
            await CycleGenerator(self.db).generate_up_to(last_month, center_id=center_id)
        page = max(1, page)
        page_size = self._page_size(page_size)

        result = await self.db.execute(
            select(MonthlyPayment, Student, Group)
            .join(Student, Student.id == MonthlyPayment.student_id)
            .join(Group, Group.id == MonthlyPayment.group_id)
            .where(
                MonthlyPayment.center_id == center_id,
                MonthlyPayment.billing_month <= last_month,
                _HAS_DEBT,
            )
            .order_by(MonthlyPayment.billing_month, MonthlyPayment.id)
        )

        names: dict[int, str] = {}
        months: dict[int, list[StudentDebtMonth]] = defaultdict(list)
        for payment, student, group in result.all():
            names[student.id] = student.full_name or student.username
            months[student.id].append(
                StudentDebtMonth(
                    payment_id=payment.id,
                    group_id=group.id,
                    group_name=group.name,
                    billing_month=payment.billing_month,
                    due_date=payment.due_date,
                    remaining=round_money(payment.remaining),
                    status=payment.status,
                )
            )

        students = [
            StudentDebtResponse(
                student_id=student_id,
                student_name=names[student_id],
                total_remaining=round_money(sum((m.remaining for m in rows), Decimal("0"))),
                months=rows,
            )
            for student_id, rows in months.items()
        ]
        students.sort(key=lambda s: (-s.total_remaining, s.student_id))

        start = (page - 1) * page_size
        return DebtSummaryResponse(
            up_to_month=last_month,
            items=students[start : start + page_size],
            total=len(students),
            page=page,
            page_size=page_size,
            total_remaining=round_money(
                sum((s.total_remaining for s in students), Decimal("0"))
            ),
        )

    async def list_student_payments(
        self,
        center_id: int,
        student_id: int,
        *,
        group_id: int | None = None,
        from_month: date | None = None,
        to_month: date | None = None,
    ) -> StudentPaymentsResponse:
        """All ledger rows of one student across months, newest month first.

        Args:
            center_id: Center the student belongs to.
            student_id: Student to report on.
            group_id: Only rows of this group.
            from_month: First month to include.
            to_month: Last month to include.

        Returns:
            The rows with due, paid and remaining totals. Cancelled rows are
            listed but left out of the totals.

        Raises:
            StudentNotFoundError: If the student is not in the center.
        """
        student = await self.db.get(Student, student_id)
        if student is None or student.center_id != center_id:
            raise StudentNotFoundError(f"Student {student_id} not found")

        stmt = (
            select(MonthlyPayment, Student, Group)
            .join(Student, Student.id == MonthlyPayment.student_id)
            .join(Group, Group.id == MonthlyPayment.group_id)
            .where(
                MonthlyPayment.center_id == center_id,
                MonthlyPayment.student_id == student_id,
            )
        )
        if group_id is not None:
            stmt = stmt.where(MonthlyPayment.group_id == group_id)
        if from_month is not None:
            stmt = stmt.where(MonthlyPayment.billing_month >= month_start(from_month))
        if to_month is not None:
            stmt = stmt.where(MonthlyPayment.billing_month <= month_start(to_month))

        result = await self.db.execute(
            stmt.order_by(MonthlyPayment.billing_month.desc(), MonthlyPayment.group_id)
        )
        items = [_ledger_item(*row) for row in result.all()]
        counted = [i for i in items if i.status != MonthlyPaymentStatus.CANCELLED]

        return StudentPaymentsResponse(
            student_id=student.id,
            student_name=student.full_name or student.username,
            items=items,
            total=len(items),
            total_due=round_money(sum((i.amount_due for i in counted), Decimal("0"))),
            total_paid=round_money(sum((i.amount_paid for i in counted), Decimal("0"))),
            total_remaining=round_money(sum((i.remaining for i in counted), Decimal("0"))),
        )
