# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for monthly payment status derivation."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from educenter.domains.billing.status import apply_status, derive_status
from educenter.infrastructure.database.models import MonthlyPayment, MonthlyPaymentStatus

DUE = date(2026, 1, 10)


def _row(**overrides) -> MonthlyPayment:
    values = dict(
        center_id=1,
        student_id=1,
        group_id=1,
        billing_month=date(2026, 1, 1),
        due_date=DUE,
        amount_due=Decimal("300000"),
        amount_paid=Decimal("0"),
        status=MonthlyPaymentStatus.PENDING,
        paid_at=None,
    )
    values.update(overrides)
    return MonthlyPayment(**values)


class TestDeriveStatus:
    """Tests for the pure status rule."""

    @pytest.mark.parametrize(
        "current",
        [MonthlyPaymentStatus.PENDING, MonthlyPaymentStatus.OVERDUE, MonthlyPaymentStatus.PAID],
    )
    def test_fully_paid_is_paid(self, current):
        result = derive_status(
            current=current,
            amount_due=Decimal("100"),
            amount_paid=Decimal("100"),
            due_date=DUE,
            today=date(2026, 3, 1),
        )
        assert result == MonthlyPaymentStatus.PAID

    def test_overpaid_is_paid(self):
        result = derive_status(
            current=MonthlyPaymentStatus.PENDING,
            amount_due=Decimal("100"),
            amount_paid=Decimal("150"),
            due_date=DUE,
            today=date(2026, 1, 1),
        )
        assert result == MonthlyPaymentStatus.PAID

    def test_past_due_is_overdue(self):
        result = derive_status(
            current=MonthlyPaymentStatus.PENDING,
            amount_due=Decimal("100"),
            amount_paid=Decimal("40"),
            due_date=DUE,
            today=date(2026, 1, 11),
        )
        assert result == MonthlyPaymentStatus.OVERDUE

    def test_due_today_is_pending(self):
        result = derive_status(
            current=MonthlyPaymentStatus.PENDING,
            amount_due=Decimal("100"),
            amount_paid=Decimal("0"),
            due_date=DUE,
            today=DUE,
        )
        assert result == MonthlyPaymentStatus.PENDING

    def test_overdue_returns_to_pending_when_due_date_moves(self):
        result = derive_status(
            current=MonthlyPaymentStatus.OVERDUE,
            amount_due=Decimal("100"),
            amount_paid=Decimal("0"),
            due_date=date(2026, 2, 10),
            today=date(2026, 1, 20),
        )
        assert result == MonthlyPaymentStatus.PENDING

    @pytest.mark.parametrize(
        "amount_paid,today",
        [
            (Decimal("0"), date(2026, 1, 1)),
            (Decimal("0"), date(2026, 6, 1)),
            (Decimal("500"), date(2026, 6, 1)),
        ],
    )
    def test_cancelled_never_changes(self, amount_paid, today):
        result = derive_status(
            current=MonthlyPaymentStatus.CANCELLED,
            amount_due=Decimal("100"),
            amount_paid=amount_paid,
            due_date=DUE,
            today=today,
        )
        assert result == MonthlyPaymentStatus.CANCELLED

    def test_zero_amount_is_paid(self):
        result = derive_status(
            current=MonthlyPaymentStatus.PENDING,
            amount_due=Decimal("0"),
            amount_paid=Decimal("0"),
            due_date=DUE,
            today=date(2026, 1, 1),
        )
        assert result == MonthlyPaymentStatus.PAID


class TestApplyStatus:
    """Tests for in-place status updates."""

    def test_sets_paid_at_from_payment_event(self):
        row = _row(amount_paid=Decimal("300000"))
        event_at = datetime(2026, 1, 8, 9, 30, tzinfo=timezone.utc)

        changed = apply_status(
            row,
            now=datetime(2026, 1, 8, 10, 0, tzinfo=timezone.utc),
            paid_event_at=event_at,
        )

        assert changed is True
        assert row.status == MonthlyPaymentStatus.PAID
        assert row.paid_at == event_at

    def test_sets_paid_at_to_now_without_event(self):
        row = _row(amount_paid=Decimal("300000"))
        now = datetime(2026, 1, 8, 10, 0, tzinfo=timezone.utc)

        apply_status(row, now=now)

        assert row.paid_at == now

    def test_keeps_existing_paid_at(self):
        first_paid = datetime(2026, 1, 5, tzinfo=timezone.utc)
        row = _row(
            amount_paid=Decimal("300000"),
            status=MonthlyPaymentStatus.PAID,
            paid_at=first_paid,
        )

        changed = apply_status(row, now=datetime(2026, 2, 1, tzinfo=timezone.utc))

        assert changed is False
        assert row.paid_at == first_paid

    def test_marks_overdue(self):
        row = _row()

        changed = apply_status(row, now=datetime(2026, 1, 11, tzinfo=timezone.utc))

        assert changed is True
        assert row.status == MonthlyPaymentStatus.OVERDUE
        assert row.paid_at is None

    def test_reopened_row_clears_paid_at(self):
        row = _row(
            amount_due=Decimal("400000"),
            amount_paid=Decimal("300000"),
            status=MonthlyPaymentStatus.PAID,
            paid_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        )

        changed = apply_status(row, now=datetime(2026, 1, 6, tzinfo=timezone.utc))

        assert changed is True
        assert row.status == MonthlyPaymentStatus.PENDING
        assert row.paid_at is None

    def test_cancelled_row_untouched(self):
        row = _row(status=MonthlyPaymentStatus.CANCELLED, amount_paid=Decimal("300000"))

        changed = apply_status(row, now=datetime(2026, 6, 1, tzinfo=timezone.utc))

        assert changed is False
        assert row.status == MonthlyPaymentStatus.CANCELLED
        assert row.paid_at is None

    def test_no_change_reports_false(self):
        row = _row()

        assert apply_status(row, now=datetime(2026, 1, 2, tzinfo=timezone.utc)) is False
