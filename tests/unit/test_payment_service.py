# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for PaymentService."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from educenter.domains.billing.exceptions import (
    InvalidPaymentAmountError,
    InvalidPaymentStatusError,
    PaymentCancelledError,
    PaymentLockedError,
    PaymentNotFoundError,
)
from educenter.domains.billing.payments import PaymentService
from educenter.domains.billing.status import StatusRefresher
from educenter.infrastructure.database.models import MonthlyPaymentStatus, PaymentMethod

FUTURE_MONTH = date(2099, 1, 1)
PAST_MONTH = date(2020, 1, 1)


class TestRecordPayment:
    @pytest.mark.asyncio
    async def test_partial_payment_keeps_row_open(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        payment, transaction = await service.record_payment(
            row.id,
            Decimal("100000"),
            center_id=seed.center_id,
            note="cash",
            recorded_by="admin",
        )

        assert payment.amount_paid == Decimal("100000.00")
        assert payment.status == MonthlyPaymentStatus.PENDING
        assert payment.paid_at is None
        assert payment.last_payment_at is not None
        assert transaction.amount == Decimal("100000.00")
        assert transaction.monthly_payment_id == row.id
        assert transaction.student_id == row.student_id
        assert transaction.recorded_by == "admin"
        assert transaction.payment_method is None

    @pytest.mark.asyncio
    async def test_payment_method_stored(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        await service.record_payment(row.id, Decimal("100"), payment_method=PaymentMethod.PAYME)
        await service.record_payment(
            row.id,
            Decimal("50"),
            payment_method=PaymentMethod.CASH,
            paid_at=datetime(2099, 1, 2, tzinfo=timezone.utc),
        )

        transactions = await service.list_transactions(row.id)
        assert [t.payment_method for t in transactions] == [
            PaymentMethod.CASH,
            PaymentMethod.PAYME,
        ]

    @pytest.mark.asyncio
    async def test_partial_payment_on_overdue_row_stays_overdue(self, session, seed, make_payment):
        row = await make_payment(billing_month=PAST_MONTH, status=MonthlyPaymentStatus.OVERDUE)
        service = PaymentService(session)

        payment, _ = await service.record_payment(row.id, Decimal("1"))

        assert payment.status == MonthlyPaymentStatus.OVERDUE

    @pytest.mark.asyncio
    async def test_reaching_amount_due_marks_paid(self, session, seed, make_payment):
        row = await make_payment(billing_month=PAST_MONTH, status=MonthlyPaymentStatus.OVERDUE)
        service = PaymentService(session)
        received = datetime(2020, 2, 3, 12, 0, tzinfo=timezone.utc)

        await service.record_payment(row.id, Decimal("200000"))
        payment, _ = await service.record_payment(row.id, Decimal("100000"), paid_at=received)

        assert payment.amount_paid == Decimal("300000.00")
        assert payment.status == MonthlyPaymentStatus.PAID
        assert payment.paid_at == received
        assert payment.last_payment_at == received

    @pytest.mark.asyncio
    async def test_overpayment_accepted(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        payment, _ = await service.record_payment(row.id, Decimal("350000"))

        assert payment.amount_paid == Decimal("350000.00")
        assert payment.status == MonthlyPaymentStatus.PAID
        assert payment.remaining == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    async def test_non_positive_amount_rejected(self, session, seed, make_payment, amount):
        row = await make_payment()
        service = PaymentService(session)

        with pytest.raises(InvalidPaymentAmountError):
            await service.record_payment(row.id, amount)

        assert await service.list_transactions(row.id) == []

    @pytest.mark.asyncio
    async def test_cancelled_row_rejects_payment(self, session, seed, make_payment):
        row = await make_payment(status=MonthlyPaymentStatus.CANCELLED)
        service = PaymentService(session)

        with pytest.raises(PaymentCancelledError):
            await service.record_payment(row.id, Decimal("100"))

    @pytest.mark.asyncio
    async def test_unknown_or_foreign_row(self, session, seed, make_payment):
        row = await make_payment()
        service = PaymentService(session)

        with pytest.raises(PaymentNotFoundError):
            await service.record_payment(9999, Decimal("100"))
        with pytest.raises(PaymentNotFoundError):
            await service.record_payment(row.id, Decimal("100"), center_id=seed.other_center_id)


class TestListTransactions:
    @pytest.mark.asyncio
    async def test_newest_first(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        await service.record_payment(
            row.id,
            Decimal("10"),
            paid_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
        )
        await service.record_payment(
            row.id,
            Decimal("20"),
            paid_at=datetime(2026, 1, 9, tzinfo=timezone.utc),
        )

        transactions = await service.list_transactions(row.id)

        assert [t.amount for t in transactions] == [Decimal("20.00"), Decimal("10.00")]


class TestUpdatePayment:
    @pytest.mark.asyncio
    async def test_note_edit_allowed_on_paid_row(self, session, seed, make_payment):
        row = await make_payment(amount_paid="300000", status=MonthlyPaymentStatus.PAID)
        service = PaymentService(session)

        payment = await service.update_payment(row.id, note="receipt #12")

        assert payment.note == "receipt #12"
        assert payment.status == MonthlyPaymentStatus.PAID

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "changes",
        [
            {"amount_due": Decimal("1")},
            {"due_date": date(2026, 1, 20)},
            {"status": MonthlyPaymentStatus.PENDING},
        ],
    )
    async def test_paid_row_is_locked(self, session, seed, make_payment, changes):
        row = await make_payment(amount_paid="300000", status=MonthlyPaymentStatus.PAID)
        service = PaymentService(session)

        with pytest.raises(PaymentLockedError):
            await service.update_payment(row.id, **changes)

    @pytest.mark.asyncio
    async def test_lowering_amount_due_to_paid_marks_paid(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH, amount_paid="200000")
        service = PaymentService(session)

        payment = await service.update_payment(row.id, amount_due=Decimal("200000"))

        assert payment.status == MonthlyPaymentStatus.PAID
        assert payment.paid_at is not None

    @pytest.mark.asyncio
    async def test_moving_due_date_into_past_marks_overdue(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        payment = await service.update_payment(row.id, due_date=date(2020, 1, 10))

        assert payment.status == MonthlyPaymentStatus.OVERDUE

    @pytest.mark.asyncio
    async def test_negative_amount_due_rejected(self, session, seed, make_payment):
        row = await make_payment()
        service = PaymentService(session)

        with pytest.raises(InvalidPaymentAmountError):
            await service.update_payment(row.id, amount_due=Decimal("-1"))

    @pytest.mark.asyncio
    async def test_explicit_status(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH)
        service = PaymentService(session)

        payment = await service.update_payment(row.id, status=MonthlyPaymentStatus.CANCELLED)

        assert payment.status == MonthlyPaymentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_explicit_paid_rejected_while_underpaid(self, session, seed, make_payment):
        row = await make_payment(billing_month=PAST_MONTH, amount_paid="100000")
        service = PaymentService(session)

        with pytest.raises(InvalidPaymentStatusError):
            await service.update_payment(row.id, status=MonthlyPaymentStatus.PAID)

        await session.refresh(row)
        assert row.status == MonthlyPaymentStatus.PENDING
        assert row.paid_at is None

    @pytest.mark.asyncio
    async def test_explicit_paid_with_lowered_amount_survives_refresh(
        self, session, seed, make_payment
    ):
        row = await make_payment(billing_month=PAST_MONTH, amount_paid="100000")
        service = PaymentService(session)

        payment = await service.update_payment(
            row.id,
            amount_due=Decimal("100000"),
            status=MonthlyPaymentStatus.PAID,
        )
        await StatusRefresher(session).refresh()
        await session.refresh(payment)

        assert payment.status == MonthlyPaymentStatus.PAID
        assert payment.paid_at is not None

    @pytest.mark.asyncio
    async def test_explicit_open_status_rejected_when_covered(self, session, seed, make_payment):
        row = await make_payment(billing_month=FUTURE_MONTH, amount_paid="100000")
        service = PaymentService(session)

        with pytest.raises(InvalidPaymentStatusError):
            await service.update_payment(
                row.id,
                amount_due=Decimal("50000"),
                status=MonthlyPaymentStatus.PENDING,
            )


class TestCancelPayment:
    @pytest.mark.asyncio
    async def test_cancel_open_row(self, session, seed, make_payment):
        row = await make_payment()
        service = PaymentService(session)

        payment = await service.cancel_payment(row.id, note="left before start")

        assert payment.status == MonthlyPaymentStatus.CANCELLED
        assert payment.note == "left before start"

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, session, seed, make_payment):
        row = await make_payment(status=MonthlyPaymentStatus.CANCELLED, note="first")
        service = PaymentService(session)

        payment = await service.cancel_payment(row.id, note="second")

        assert payment.status == MonthlyPaymentStatus.CANCELLED
        assert payment.note == "first"

    @pytest.mark.asyncio
    async def test_paid_row_cannot_be_cancelled(self, session, seed, make_payment):
        row = await make_payment(amount_paid="300000", status=MonthlyPaymentStatus.PAID)
        service = PaymentService(session)

        with pytest.raises(PaymentLockedError):
            await service.cancel_payment(row.id)
