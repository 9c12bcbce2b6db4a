# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment recording and ledger row maintenance.

This module provides the PaymentService class for:
- Recording payments against a monthly ledger row
- Reading a row and its transaction history
- Manual edits and cancellation of ledger rows
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.domains.billing.calendar import round_money
from educenter.domains.billing.exceptions import (
    InvalidPaymentAmountError,
    InvalidPaymentStatusError,
    PaymentCancelledError,
    PaymentLockedError,
    PaymentNotFoundError,
)
from educenter.domains.billing.status import apply_status
from educenter.infrastructure.database.models import (
    MonthlyPayment,
    MonthlyPaymentStatus,
    MonthlyPaymentTransaction,
    PaymentMethod,
)
from educenter.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for monthly payment rows.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_payment(
        self,
        payment_id: int,
        center_id: int | None = None,
    ) -> MonthlyPayment:
        """Get a ledger row.

        Raises:
            PaymentNotFoundError: If missing or owned by another center.
        """
        payment = await self.db.get(MonthlyPayment, payment_id)
        if payment is None or (center_id is not None and payment.center_id != center_id):
            raise PaymentNotFoundError(f"Monthly payment {payment_id} not found")
        return payment

    async def record_payment(
        self,
        payment_id: int,
        amount: Decimal,
        *,
        center_id: int | None = None,
        payment_method: PaymentMethod | None = None,
        note: str | None = None,
        recorded_by: str | None = None,
        paid_at: datetime | None = None,
    ) -> tuple[MonthlyPayment, MonthlyPaymentTransaction]:
        """Record money received against a ledger row.

        Overpayment is accepted; the row becomes paid once amount_paid
        reaches amount_due, and paid_at is the time of that payment.

        Args:
            payment_id: Ledger row ID.
            amount: Amount received, must be positive.
            center_id: Owning center, when called on behalf of one.
            payment_method: How the money was received.
            note: Optional note stored on the transaction.
            recorded_by: Who recorded the payment.
            paid_at: When the money was received. Defaults to now.

        Returns:
            Tuple of (updated row, created transaction).

        Raises:
            InvalidPaymentAmountError: If amount is not positive.
            PaymentNotFoundError: If the row does not exist.
            PaymentCancelledError: If the row is cancelled.
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidPaymentAmountError(
                "Payment amount must be positive",
                details={"amount": str(amount)},
            )
        amount = round_money(amount)

        payment = await self.get_payment(payment_id, center_id)
        if payment.status == MonthlyPaymentStatus.CANCELLED:
            raise PaymentCancelledError(
                f"Monthly payment {payment_id} is cancelled",
            )

        now = utc_now()
        paid_at = ensure_utc(paid_at) or now

        transaction = MonthlyPaymentTransaction(
            monthly_payment_id=payment.id,
            center_id=payment.center_id,
            student_id=payment.student_id,
            amount=amount,
            payment_method=payment_method,
            note=note,
            paid_at=paid_at,
            recorded_by=recorded_by,
        )
        self.db.add(transaction)

        payment.amount_paid = round_money(Decimal(payment.amount_paid) + amount)
        payment.last_payment_at = paid_at
        apply_status(payment, now, paid_event_at=paid_at)

        await self.db.commit()
        await self.db.refresh(transaction)

        logger.info(
            "Recorded payment: payment=%s, amount=%s, method=%s, paid=%s/%s, status=%s, by=%s",
            payment.id,
            amount,
            payment_method.value if payment_method else None,
            payment.amount_paid,
            payment.amount_due,
            payment.status.value,
            recorded_by,
        )
        return payment, transaction

    async def list_transactions(
        self,
        payment_id: int,
        center_id: int | None = None,
    ) -> list[MonthlyPaymentTransaction]:
        """Transactions of a ledger row, newest first.

        Raises:
            PaymentNotFoundError: If the row does not exist.
        """
        await self.get_payment(payment_id, center_id)

        result = await self.db.execute(
            select(MonthlyPaymentTransaction)
            .where(MonthlyPaymentTransaction.monthly_payment_id == payment_id)
            .order_by(
                MonthlyPaymentTransaction.paid_at.desc(),
                MonthlyPaymentTransaction.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def update_payment(
        self,
        payment_id: int,
        *,
        center_id: int | None = None,
        amount_due: Decimal | None = None,
        due_date: date | None = None,
        status: MonthlyPaymentStatus | None = None,
        note: str | None = None,
    ) -> MonthlyPayment:
        """Manually edit a ledger row.

        Paid rows only accept note edits. After an amount or date edit the
        status is re-derived, unless a status was given explicitly. An
        explicit status must agree with the amounts: paid needs
        amount_paid >= amount_due and pending or overdue need a balance.
        Between pending and overdue the next status refresh follows the
        due date.

        Raises:
            PaymentNotFoundError: If the row does not exist.
            PaymentLockedError: If a paid row's amount, date or status is edited.
            InvalidPaymentAmountError: If amount_due is negative.
            InvalidPaymentStatusError: If the status contradicts the amounts.
        """
        payment = await self.get_payment(payment_id, center_id)

        locked_fields = {
            name: value
            for name, value in (
                ("amount_due", amount_due),
                ("due_date", due_date),
                ("status", status),
            )
            if value is not None
        }
        if payment.status == MonthlyPaymentStatus.PAID and locked_fields:
            raise PaymentLockedError(
                f"Monthly payment {payment_id} is paid and cannot be edited",
                details={"fields": sorted(locked_fields)},
            )

        if amount_due is not None:
            if Decimal(amount_due) < 0:
                raise InvalidPaymentAmountError(
                    "amount_due must be non-negative",
                    details={"amount_due": str(amount_due)},
                )
            payment.amount_due = round_money(amount_due)
        if due_date is not None:
            payment.due_date = due_date
        if note is not None:
            payment.note = note

        if status is not None:
            self._check_explicit_status(payment, status)
            payment.status = status
            if status == MonthlyPaymentStatus.PAID and payment.paid_at is None:
                payment.paid_at = utc_now()
        elif amount_due is not None or due_date is not None:
            apply_status(payment)

        await self.db.commit()

        logger.info(
            "Updated monthly payment: id=%s, fields=%s, status=%s",
            payment.id,
            sorted(locked_fields) + (["note"] if note is not None else []),
            payment.status.value,
        )
        return payment

    @staticmethod
    def _check_explicit_status(payment: MonthlyPayment, status: MonthlyPaymentStatus) -> None:
        if status == MonthlyPaymentStatus.CANCELLED:
            return
        covered = Decimal(payment.amount_paid) >= Decimal(payment.amount_due)
        if covered != (status == MonthlyPaymentStatus.PAID):
            raise InvalidPaymentStatusError(
                f"Monthly payment {payment.id} cannot be marked {status.value}: "
                f"paid {payment.amount_paid} of {payment.amount_due}",
                details={
                    "status": status.value,
                    "amount_due": str(payment.amount_due),
                    "amount_paid": str(payment.amount_paid),
                },
            )

    async def cancel_payment(
        self,
        payment_id: int,
        center_id: int | None = None,
        note: str | None = None,
    ) -> MonthlyPayment:
        """Cancel a ledger row. Cancelled rows are never re-derived.

        Raises:
            PaymentNotFoundError: If the row does not exist.
            PaymentLockedError: If the row is already paid.
        """
        payment = await self.get_payment(payment_id, center_id)
        if payment.status == MonthlyPaymentStatus.CANCELLED:
            return payment
        if payment.status == MonthlyPaymentStatus.PAID:
            raise PaymentLockedError(
                f"Monthly payment {payment_id} is paid and cannot be cancelled",
            )

        payment.status = MonthlyPaymentStatus.CANCELLED
        if note is not None:
            payment.note = note
        await self.db.commit()

        logger.info("Cancelled monthly payment: id=%s", payment.id)
        return payment
