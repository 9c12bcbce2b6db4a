# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing profile, monthly payment ledger and payment transaction models.

Tables:
    student_group_billing_profiles: fee configuration per (student, group)
    monthly_payments: one ledger row per (student, group, billing month)
    monthly_payment_transactions: payments recorded against a ledger row
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from educenter.infrastructure.database.models.academic import Group, Student
from educenter.infrastructure.database.models.base import Base, TimestampMixin

MONEY = Numeric(12, 2)


class MonthlyPaymentStatus(str, Enum):
    """Lifecycle status of a ledger row."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How a payment was received."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CLICK = "click"
    PAYME = "payme"
    UZUM = "uzum"
    HUMO = "humo"
    OTHER = "other"


class StudentGroupBillingProfile(Base, TimestampMixin):
    """Recurring fee configuration of a student in one group.

    join_date and leave_date bound the months that get ledger rows;
    due_day is clamped to the month length when due dates are computed.
    """

    __tablename__ = "student_group_billing_profiles"
    __table_args__ = (
        UniqueConstraint("student_id", "group_id", name="uq_student_group_billing_profile"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    center_id: Mapped[int] = mapped_column(
        ForeignKey("centers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    join_date: Mapped[date] = mapped_column(Date, nullable=False)
    leave_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monthly_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    student: Mapped[Student] = relationship(lazy="raise")
    group: Mapped[Group] = relationship(lazy="raise")


class MonthlyPayment(Base, TimestampMixin):
    """Ledger row: the amount a student owes for a group in one month."""

    __tablename__ = "monthly_payments"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "group_id",
            "billing_month",
            name="uq_monthly_payments_student_group_month",
        ),
        Index("ix_monthly_payments_center_month", "center_id", "billing_month"),
        Index("ix_monthly_payments_status_due", "status", "due_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    center_id: Mapped[int] = mapped_column(
        ForeignKey("centers.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # First day of the covered month
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    status: Mapped[MonthlyPaymentStatus] = mapped_column(
        SAEnum(
            MonthlyPaymentStatus,
            name="monthly_payment_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=MonthlyPaymentStatus.PENDING,
    )
    last_payment_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    student: Mapped[Student] = relationship(lazy="raise")
    group: Mapped[Group] = relationship(lazy="raise")

    @property
    def remaining(self) -> Decimal:
        """Outstanding amount, never negative."""
        return max(Decimal("0"), Decimal(self.amount_due) - Decimal(self.amount_paid))


class MonthlyPaymentTransaction(Base):
    """A single payment applied to a ledger row."""

    __tablename__ = "monthly_payment_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    monthly_payment_id: Mapped[int] = mapped_column(
        ForeignKey("monthly_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    center_id: Mapped[int] = mapped_column(
        ForeignKey("centers.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SAEnum(
            PaymentMethod,
            name="payment_method",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=True,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    recorded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
