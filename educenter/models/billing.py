# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing API models.

Request and response models for billing profiles, the monthly payment
ledger, payment transactions, cycle generation and leave settlements.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from educenter.infrastructure.database.models import MonthlyPaymentStatus, PaymentMethod


class DebtFilter(str, Enum):
    """Ledger debt filter."""

    ALL = "all"
    WITH_DEBT = "with_debt"
    NO_DEBT = "no_debt"


class LedgerSort(str, Enum):
    """Ledger ordering."""

    DUE_DATE = "due_date"
    STUDENT = "student"
    REMAINING = "remaining"


# =============================================================================
# Billing profiles
# =============================================================================


class BillingProfileCreateRequest(BaseModel):
    """Request to create a billing profile for a student in a group."""

    student_id: int = Field(..., gt=0)
    group_id: int = Field(..., gt=0)
    join_date: date
    leave_date: date | None = None
    monthly_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    due_day: int | None = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month payment is due; defaults to the center setting",
    )

    @model_validator(mode="after")
    def check_dates(self) -> "BillingProfileCreateRequest":
        if self.leave_date is not None and self.leave_date < self.join_date:
            raise ValueError("leave_date must not be before join_date")
        return self


class BillingProfileUpdateRequest(BaseModel):
    """Partial update of a billing profile."""

    join_date: date | None = None
    leave_date: date | None = None
    clear_leave_date: bool = Field(
        default=False,
        description="Remove the leave date (student rejoined)",
    )
    monthly_amount: Decimal | None = Field(
        default=None, ge=0, max_digits=12, decimal_places=2
    )
    due_day: int | None = Field(default=None, ge=1, le=31)


class BillingProfileResponse(BaseModel):
    """Billing profile response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    center_id: int
    student_id: int
    group_id: int
    join_date: date
    leave_date: date | None
    monthly_amount: Decimal
    due_day: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BillingProfileListResponse(BaseModel):
    items: list[BillingProfileResponse]
    total: int


class BillingProfileUpdateResponse(BaseModel):
    """Updated profile plus the number of ledger rows whose due date moved."""

    profile: BillingProfileResponse
    rescheduled_payments: int = 0


# =============================================================================
# Monthly payments
# =============================================================================


class MonthlyPaymentResponse(BaseModel):
    """A ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    center_id: int
    student_id: int
    group_id: int
    billing_month: date
    due_date: date
    amount_due: Decimal
    amount_paid: Decimal
    remaining: Decimal
    status: MonthlyPaymentStatus
    last_payment_at: datetime | None = None
    paid_at: datetime | None = None
    note: str | None = None


class RecordPaymentRequest(BaseModel):
    """Record money received against a ledger row."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: PaymentMethod | None = None
    note: str | None = Field(default=None, max_length=2000)
    paid_at: datetime | None = None


class UpdatePaymentRequest(BaseModel):
    """Manual edit of a ledger row."""

    amount_due: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    due_date: date | None = None
    status: MonthlyPaymentStatus | None = None
    note: str | None = Field(default=None, max_length=2000)


class PaymentTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    monthly_payment_id: int
    student_id: int
    amount: Decimal
    payment_method: PaymentMethod | None = None
    note: str | None = None
    paid_at: datetime
    recorded_by: str | None = None


class PaymentHistoryResponse(BaseModel):
    payment: MonthlyPaymentResponse
    transactions: list[PaymentTransactionResponse]


# =============================================================================
# Generation and status refresh
# =============================================================================


class GenerateMonthRequest(BaseModel):
    month: str | None = Field(
        default=None,
        pattern=r"^\d{4}-\d{2}$",
        description="Billing month as YYYY-MM; defaults to the current month",
    )


class GenerationFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    profile_id: int
    student_id: int
    group_id: int
    reason: str
    message: str


class GenerationReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    billing_month: date
    profiles_considered: int
    rows_created: int
    rows_existing: int
    failures: list[GenerationFailureResponse]


class BackfillReportResponse(BaseModel):
    """Per-month generation reports from the earliest join month onward."""

    model_config = ConfigDict(from_attributes=True)

    up_to_month: date
    first_month: date | None
    rows_created: int
    rows_existing: int
    months: list[GenerationReportResponse]


class StatusRefreshResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    today: date
    examined: int
    updated: int
    now_overdue: int
    now_paid: int
    now_pending: int


# =============================================================================
# Ledger and debt reporting
# =============================================================================


class LedgerItemResponse(MonthlyPaymentResponse):
    student_name: str
    group_name: str


class LedgerTotals(BaseModel):
    amount_due: Decimal
    amount_paid: Decimal
    remaining: Decimal
    count_by_status: dict[str, int]


class LedgerListResponse(BaseModel):
    billing_month: date
    items: list[LedgerItemResponse]
    total: int
    page: int
    page_size: int
    totals: LedgerTotals


class StudentDebtMonth(BaseModel):
    payment_id: int
    group_id: int
    group_name: str
    billing_month: date
    due_date: date
    remaining: Decimal
    status: MonthlyPaymentStatus


class StudentDebtResponse(BaseModel):
    student_id: int
    student_name: str
    total_remaining: Decimal
    months: list[StudentDebtMonth]


class DebtSummaryResponse(BaseModel):
    up_to_month: date
    items: list[StudentDebtResponse]
    total: int
    page: int
    page_size: int
    total_remaining: Decimal


class StudentPaymentsResponse(BaseModel):
    """One student's ledger rows across months, newest first."""

    student_id: int
    student_name: str
    items: list[LedgerItemResponse]
    total: int
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal


# =============================================================================
# Settlement
# =============================================================================


class SettlementRequest(BaseModel):
    student_id: int = Field(..., gt=0)
    group_id: int = Field(..., gt=0)
    leave_date: date


class SettlementMonthResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    billing_month: date
    active_from: date
    active_to: date
    active_days: int
    days_in_month: int
    amount_due: Decimal
    amount_paid: Decimal
    remaining: Decimal
    status: MonthlyPaymentStatus
    payment_id: int | None = None


class SettlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: int
    group_id: int
    join_date: date
    leave_date: date
    monthly_amount: Decimal
    months: list[SettlementMonthResponse]
    total_due: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    applied: bool = False
