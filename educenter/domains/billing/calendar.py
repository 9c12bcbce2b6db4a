# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing calendar rules.

Pure functions shared by the cycle generator, the profile store and the
leave settlement:
- Due date computation with month-length clamping
- Profile eligibility for a billing month
- Profile validation
- Active coverage and prorated amounts for partial months
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from educenter.domains.billing.exceptions import InvalidProfileError
from educenter.utils.datetime import days_in_month, month_end, month_start

MIN_DUE_DAY = 1
MAX_DUE_DAY = 31
CENTS = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round to two decimals, half up (matches numeric(12,2))."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_due_day(due_day: int) -> int:
    """Check a due day is within 1..31.

    Raises:
        InvalidProfileError: If out of range.
    """
    if not isinstance(due_day, int) or isinstance(due_day, bool):
        raise InvalidProfileError(
            f"due_day must be an integer, got {due_day!r}",
            reason="due_day_not_integer",
        )
    if not MIN_DUE_DAY <= due_day <= MAX_DUE_DAY:
        raise InvalidProfileError(
            f"due_day must be between {MIN_DUE_DAY} and {MAX_DUE_DAY}, got {due_day}",
            reason="due_day_out_of_range",
        )
    return due_day


def compute_due_date(billing_month: date, due_day: int) -> date:
    """Compute the due date of a billing month.

    The due date is the first day of the month plus (due_day - 1) days,
    clamped to the last day of the month: due_day=31 in April gives
    April 30th, in February the 28th or 29th.

    Args:
        billing_month: Any date in the billing month.
        due_day: Day of month the payment is due (1..31).

    Returns:
        The due date.

    Raises:
        InvalidProfileError: If due_day is outside 1..31.
    """
    validate_due_day(due_day)
    first = month_start(billing_month)
    last_day = days_in_month(first.year, first.month)
    return first + timedelta(days=min(due_day, last_day) - 1)


def is_active_for_month(join_date: date, leave_date: date | None, billing_month: date) -> bool:
    """Whether a profile is billable for a month.

    Active when the student joined on or before the last day of the month
    and had not left before its first day.
    """
    first = month_start(billing_month)
    if join_date > month_end(first):
        return False
    return leave_date is None or leave_date >= first


def validate_profile_values(
    *,
    monthly_amount: Decimal,
    due_day: int,
    join_date: date,
    leave_date: date | None,
) -> None:
    """Validate the fields the generator depends on.

    Raises:
        InvalidProfileError: On a bad due day, a negative amount or a leave
            date before the join date.
    """
    validate_due_day(due_day)

    if monthly_amount is None or Decimal(monthly_amount) < 0:
        raise InvalidProfileError(
            f"monthly_amount must be non-negative, got {monthly_amount}",
            reason="negative_monthly_amount",
        )

    if leave_date is not None and leave_date < join_date:
        raise InvalidProfileError(
            f"leave_date {leave_date} is before join_date {join_date}",
            reason="leave_before_join",
        )


@dataclass(frozen=True)
class MonthCoverage:
    """Days of a billing month during which a student was enrolled.

    Attributes:
        billing_month: First day of the month.
        active_from: First enrolled day within the month.
        active_to: Last enrolled day within the month.
        active_days: Inclusive day count.
        days_in_month: Length of the month.
    """

    billing_month: date
    active_from: date
    active_to: date
    active_days: int
    days_in_month: int

    @property
    def is_full_month(self) -> bool:
        return self.active_days == self.days_in_month


def active_coverage(
    billing_month: date,
    join_date: date,
    leave_date: date | None,
) -> MonthCoverage | None:
    """Compute enrolled days within a month.

    Returns:
        MonthCoverage, or None when the student was not enrolled at all.
    """
    first = month_start(billing_month)
    last = month_end(first)

    active_from = max(join_date, first)
    active_to = min(leave_date, last) if leave_date is not None else last
    if active_to < active_from:
        return None

    return MonthCoverage(
        billing_month=first,
        active_from=active_from,
        active_to=active_to,
        active_days=(active_to - active_from).days + 1,
        days_in_month=last.day,
    )


def prorated_amount(monthly_amount: Decimal, coverage: MonthCoverage | None) -> Decimal:
    """Monthly amount scaled by active days / days in month."""
    if coverage is None:
        return Decimal("0.00")
    return round_money(Decimal(monthly_amount) * coverage.active_days / coverage.days_in_month)
