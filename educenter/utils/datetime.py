# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for EduCenter.

This module provides standardized datetime and calendar-month operations
used across the billing code.

Design Decisions:
-----------------
1. All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ)
2. All Python datetimes are timezone-aware (with timezone.utc)
3. Billing months are plain dates normalized to the first day of the month

Usage:
------
    from educenter.utils.datetime import utc_now, month_start

    now = utc_now()
    billing_month = month_start(now.date())
"""

import calendar
import re
from collections.abc import Iterator
from datetime import date, datetime, timezone

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


class InvalidMonthError(ValueError):
    """Raised when a month string is not in YYYY-MM format."""


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get the current UTC calendar date."""
    return utc_now().date()


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month."""
    return calendar.monthrange(year, month)[1]


def month_start(d: date) -> date:
    """Normalize a date to the first day of its month."""
    return d.replace(day=1)


def month_end(d: date) -> date:
    """Last day of the month containing d."""
    return d.replace(day=days_in_month(d.year, d.month))


def add_months(month: date, delta: int) -> date:
    """Shift a month by delta months.

    Args:
        month: Any date in the starting month.
        delta: Number of months to move (negative moves back).

    Returns:
        First day of the resulting month.
    """
    index = month.year * 12 + (month.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def iter_month_starts(start: date, end: date) -> Iterator[date]:
    """Yield the first day of every month from start to end inclusive."""
    current = month_start(start)
    last = month_start(end)
    while current <= last:
        yield current
        current = add_months(current, 1)


def parse_month(value: str | None, default: date | None = None) -> date:
    """Parse a YYYY-MM string into the first day of that month.

    Args:
        value: Month string; empty or None falls back to default.
        default: Date used when value is empty. Defaults to today (UTC).

    Returns:
        First day of the month.

    Raises:
        InvalidMonthError: If the string is not a valid YYYY-MM month.
    """
    text = (value or "").strip()
    if not text:
        return month_start(default or utc_today())

    match = _MONTH_PATTERN.match(text)
    if not match:
        raise InvalidMonthError(f"Invalid month format (expected YYYY-MM): {value!r}")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthError(f"Invalid month: {value!r}")

    return date(year, month, 1)


def format_month(d: date) -> str:
    """Format a date as YYYY-MM."""
    return f"{d.year:04d}-{d.month:02d}"
