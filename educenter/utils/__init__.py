# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for EduCenter.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime and calendar-month operations
"""

from educenter.utils.datetime import (
    InvalidMonthError,
    add_months,
    days_in_month,
    ensure_utc,
    format_month,
    iter_month_starts,
    month_end,
    month_start,
    parse_month,
    utc_now,
    utc_today,
)
from educenter.utils.logging import bound_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bound_context",
    # Datetime
    "utc_now",
    "utc_today",
    "ensure_utc",
    # Calendar months
    "InvalidMonthError",
    "days_in_month",
    "month_start",
    "month_end",
    "add_months",
    "iter_month_starts",
    "parse_month",
    "format_month",
]
