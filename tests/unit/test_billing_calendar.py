# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for billing calendar rules and month helpers."""

from datetime import date
from decimal import Decimal

import pytest

from educenter.domains.billing.calendar import (
    active_coverage,
    compute_due_date,
    is_active_for_month,
    prorated_amount,
    round_money,
    validate_profile_values,
)
from educenter.domains.billing.exceptions import InvalidProfileError
from educenter.utils.datetime import (
    InvalidMonthError,
    add_months,
    format_month,
    iter_month_starts,
    month_end,
    parse_month,
)


class TestComputeDueDate:
    """Tests for due date computation."""

    def test_due_day_within_month(self):
        assert compute_due_date(date(2026, 1, 1), 10) == date(2026, 1, 10)

    def test_accepts_any_day_of_month(self):
        assert compute_due_date(date(2026, 1, 20), 10) == date(2026, 1, 10)

    def test_day_31_in_30_day_month_is_last_day(self):
        assert compute_due_date(date(2026, 4, 1), 31) == date(2026, 4, 30)

    def test_day_31_in_february(self):
        assert compute_due_date(date(2026, 2, 1), 31) == date(2026, 2, 28)

    def test_day_30_in_leap_february(self):
        assert compute_due_date(date(2028, 2, 1), 30) == date(2028, 2, 29)

    def test_first_day(self):
        assert compute_due_date(date(2026, 3, 1), 1) == date(2026, 3, 1)

    @pytest.mark.parametrize("due_day", [0, 32, -1])
    def test_out_of_range_due_day_rejected(self, due_day):
        with pytest.raises(InvalidProfileError) as exc_info:
            compute_due_date(date(2026, 1, 1), due_day)
        assert exc_info.value.reason == "due_day_out_of_range"


class TestIsActiveForMonth:
    """Tests for billing month eligibility."""

    def test_joined_mid_month_is_active(self):
        assert is_active_for_month(date(2026, 1, 5), None, date(2026, 1, 1))

    def test_joined_on_last_day_is_active(self):
        assert is_active_for_month(date(2026, 1, 31), None, date(2026, 1, 1))

    def test_joined_next_month_is_inactive(self):
        assert not is_active_for_month(date(2026, 2, 1), None, date(2026, 1, 1))

    def test_left_on_first_day_is_active(self):
        assert is_active_for_month(date(2025, 6, 1), date(2026, 1, 1), date(2026, 1, 1))

    def test_left_before_month_is_inactive(self):
        assert not is_active_for_month(date(2025, 6, 1), date(2025, 12, 31), date(2026, 1, 1))

    def test_open_ended_profile_active_for_later_months(self):
        assert is_active_for_month(date(2025, 6, 1), None, date(2027, 3, 1))


class TestValidateProfileValues:
    """Tests for profile validation."""

    def test_valid_profile(self):
        validate_profile_values(
            monthly_amount=Decimal("300000"),
            due_day=10,
            join_date=date(2026, 1, 5),
            leave_date=None,
        )

    def test_zero_amount_is_valid(self):
        validate_profile_values(
            monthly_amount=Decimal("0"),
            due_day=10,
            join_date=date(2026, 1, 5),
            leave_date=None,
        )

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidProfileError) as exc_info:
            validate_profile_values(
                monthly_amount=Decimal("-1"),
                due_day=10,
                join_date=date(2026, 1, 5),
                leave_date=None,
            )
        assert exc_info.value.reason == "negative_monthly_amount"

    def test_leave_before_join_rejected(self):
        with pytest.raises(InvalidProfileError) as exc_info:
            validate_profile_values(
                monthly_amount=Decimal("100"),
                due_day=10,
                join_date=date(2026, 1, 5),
                leave_date=date(2026, 1, 4),
            )
        assert exc_info.value.reason == "leave_before_join"


class TestProration:
    """Tests for active coverage and prorated amounts."""

    def test_full_month(self):
        coverage = active_coverage(date(2026, 1, 1), date(2025, 9, 1), None)

        assert coverage.active_days == 31
        assert coverage.is_full_month
        assert prorated_amount(Decimal("310"), coverage) == Decimal("310.00")

    def test_joined_mid_month(self):
        coverage = active_coverage(date(2026, 1, 1), date(2026, 1, 10), None)

        assert coverage.active_from == date(2026, 1, 10)
        assert coverage.active_to == date(2026, 1, 31)
        assert coverage.active_days == 22
        assert prorated_amount(Decimal("310"), coverage) == Decimal("220.00")

    def test_left_mid_month(self):
        coverage = active_coverage(date(2026, 2, 1), date(2025, 9, 1), date(2026, 2, 14))

        assert coverage.days_in_month == 28
        assert coverage.active_days == 14
        assert prorated_amount(Decimal("310"), coverage) == Decimal("155.00")

    def test_not_enrolled(self):
        assert active_coverage(date(2026, 3, 1), date(2025, 9, 1), date(2026, 2, 14)) is None
        assert prorated_amount(Decimal("310"), None) == Decimal("0.00")

    def test_rounds_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("0.124")) == Decimal("0.12")


class TestMonthHelpers:
    """Tests for month parsing and arithmetic."""

    def test_parse_month(self):
        assert parse_month("2026-01") == date(2026, 1, 1)

    def test_parse_month_defaults_to_given_date(self):
        assert parse_month(None, default=date(2026, 5, 17)) == date(2026, 5, 1)
        assert parse_month("  ", default=date(2026, 5, 17)) == date(2026, 5, 1)

    @pytest.mark.parametrize("value", ["2026-13", "2026/01", "26-01", "2026-1", "january"])
    def test_parse_month_rejects_bad_format(self, value):
        with pytest.raises(InvalidMonthError):
            parse_month(value)

    def test_format_month(self):
        assert format_month(date(2026, 3, 15)) == "2026-03"

    def test_add_months_across_year(self):
        assert add_months(date(2025, 11, 20), 3) == date(2026, 2, 1)
        assert add_months(date(2026, 1, 1), -1) == date(2025, 12, 1)

    def test_month_end(self):
        assert month_end(date(2026, 2, 3)) == date(2026, 2, 28)

    def test_iter_month_starts(self):
        months = list(iter_month_starts(date(2025, 11, 15), date(2026, 2, 3)))
        assert months == [
            date(2025, 11, 1),
            date(2025, 12, 1),
            date(2026, 1, 1),
            date(2026, 2, 1),
        ]
