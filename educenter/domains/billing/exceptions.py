# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the billing domain.

This module defines the exception hierarchy for billing operations:
- BillingError: Base exception for all billing errors
- Not-found errors for profiles, payments, students and groups
- InvalidProfileError: Profile data that cannot produce a ledger row
- Payment errors: cancelled rows, locked rows, bad amounts
- InvalidSettlementError: Leave settlement input errors
- BillingIntegrityError: Dangling student/group references
"""


class BillingError(Exception):
    """Base exception for all billing errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize billing error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ProfileNotFoundError(BillingError):
    """Raised when a billing profile does not exist."""


class ProfileAlreadyExistsError(BillingError):
    """Raised when a (student, group) pair already has a billing profile."""


class StudentNotFoundError(BillingError):
    """Raised when a referenced student does not exist in the center."""


class GroupNotFoundError(BillingError):
    """Raised when a referenced group does not exist in the center."""


class InvalidProfileError(BillingError):
    """Raised when profile data is inconsistent.

    Attributes:
        reason: Short machine-readable reason (e.g. "due_day_out_of_range").
    """

    def __init__(self, message: str, reason: str, details: dict | None = None):
        """Initialize invalid profile error.

        Args:
            message: Human-readable error description.
            reason: Short machine-readable reason.
            details: Optional dictionary with additional error context.
        """
        self.reason = reason
        super().__init__(message, details)


class PaymentNotFoundError(BillingError):
    """Raised when a monthly payment row does not exist."""


class PaymentCancelledError(BillingError):
    """Raised when a payment is recorded against a cancelled row."""


class PaymentLockedError(BillingError):
    """Raised when editing amount, due date or status of a paid row."""


class InvalidPaymentStatusError(BillingError):
    """Raised when a status is set that the row amounts contradict."""


class InvalidPaymentAmountError(BillingError):
    """Raised when a payment or amount due is not a valid money amount."""


class InvalidSettlementError(BillingError):
    """Raised when a leave settlement cannot be computed."""


class BillingIntegrityError(BillingError):
    """Raised when ledger rows reference missing students or groups.

    The generator does not repair such data; the caller must.
    """
