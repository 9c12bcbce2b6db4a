# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing domain package.

This package provides monthly billing for students enrolled in groups:
- Billing profiles per (student, group)
- Monthly ledger generation
- Status derivation (pending, paid, overdue, cancelled)
- Payment recording and manual edits
- Leave settlements and debt reporting
"""

from educenter.domains.billing.exceptions import (
    BillingError,
    BillingIntegrityError,
    GroupNotFoundError,
    InvalidPaymentAmountError,
    InvalidPaymentStatusError,
    InvalidProfileError,
    InvalidSettlementError,
    PaymentCancelledError,
    PaymentLockedError,
    PaymentNotFoundError,
    ProfileAlreadyExistsError,
    ProfileNotFoundError,
    StudentNotFoundError,
)
from educenter.domains.billing.generator import (
    BackfillReport,
    CycleGenerator,
    GenerationFailure,
    GenerationReport,
)
from educenter.domains.billing.payments import PaymentService
from educenter.domains.billing.profiles import ActiveProfile, BillingProfileService
from educenter.domains.billing.reporting import BillingReportService
from educenter.domains.billing.settlement import Settlement, SettlementMonth, SettlementService
from educenter.domains.billing.status import (
    StatusRefresher,
    StatusRefreshReport,
    apply_status,
    derive_status,
)

__all__ = [
    # Services
    "BillingProfileService",
    "CycleGenerator",
    "PaymentService",
    "SettlementService",
    "BillingReportService",
    "StatusRefresher",
    # Values
    "ActiveProfile",
    "BackfillReport",
    "GenerationFailure",
    "GenerationReport",
    "Settlement",
    "SettlementMonth",
    "StatusRefreshReport",
    "apply_status",
    "derive_status",
    # Errors
    "BillingError",
    "BillingIntegrityError",
    "GroupNotFoundError",
    "InvalidPaymentAmountError",
    "InvalidPaymentStatusError",
    "InvalidProfileError",
    "InvalidSettlementError",
    "PaymentCancelledError",
    "PaymentLockedError",
    "PaymentNotFoundError",
    "ProfileAlreadyExistsError",
    "ProfileNotFoundError",
    "StudentNotFoundError",
]
