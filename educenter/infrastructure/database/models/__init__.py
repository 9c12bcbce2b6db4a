# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models.

Importing this package registers every table on Base.metadata.
"""

from educenter.infrastructure.database.models.academic import Center, Group, Student
from educenter.infrastructure.database.models.base import Base, TimestampMixin
from educenter.infrastructure.database.models.billing import (
    MonthlyPayment,
    MonthlyPaymentStatus,
    MonthlyPaymentTransaction,
    PaymentMethod,
    StudentGroupBillingProfile,
)

__all__ = [
    "Base",
    "TimestampMixin",
    # Referenced entities
    "Center",
    "Student",
    "Group",
    # Billing
    "StudentGroupBillingProfile",
    "MonthlyPayment",
    "MonthlyPaymentStatus",
    "MonthlyPaymentTransaction",
    "PaymentMethod",
]
