# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Add payment_method column to monthly_payment_transactions.

Records how the money was received (cash, bank transfer or one of the card
and wallet providers). The column is nullable; transactions recorded before
this migration keep no method.

Revision ID: 002_add_payment_method
Revises: 001_billing_schema
Create Date: 2026-02-06
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_add_payment_method"
down_revision: str = "001_billing_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

payment_method = sa.Enum(
    "cash",
    "bank_transfer",
    "click",
    "payme",
    "uzum",
    "humo",
    "other",
    name="payment_method",
)


def upgrade() -> None:
    """Add payment_method column to monthly_payment_transactions."""
    payment_method.create(op.get_bind(), checkfirst=True)

    op.add_column(
        "monthly_payment_transactions",
        sa.Column("payment_method", payment_method, nullable=True),
    )


def downgrade() -> None:
    """Remove payment_method column from monthly_payment_transactions."""
    op.drop_column("monthly_payment_transactions", "payment_method")
    payment_method.drop(op.get_bind(), checkfirst=True)
