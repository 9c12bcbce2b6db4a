# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing schema.

Creates the center, student and group tables the ledger references, the
per (student, group) billing profiles, the monthly payment ledger and the
payment transaction log.

Revision ID: 001_billing_schema
Revises:
Create Date: 2026-01-05
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_billing_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)

monthly_payment_status = sa.Enum(
    "pending",
    "paid",
    "overdue",
    "cancelled",
    name="monthly_payment_status",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create billing tables."""

    op.create_table(
        "centers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_centers"),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("center_id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("username", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_students"),
        sa.ForeignKeyConstraint(
            ["center_id"],
            ["centers.id"],
            name="fk_students_center_id_centers",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("username", name="uq_students_username"),
    )
    op.create_index("ix_students_center_id", "students", ["center_id"])

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("center_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.ForeignKeyConstraint(
            ["center_id"],
            ["centers.id"],
            name="fk_groups_center_id_centers",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_groups_center_id", "groups", ["center_id"])

    op.create_table(
        "student_group_billing_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("center_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("join_date", sa.Date(), nullable=False),
        sa.Column("leave_date", sa.Date(), nullable=True),
        sa.Column("monthly_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("due_day", sa.Integer(), nullable=False, server_default="10"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_student_group_billing_profiles"),
        sa.ForeignKeyConstraint(
            ["center_id"],
            ["centers.id"],
            name="fk_student_group_billing_profiles_center_id_centers",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_student_group_billing_profiles_student_id_students",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["groups.id"],
            name="fk_student_group_billing_profiles_group_id_groups",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "student_id", "group_id", name="uq_student_group_billing_profile"
        ),
    )
    for column in ("center_id", "student_id", "group_id"):
        op.create_index(
            f"ix_student_group_billing_profiles_{column}",
            "student_group_billing_profiles",
            [column],
        )

    op.create_table(
        "monthly_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("center_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        # First day of the covered month
        sa.Column("billing_month", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount_due", MONEY, nullable=False, server_default="0"),
        sa.Column("amount_paid", MONEY, nullable=False, server_default="0"),
        sa.Column(
            "status",
            monthly_payment_status,
            nullable=False,
            server_default="pending",
        ),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_monthly_payments"),
        sa.ForeignKeyConstraint(
            ["center_id"],
            ["centers.id"],
            name="fk_monthly_payments_center_id_centers",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_monthly_payments_student_id_students",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["groups.id"],
            name="fk_monthly_payments_group_id_groups",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "student_id",
            "group_id",
            "billing_month",
            name="uq_monthly_payments_student_group_month",
        ),
    )
    op.create_index("ix_monthly_payments_student_id", "monthly_payments", ["student_id"])
    op.create_index("ix_monthly_payments_group_id", "monthly_payments", ["group_id"])
    op.create_index(
        "ix_monthly_payments_center_month",
        "monthly_payments",
        ["center_id", "billing_month"],
    )
    op.create_index(
        "ix_monthly_payments_status_due",
        "monthly_payments",
        ["status", "due_date"],
    )

    op.create_table(
        "monthly_payment_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("monthly_payment_id", sa.Integer(), nullable=False),
        sa.Column("center_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column(
            "paid_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("recorded_by", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_monthly_payment_transactions"),
        sa.ForeignKeyConstraint(
            ["monthly_payment_id"],
            ["monthly_payments.id"],
            name="fk_monthly_payment_transactions_monthly_payment_id_monthly_payments",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["center_id"],
            ["centers.id"],
            name="fk_monthly_payment_transactions_center_id_centers",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_monthly_payment_transactions_student_id_students",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_monthly_payment_transactions_monthly_payment_id",
        "monthly_payment_transactions",
        ["monthly_payment_id"],
    )


def downgrade() -> None:
    """Drop billing tables."""
    op.drop_table("monthly_payment_transactions")
    op.drop_table("monthly_payments")
    op.drop_table("student_group_billing_profiles")
    op.drop_table("groups")
    op.drop_table("students")
    op.drop_table("centers")
    monthly_payment_status.drop(op.get_bind(), checkfirst=True)
