# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing background jobs.

Actors:
    - generate_monthly_payments_job: Ensures ledger rows for a billing month
    - refresh_payment_statuses_job: Re-derives statuses so overdue rows surface

Each run builds its own Settings and Database and disposes the engine when
it finishes, so nothing is shared between jobs beyond the worker thread's
event loop.

Storage failures (DatabaseError) are re-raised so Dramatiq retries the
message; any other error is reported in the returned dictionary.
"""

import logging
from dataclasses import asdict
from typing import Any

import dramatiq

from educenter.core.config import Settings, load_settings
from educenter.domains.billing import CycleGenerator, StatusRefresher
from educenter.infrastructure.background.broker import Priority, Queues
from educenter.infrastructure.background.tasks.base import run_async
from educenter.infrastructure.database import Database, DatabaseError
from educenter.utils.datetime import format_month, parse_month

logger = logging.getLogger(__name__)


async def execute_monthly_generation(
    settings: Settings,
    month: str | None = None,
    center_id: int | None = None,
    backfill: bool = False,
) -> dict[str, Any]:
    """Generate ledger rows for a month.

    Args:
        settings: Application settings.
        month: Billing month as YYYY-MM. Defaults to the current month.
        center_id: Restrict to one center.
        backfill: Also fill every earlier month since each profile joined.

    Returns:
        Generation report as a dictionary.
    """
    billing_month = parse_month(month)
    database = Database(settings)
    try:
        async with database.session() as session:
            generator = CycleGenerator(session)
            if backfill:
                report = await generator.generate_up_to(billing_month, center_id=center_id)
            else:
                report = await generator.generate_for_month(billing_month, center_id=center_id)
    finally:
        await database.close()

    if backfill:
        result = {
            "billing_month": format_month(report.up_to_month),
            "first_month": format_month(report.first_month) if report.first_month else None,
            "months": len(report.months),
            "rows_created": report.rows_created,
            "rows_existing": report.rows_existing,
            "failures": [asdict(f) for f in report.failures],
        }
    else:
        result = asdict(report)
        result["billing_month"] = format_month(report.billing_month)
    result["status"] = "completed"
    return result


async def execute_status_refresh(
    settings: Settings,
    center_id: int | None = None,
) -> dict[str, Any]:
    """Re-derive the status of all open ledger rows.

    Returns:
        Refresh counts as a dictionary.
    """
    database = Database(settings)
    try:
        async with database.session() as session:
            report = await StatusRefresher(session).refresh(center_id=center_id)
    finally:
        await database.close()

    result = asdict(report)
    result["today"] = report.today.isoformat()
    result["status"] = "completed"
    return result


@dramatiq.actor(
    queue_name=Queues.BILLING,
    max_retries=3,
    time_limit=600000,  # 10 minutes
    priority=Priority.HIGH,
)
def generate_monthly_payments_job(
    month: str | None = None,
    center_id: int | None = None,
    backfill: bool = False,
) -> dict[str, Any]:
    """Scheduler job: ensure this month's ledger rows exist.

    Safe to run any number of times; rows that already exist are left alone.

    Args:
        month: Billing month as YYYY-MM. Defaults to the current month.
        center_id: Restrict to one center.
        backfill: Also fill every earlier month since each profile joined.

    Returns:
        Generation report, or a failure description.

    Raises:
        DatabaseError: On storage failures, so the message is retried.
    """
    logger.info(
        "Monthly payment generation triggered: month=%s, backfill=%s",
        month or "current",
        backfill,
    )

    try:
        result = run_async(
            execute_monthly_generation(load_settings(), month, center_id, backfill)
        )
        logger.info(
            "Monthly payment generation completed: month=%s, created=%d, existing=%d, failed=%d",
            result["billing_month"],
            result["rows_created"],
            result["rows_existing"],
            len(result["failures"]),
        )
        return result
    except DatabaseError as e:
        logger.warning("Monthly payment generation hit a storage error, retrying: %s", e)
        raise
    except Exception as e:
        logger.error("Monthly payment generation failed: %s", e, exc_info=True)
        return {"status": "failed", "error": str(e)}


@dramatiq.actor(
    queue_name=Queues.BILLING,
    max_retries=1,
    time_limit=300000,  # 5 minutes
    priority=Priority.NORMAL,
)
def refresh_payment_statuses_job(center_id: int | None = None) -> dict[str, Any]:
    """Scheduler job: mark rows past their due date as overdue.

    Returns:
        Refresh counts, or a failure description.

    Raises:
        DatabaseError: On storage failures, so the message is retried.
    """
    logger.info("Payment status refresh triggered")

    try:
        result = run_async(execute_status_refresh(load_settings(), center_id))
        logger.info(
            "Payment status refresh completed: examined=%d, updated=%d",
            result["examined"],
            result["updated"],
        )
        return result
    except DatabaseError as e:
        logger.warning("Payment status refresh hit a storage error, retrying: %s", e)
        raise
    except Exception as e:
        logger.error("Payment status refresh failed: %s", e, exc_info=True)
        return {"status": "failed", "error": str(e)}


def get_billing_actors() -> list:
    """Get all billing job actors."""
    return [
        generate_monthly_payments_job,
        refresh_payment_statuses_job,
    ]
