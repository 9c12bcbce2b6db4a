# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq task actors for EduCenter.

Importing this package registers a broker with Dramatiq (Redis, or the
StubBroker when WORKER_BROKER=stub) and then declares the actors.

Running Workers:
    dramatiq educenter.infrastructure.background.tasks --processes 2 --threads 4
"""

from educenter.core.config import load_settings
from educenter.infrastructure.background.broker import setup_broker
from educenter.utils.logging import setup_logging

_settings = load_settings()
setup_logging(_settings)
broker_manager = setup_broker(_settings)

from educenter.infrastructure.background.tasks.billing import (  # noqa: E402
    execute_monthly_generation,
    execute_status_refresh,
    generate_monthly_payments_job,
    get_billing_actors,
    refresh_payment_statuses_job,
)

__all__ = [
    "broker_manager",
    "execute_monthly_generation",
    "execute_status_refresh",
    "generate_monthly_payments_job",
    "refresh_payment_statuses_job",
    "get_billing_actors",
]
