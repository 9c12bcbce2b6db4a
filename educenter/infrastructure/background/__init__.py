# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background job infrastructure for EduCenter.

Provides periodic billing work with Dramatiq and APScheduler:
- Redis broker (or StubBroker in tests)
- Actors for monthly ledger generation and status refresh
- Cron scheduling that sends the actors

Running Workers:
    dramatiq educenter.infrastructure.background.tasks --processes 2 --threads 4

Actors live in the tasks subpackage and are imported lazily, since
importing them registers a broker.
"""

from educenter.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    setup_broker,
)
from educenter.infrastructure.background.scheduler import BillingScheduler, ScheduledTask

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "setup_broker",
    "BillingScheduler",
    "ScheduledTask",
]
