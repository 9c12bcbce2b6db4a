# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic billing jobs.

Uses APScheduler cron triggers to send Dramatiq actors; the work itself
runs in the worker processes.

Example:
    scheduler = BillingScheduler(settings)
    scheduler.register_billing_jobs()
    await scheduler.start()
    ...
    await scheduler.stop()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from educenter.core.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    """Configuration for a scheduled Dramatiq task.

    Attributes:
        id: Unique task identifier.
        name: Human-readable task name.
        actor_name: Name of the Dramatiq actor to send.
        cron_expression: Five-field cron expression (UTC).
        kwargs: Keyword arguments for the actor.
        last_run: Last time the actor was sent.
        run_count: Number of successful sends.
        error_count: Number of failed sends.
    """

    name: str
    actor_name: str
    cron_expression: str
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "actor_name": self.actor_name,
            "cron_expression": self.cron_expression,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


def _default_actor_lookup(actor_name: str) -> Callable[..., Any] | None:
    from educenter.infrastructure.background import tasks

    return getattr(tasks, actor_name, None)


class BillingScheduler:
    """Sends billing actors on cron schedules.

    Attributes:
        settings: Application settings.
    """

    def __init__(
        self,
        settings: "Settings",
        actor_lookup: Callable[[str], Callable[..., Any] | None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            settings: Application settings with billing cron expressions.
            actor_lookup: Resolves actor names; defaults to the tasks package.
        """
        self.settings = settings
        self._actor_lookup = actor_lookup or _default_actor_lookup
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._tasks: dict[str, ScheduledTask] = {}

    @property
    def is_running(self) -> bool:
        return self._scheduler.running

    def add_cron_task(
        self,
        name: str,
        actor_name: str,
        cron_expression: str,
        kwargs: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        """Add a cron-scheduled task.

        Raises:
            ValueError: If the cron expression is invalid.
        """
        trigger = CronTrigger.from_crontab(cron_expression, timezone=timezone.utc)

        task = ScheduledTask(
            name=name,
            actor_name=actor_name,
            cron_expression=cron_expression,
            kwargs=kwargs or {},
        )
        self._tasks[task.id] = task
        self._scheduler.add_job(
            self.execute_task,
            trigger=trigger,
            args=[task.id],
            id=task.id,
            name=name,
        )

        logger.info("Added cron task: %s (%s)", name, cron_expression)
        return task

    def register_billing_jobs(self) -> list[ScheduledTask]:
        """Add the monthly generation and status refresh jobs."""
        billing = self.settings.billing
        return [
            self.add_cron_task(
                name="Generate monthly payments",
                actor_name="generate_monthly_payments_job",
                cron_expression=billing.generation_cron,
            ),
            self.add_cron_task(
                name="Refresh payment statuses",
                actor_name="refresh_payment_statuses_job",
                cron_expression=billing.status_refresh_cron,
            ),
        ]

    async def execute_task(self, task_id: str) -> None:
        """Send the actor of a scheduled task to its queue."""
        task = self._tasks.get(task_id)
        if task is None:
            return

        actor = self._actor_lookup(task.actor_name)
        if actor is None:
            task.error_count += 1
            logger.error("Scheduled task %s: actor not found: %s", task.name, task.actor_name)
            return

        try:
            actor.send(**task.kwargs)
        except Exception as e:
            task.error_count += 1
            logger.error("Scheduled task %s failed: %s", task.name, e)
            return

        task.last_run = datetime.now(timezone.utc)
        task.run_count += 1
        logger.debug("Scheduled task %s sent to queue", task.name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    async def start(self) -> None:
        """Start the scheduler."""
        if self.is_running:
            return
        self._scheduler.start()
        logger.info("Billing scheduler started with %d tasks", len(self._tasks))

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self.is_running:
            return
        self._scheduler.shutdown(wait=False)
        logger.info("Billing scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "task_count": len(self._tasks),
            "total_runs": sum(t.run_count for t in self._tasks.values()),
            "total_errors": sum(t.error_count for t in self._tasks.values()),
            "tasks": [t.to_dict() for t in self._tasks.values()],
        }
