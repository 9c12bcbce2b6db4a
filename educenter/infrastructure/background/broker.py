# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq broker configuration for EduCenter.

This module provides background task processing with:
- Redis broker for message persistence and durability
- Result backend for job results
- StubBroker for tests (WORKER_BROKER=stub)

Dramatiq binds actors to the broker registered with dramatiq.set_broker()
when the actor module is imported, so the worker entry point must set up a
broker before importing the task modules.

Example:
    from educenter.core.config import load_settings
    from educenter.infrastructure.background.broker import BrokerManager

    manager = BrokerManager(load_settings())
    broker = manager.setup()
"""

import logging
from typing import TYPE_CHECKING, Any

import dramatiq
import redis
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.results import Results
from dramatiq.results.backends.redis import RedisBackend

if TYPE_CHECKING:
    from educenter.core.config.settings import Settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue name constants for task routing."""

    DEFAULT = "default"
    BILLING = "billing"


class Priority:
    """Task priority levels (lower number = higher priority)."""

    HIGH = 1
    NORMAL = 3
    LOW = 5


class BrokerManager:
    """Manages Dramatiq broker lifecycle.

    Attributes:
        settings: Application settings.
    """

    def __init__(self, settings: "Settings") -> None:
        """Initialize broker manager.

        Args:
            settings: Application settings with worker and redis configuration.
        """
        self.settings = settings
        self._broker: dramatiq.Broker | None = None
        self._results_backend: RedisBackend | None = None

    @property
    def broker(self) -> dramatiq.Broker:
        """Get the configured broker.

        Raises:
            RuntimeError: If broker not initialized.
        """
        if self._broker is None:
            raise RuntimeError("Broker not initialized. Call setup() first.")
        return self._broker

    @property
    def is_initialized(self) -> bool:
        return self._broker is not None

    def setup(self) -> dramatiq.Broker:
        """Create the broker and register it with Dramatiq.

        Returns:
            Configured broker instance.
        """
        if self._broker is not None:
            return self._broker

        if self.settings.worker.broker == "stub":
            self._broker = StubBroker()
            self._broker.emit_after("process_boot")
            logger.info("Using StubBroker")
        else:
            redis_url = self.settings.redis.url
            self._results_backend = RedisBackend(url=redis_url)
            self._broker = RedisBroker(url=redis_url)
            self._broker.add_middleware(Results(backend=self._results_backend))
            logger.info("Redis broker initialized (url: %s)", redis_url.split("@")[-1])

        dramatiq.set_broker(self._broker)
        return self._broker

    def shutdown(self) -> None:
        """Close the broker."""
        if self._broker is not None:
            self._broker.close()
            self._broker = None
            logger.info("Broker shutdown complete")

    def get_queue_stats(self) -> dict[str, Any]:
        """Get queue lengths for the known queues."""
        if self._broker is None:
            return {"status": "not_initialized"}

        if isinstance(self._broker, StubBroker):
            return {
                "broker_type": "stub",
                "status": "healthy",
                "queues": {
                    name: queue.qsize() for name, queue in self._broker.queues.items()
                },
            }

        stats: dict[str, Any] = {"broker_type": "redis"}
        try:
            client = redis.from_url(self.settings.redis.url)
            stats["queues"] = {
                queue: client.llen(f"dramatiq:{queue}")
                for queue in (Queues.DEFAULT, Queues.BILLING)
            }
            stats["status"] = "healthy"
        except redis.RedisError as e:
            stats["status"] = "error"
            stats["error"] = str(e)
        return stats


def setup_broker(settings: "Settings") -> BrokerManager:
    """Build a BrokerManager and register its broker with Dramatiq."""
    manager = BrokerManager(settings)
    manager.setup()
    return manager
