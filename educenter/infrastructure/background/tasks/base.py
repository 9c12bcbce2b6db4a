# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers process messages on several threads. Async engines
    and asyncpg connections are bound to the loop that created them, so
    each worker thread keeps one persistent event loop and every job run
    on that thread uses it.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_thread_local = threading.local()


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create the event loop of the current thread."""
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _thread_local.event_loop = loop
        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous Dramatiq actor.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of the coroutine.

    Example:
        @dramatiq.actor
        def my_task(month: str):
            async def _process():
                database = Database(load_settings())
                try:
                    async with database.session() as session:
                        ...
                finally:
                    await database.close()
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)
