"""Bounded concurrency scheduler.

Admits at most ``limit`` units of work at a time. Waiting units are admitted
in submission order as slots free up; completion order is unconstrained.
Each admitted unit sleeps a fixed pacing delay before running so that even a
full concurrency window does not burst the upstream rate limiter.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PACING_DELAY_S = 1.5


class BoundedScheduler:
    """Semaphore-backed admission gate for async units of work."""

    def __init__(
        self,
        limit: int,
        pacing_delay_s: float = DEFAULT_PACING_DELAY_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the scheduler.

        Args:
            limit: Maximum number of units in flight at once (>= 1).
            pacing_delay_s: Delay each admitted unit waits before running.
            sleep: Awaitable sleep used for pacing (injectable for tests).
        """
        if limit < 1:
            raise ValueError(f"Concurrency limit must be >= 1, got {limit}")
        self.limit = limit
        self.pacing_delay_s = pacing_delay_s
        self._sleep = sleep
        # asyncio.Semaphore wakes waiters in the order they started waiting
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak_in_flight = 0
        logger.debug(f"BoundedScheduler initialized: limit={limit}, pacing={pacing_delay_s}s")

    async def run(self, task_factory: Callable[[], Awaitable[T]]) -> T:
        """Waits for a free slot, paces, then runs the unit of work.

        The slot is released whether the unit returns or raises; exceptions
        propagate to the caller untouched.
        """
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                if self.pacing_delay_s > 0:
                    await self._sleep(self.pacing_delay_s)
                return await task_factory()
            finally:
                self.in_flight -= 1
