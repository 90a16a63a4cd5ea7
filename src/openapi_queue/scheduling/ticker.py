"""
Fixed-period trigger for the request consumer.

Every ``interval_s`` seconds the ticker schedules its callback as a separate
task, the way ``setInterval`` would: a slow callback never delays the next
tick. Overlapping invocations are the callback's own concern.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Ticker:
    """
    Async background task that fires a coroutine callback periodically.

    Usage::

        ticker = Ticker(1.0, consumer.consume, name="openapi-consumer")
        ticker.start()
        ...
        await ticker.stop()
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "ticker",
    ) -> None:
        self.interval_s = interval_s
        self.name = name
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._callback_tasks: Set[asyncio.Task] = set()
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"{self.name}-ticker")
        logger.info("Ticker %s started (interval=%ss)", self.name, self.interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug("Ticker %s task cancelled", self.name)
        self._task = None

        pending = list(self._callback_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._callback_tasks.clear()
        logger.info("Ticker %s stopped", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.tick_count += 1
            task = asyncio.create_task(self.run_once(), name=f"{self.name}-tick-{self.tick_count}")
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_tasks.discard)

    async def run_once(self) -> None:
        """Run a single callback invocation (useful for testing)."""
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unexpected error in %s tick", self.name)
