"""
Public enqueue API used by every Open API producer.
"""

import logging
from typing import Optional, Tuple

from openapi_queue.config import QueueSettings
from openapi_queue.queue.models import QueueItem
from openapi_queue.queue.priority_queue import PriorityQueue

logger = logging.getLogger(__name__)


class RequestQueue:
    """
    Thin façade over PriorityQueue that applies the queue defaults.

    ``enqueue`` never blocks and never performs I/O, so producers can call it
    from anywhere, including while a consumption pass is running.
    """

    def __init__(self, settings: Optional[QueueSettings] = None):
        self._settings = settings or QueueSettings()
        self._queue: PriorityQueue[QueueItem] = PriorityQueue()

    def enqueue(self, item: QueueItem, priority: Optional[int] = None) -> None:
        if not priority:
            priority = self._settings.default_priority
        if item.retries_remaining is None:
            item.retries_remaining = self._settings.default_retries
        self._queue.enqueue(item, int(priority))
        logger.debug(
            "Enqueued %s with priority %s (retries left: %s)",
            item.describe(),
            priority,
            item.retries_remaining,
        )

    def dequeue(self) -> Optional[QueueItem]:
        return self._queue.dequeue()

    def peek(self) -> Optional[Tuple[QueueItem, int]]:
        return self._queue.peek()

    def is_empty(self) -> bool:
        return self._queue.is_empty()

    def clear(self) -> int:
        return self._queue.clear()

    @property
    def depth(self) -> int:
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._queue)
