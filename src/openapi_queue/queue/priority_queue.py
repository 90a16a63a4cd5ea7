"""
Min-priority queue used to hold pending Open API requests.

Lower priority values are dequeued first; equal priorities come out in
insertion order.
"""

import heapq
import itertools
import logging
from threading import RLock
from typing import Generic, List, Optional, Tuple, TypeVar

from openapi_queue.queue.models import QueueEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PriorityQueue(Generic[T]):
    """
    Thread-safe binary-heap priority queue.

    Heap entries are ``QueueEntry(priority, sequence, item)``; ``sequence``
    comes from a monotonically increasing counter and is the tie-breaker.

    Design principles:
    - Pure data structure - no I/O, no retry policy
    - Empty dequeue returns None, it is not an error
    - Thread-safe with RLock
    """

    def __init__(self):
        self._heap: List[QueueEntry] = []
        self._counter = itertools.count()
        self._lock = RLock()

    def enqueue(self, item: T, priority: int) -> None:
        """
        Add an item with the given priority.

        Args:
            item: Anything; the queue does not inspect it
            priority: Integer priority, lower = sooner

        Thread-safe.
        """
        with self._lock:
            heapq.heappush(self._heap, QueueEntry(priority, next(self._counter), item))

    def dequeue(self) -> Optional[T]:
        """
        Remove and return the lowest-priority item.

        Returns:
            The item, or None if the queue is empty

        Thread-safe.
        """
        with self._lock:
            if not self._heap:
                return None
            return heapq.heappop(self._heap).item

    def peek(self) -> Optional[Tuple[T, int]]:
        """
        Look at the next item without removing it.

        Returns:
            Tuple of (item, priority) or None if the queue is empty
        """
        with self._lock:
            if not self._heap:
                return None
            head = self._heap[0]
            return head.item, head.priority

    def is_empty(self) -> bool:
        with self._lock:
            return not self._heap

    def clear(self) -> int:
        """Drop every pending entry. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._heap)
            self._heap.clear()
        if dropped:
            logger.info("Cleared %d pending entries from priority queue", dropped)
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)
