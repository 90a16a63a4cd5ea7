"""
Request Queue Subsystem for the Open API consumer.

Holds pending brokerage API requests ordered by priority until the consumer
dispatches them.

Key Components:
- RequestQueue: Producer-facing enqueue API, applies priority/retry defaults
- PriorityQueue: Thread-safe min-heap with FIFO tie-breaking
- QueueItem: A unit of deferred work (endpoint, parameters, tr_id, callback)
- Priority: Built-in priority levels (RETRY, DEFAULT)

The queue is a pure data structure - it does NOT dispatch anything.
Dispatch and retry policy live in the RequestConsumer.
"""

from openapi_queue.queue.models import Priority, QueueEntry, QueueItem
from openapi_queue.queue.priority_queue import PriorityQueue
from openapi_queue.queue.request_queue import RequestQueue

__all__ = [
    "Priority",
    "QueueEntry",
    "QueueItem",
    "PriorityQueue",
    "RequestQueue",
]
