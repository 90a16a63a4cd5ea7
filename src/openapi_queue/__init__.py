"""
Rate-limited request queue for the brokerage Open API.

Producers enqueue ``QueueItem``s into a ``RequestQueue``; a ``RequestConsumer``
drains them on a fixed tick, rotating across the available API credentials.
"""

from openapi_queue.consumer import RequestConsumer
from openapi_queue.queue import Priority, QueueItem, RequestQueue

__all__ = ["Priority", "QueueItem", "RequestConsumer", "RequestQueue"]
