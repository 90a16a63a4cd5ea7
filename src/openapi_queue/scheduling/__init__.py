"""
Periodic scheduling for the Open API consumer.

The tick source is injected into the consumer instead of being hard-coded,
so tests and alternative orchestrators can drive ``consume()`` themselves.
"""

from openapi_queue.scheduling.ticker import Ticker

__all__ = ["Ticker"]
