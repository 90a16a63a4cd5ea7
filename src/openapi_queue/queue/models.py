"""
Data models for the request queue subsystem.
"""

import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Optional


class Priority(IntEnum):
    """
    Built-in priority levels for queued requests.

    Lower numeric values = served sooner. Any other integer is a valid
    priority as well; these two are the ones the queue itself uses.
    """
    RETRY = 1
    DEFAULT = 2


def _generate_item_id() -> str:
    return f"req-{uuid.uuid4().hex[:12]}"


@dataclass
class QueueItem:
    """
    A unit of deferred work against the brokerage Open API.

    The queue never looks inside ``endpoint``, ``parameters`` or
    ``request_kind``; they are handed to the call function unchanged.
    """

    endpoint: str
    """Request target, e.g. '/uapi/domestic-stock/v1/quotations/inquire-price'."""

    parameters: Dict[str, Any]
    """Query payload owned by the producer."""

    request_kind: str
    """Transaction id the call function needs to route the request (tr_id)."""

    on_complete: Callable[[Dict[str, Any]], Any]
    """Invoked with the decoded response after a successful dispatch."""

    retries_remaining: Optional[int] = None
    """Remaining re-dispatch attempts. None until the request queue applies its default."""

    on_failure: Optional[Callable[["QueueItem", BaseException], Any]] = None
    """Optional hook fired once when the item is dropped after retry exhaustion."""

    item_id: str = field(default_factory=_generate_item_id)
    """Identifier for log correlation, shared by every retry of the same work."""

    attempt: int = 1
    """Which dispatch attempt this item represents."""

    @property
    def is_exhausted(self) -> bool:
        """True once no retry is left. An item that never got a budget counts as exhausted."""
        return self.retries_remaining is None or self.retries_remaining <= 0

    def describe(self) -> str:
        return f"{self.item_id} URL:{self.endpoint}, trId: {self.request_kind}"


@dataclass(order=True)
class QueueEntry:
    """
    Heap record pairing an item with its priority.

    Ordered by (priority, sequence); the sequence number keeps FIFO order
    among equal priorities.
    """

    priority: int
    sequence: int
    item: Any = field(compare=False)
