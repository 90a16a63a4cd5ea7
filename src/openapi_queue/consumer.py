"""
Token-rotating consumer for the Open API request queue.

On every tick the consumer drains the queue in passes. Each pass walks all
available credential slots round-robin, dequeues up to
``request_count_per_second`` items per slot and dispatches each item as its
own task. Failed dispatches are requeued at retry priority until their retry
budget runs out.
"""

import asyncio
import inspect
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol, Set

from openapi_queue.config import QueueSettings
from openapi_queue.queue.models import QueueItem
from openapi_queue.queue.request_queue import RequestQueue
from openapi_queue.scheduling.ticker import Ticker

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    async def get_credential_slots(self) -> List[Any]:
        ...


class CallFunction(Protocol):
    async def __call__(
        self,
        endpoint: str,
        credential: Any,
        parameters: Dict[str, Any],
        request_kind: str,
    ) -> Dict[str, Any]:
        ...


class RequestConsumer:
    """
    Admission-control loop in front of the rate-limited brokerage API.

    State:
    - ``is_consuming``: a consume cycle is running; further ticks return
      immediately until it finishes
    - ``is_processing``: cooperative cancellation signal for the active pass,
      cleared by ``cancel()``
    - ``current_token_index``: next credential slot to serve, advanced by one
      after every slot batch
    """

    def __init__(
        self,
        queue: RequestQueue,
        token_provider: TokenProvider,
        call_function: CallFunction,
        settings: Optional[QueueSettings] = None,
        ticker: Optional[Ticker] = None,
    ) -> None:
        self._settings = settings or QueueSettings()
        self._queue = queue
        self._token_provider = token_provider
        self._call = call_function
        self._ticker = ticker
        self._inflight: Set[asyncio.Task] = set()

        self.request_count_per_second = self._settings.request_count_per_second
        self.is_processing = False
        self._consuming = False
        self.current_token_index = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._ticker is None:
            self._ticker = Ticker(self._settings.tick_seconds, self.consume, name="openapi-consumer")
        self._ticker.start()

    async def stop(self) -> None:
        if self._ticker is not None:
            await self._ticker.stop()
        self.cancel()
        await self.wait_idle()
        logger.info("OpenAPI consumer stopped (%d request(s) still queued)", len(self._queue))

    def cancel(self) -> None:
        """Ask an active pass to stop dispatching at the next slot boundary."""
        self.is_processing = False

    @property
    def is_consuming(self) -> bool:
        return self._consuming

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    async def wait_idle(self) -> None:
        """Wait until every dispatched request has finished (including its retry bookkeeping)."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ------------------------------------------------------------------
    # Consumption loop
    # ------------------------------------------------------------------

    async def consume(self) -> None:
        """
        Drain the queue in passes, one pass per tick interval.

        Returns immediately if another cycle is still running. ``cancel()``
        only ends the current pass; the cycle itself stays active, so a tick
        arriving during the inter-pass sleep cannot start a second loop.
        """
        if self._consuming:
            return

        self._consuming = True
        try:
            while not self._queue.is_empty():
                self.is_processing = True
                await self._process_queue_request()
                await asyncio.sleep(self._settings.tick_seconds)
        finally:
            self.is_processing = False
            self._consuming = False

    async def _process_queue_request(self) -> None:
        try:
            credentials = list(await self._token_provider.get_credential_slots())
        except Exception as e:
            logger.warning("OpenAPI token provider failed, skipping pass: %s", e)
            return

        token_count = len(credentials)
        if token_count == 0:
            logger.warning("No OpenAPI credentials available, %d request(s) waiting", len(self._queue))
            return

        # slot count may have shrunk since the last pass
        self.current_token_index %= token_count

        for _ in range(token_count):
            index = self.current_token_index
            dispatched = self._process_individual_token_request(index, credentials[index])
            self.current_token_index = (index + 1) % token_count
            logger.debug("Dispatched %d request(s) on slot %d", dispatched, index)
            if not self.is_processing:
                logger.info("OpenAPI consume pass cancelled, %d request(s) left in queue", len(self._queue))
                return

    def _process_individual_token_request(self, index: int, credential: Any) -> int:
        dispatched = 0
        for _ in range(self.request_count_per_second):
            item = self._queue.dequeue()
            if item is None:
                break
            task = asyncio.create_task(
                self.process_request(item, index, credential),
                name=f"openapi-request-{item.item_id}",
            )
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            dispatched += 1
        return dispatched

    # ------------------------------------------------------------------
    # Per-item dispatch
    # ------------------------------------------------------------------

    async def process_request(self, item: QueueItem, index: int, credential: Any) -> None:
        """
        Execute one queued request and settle its outcome.

        Never raises: a failed call goes through the retry policy, a
        successful one hands its data to the item's callback.

        Args:
            item: The dequeued request
            index: Credential slot the request was dispatched on
            credential: Credential for that slot, passed to the call function
        """
        try:
            data = await self._call(item.endpoint, credential, item.parameters, item.request_kind)
        except Exception as error:
            await self._handle_failure(item, error, index)
            return

        await self._complete(item, data)

    async def _complete(self, item: QueueItem, data: Dict[str, Any]) -> None:
        """Deliver response data to the item's callback, awaiting it if it is a coroutine."""
        try:
            result = item.on_complete(data)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # callback errors belong to the producer and are not retried
            logger.exception("OpenAPI callback failed - %s", item.describe())

    async def _handle_failure(self, item: QueueItem, error: Exception, index: int) -> None:
        """
        Apply the retry policy to a failed request.

        Args:
            item: The request whose call raised
            error: Exception raised by the call function
            index: Credential slot the request ran on (for logging only)

        Returns:
            None. The item is either requeued at retry priority with one
            fewer retry, or logged as exhausted and handed to ``on_failure``.
        """
        logger.warning("OpenAPI process request failed on slot %d: %s", index, error)

        if item.is_exhausted:
            logger.error(
                "OpenAPI queue error - %s, attempts: %d, last error: %s",
                item.describe(),
                item.attempt,
                error,
            )
            await self._notify_failure(item, error)
            return

        retries_left = item.retries_remaining - 1
        logger.warning("OpenAPI queue warning - %s, retries left: %d", item.describe(), retries_left)
        retry = replace(item, retries_remaining=retries_left, attempt=item.attempt + 1)
        self._queue.enqueue(retry, self._settings.retry_priority)

    async def _notify_failure(self, item: QueueItem, error: Exception) -> None:
        if item.on_failure is None:
            return
        try:
            result = item.on_failure(item, error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("OpenAPI failure hook raised - %s", item.describe())
