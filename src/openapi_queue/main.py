"""
Entry point wiring the request queue, credential registry, Open API client and
consumer together.
"""
import asyncio
import logging
from typing import Optional, Tuple

from openapi_queue.client import OpenApiClient
from openapi_queue.config import QueueSettings, load_settings
from openapi_queue.consumer import RequestConsumer
from openapi_queue.credentials import CredentialRegistry
from openapi_queue.queue import RequestQueue

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_consumer(
    settings: QueueSettings,
    registry: Optional[CredentialRegistry] = None,
) -> Tuple[RequestQueue, RequestConsumer, OpenApiClient]:
    """
    Create the queue and a consumer bound to it.

    :param settings: Loaded queue settings.
    :param registry: Token provider; built from ``settings.credentials`` if omitted.
    :return: (queue producers enqueue into, consumer, call function to close on shutdown)
    """
    queue = RequestQueue(settings)
    if registry is None:
        registry = CredentialRegistry.from_settings(settings)
    client = OpenApiClient(settings.base_url, timeout_s=settings.request_timeout_s)
    consumer = RequestConsumer(queue, registry, client, settings=settings)
    return queue, consumer, client


async def run(settings: QueueSettings) -> None:
    configure_logging(settings.log_level)
    queue, consumer, client = build_consumer(settings)

    if not settings.credentials:
        logger.warning("No Open API credentials configured; queued requests will wait")

    consumer.start()
    logger.info(
        "OpenAPI consumer running (tick=%ss, %d request(s)/slot/tick, %d credential(s))",
        settings.tick_seconds,
        settings.request_count_per_second,
        len(settings.credentials),
    )
    try:
        await asyncio.Event().wait()
    finally:
        await consumer.stop()
        dropped = queue.clear()
        if dropped:
            logger.warning("Dropped %d queued request(s) on shutdown", dropped)
        await client.aclose()


def main() -> None:
    settings = load_settings()
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
