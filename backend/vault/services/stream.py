# vault/services/stream.py

import asyncio
import logging
from typing import AsyncIterator, Optional

from vault.core.config import (
    STREAM_KEEPALIVE_SECONDS,
    STREAM_RETRY_MS,
    SUBSCRIBER_QUEUE_SIZE,
)
from vault.services.subscriber_registry import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


async def event_stream(
    request,
    registry: SubscriberRegistry,
    keepalive: float = STREAM_KEEPALIVE_SECONDS,
    max_pending: int = SUBSCRIBER_QUEUE_SIZE,
    retry_ms: int = STREAM_RETRY_MS,
    peer: Optional[str] = None,
) -> AsyncIterator[str]:
    """
    Body of one event-stream response.

    Registers a fresh subscriber when iteration starts and always unregisters
    it on the way out: client disconnect, cancellation of the response task,
    or the broadcaster closing the subscriber after a failed delivery.
    Nothing is replayed; reconnecting clients re-fetch the message list.
    """
    subscriber = Subscriber(asyncio.get_running_loop(), max_pending=max_pending, peer=peer)
    registry.register(subscriber)
    logger.info(f"Stream opened for {subscriber.peer}. Total subscribers: {len(registry)}")

    try:
        yield f"retry: {retry_ms}\n\n"

        while True:
            try:
                frame = await asyncio.wait_for(subscriber.next_frame(), timeout=keepalive)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield KEEPALIVE_FRAME
                continue

            if frame is None:
                break
            yield frame
    finally:
        registry.unregister(subscriber)
        subscriber.close()
        logger.info(f"Stream closed for {subscriber.peer}. Total subscribers: {len(registry)}")
