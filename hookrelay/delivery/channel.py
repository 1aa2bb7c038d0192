"""Single-slot delivery channel between request handlers and the publisher.

Many producers, one consumer, capacity 1. ``send`` waits until the
previous item has been taken, which throttles accepted traffic to the
broker's publish-and-confirm latency. Once closed, pending and future
sends fail with ChannelClosed instead of waiting.
"""

from __future__ import annotations

import asyncio
import logging

from hookrelay.errors import ChannelClosed
from hookrelay.models import DeliveryPayload

logger = logging.getLogger(__name__)


class DeliveryChannel:
    """Bounded many-to-one conduit for DeliveryPayload items."""

    __slots__ = ("_closed", "_queue")

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DeliveryPayload] = asyncio.Queue(maxsize=1)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def pending(self) -> int:
        """Number of items waiting for the consumer (0 or 1)."""
        return self._queue.qsize()

    async def send(self, payload: DeliveryPayload) -> None:
        """Hand one payload to the consumer.

        Raises:
            ChannelClosed: channel closed before or while waiting for the slot
        """
        if self._closed.is_set():
            raise ChannelClosed()

        put = asyncio.ensure_future(self._queue.put(payload))
        closing = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({put, closing}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closing.cancel()
            if not put.done():
                put.cancel()

        if put.done() and not put.cancelled():
            put.result()
            return
        raise ChannelClosed()

    async def receive(self) -> DeliveryPayload | None:
        """Take the next payload; None once the channel is closed and drained."""
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed.is_set():
                return None

            get = asyncio.ensure_future(self._queue.get())
            closing = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({get, closing}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closing.cancel()
                if not get.done():
                    get.cancel()

            if get.done() and not get.cancelled():
                return get.result()

    def close(self) -> None:
        """Close the channel. Idempotent."""
        if not self._closed.is_set():
            self._closed.set()
            logger.info("Delivery channel closed")
