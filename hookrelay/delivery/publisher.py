"""Redis Streams publisher — declares queues, then relays payloads in order.

Each named queue is a Redis stream with a consumer group (``consumer_group``)
created at startup via XGROUP CREATE ... MKSTREAM. Re-declaring an existing
group (BUSYGROUP) is a no-op.

Messages are added with XADD and the returned entry ID is the broker's
acknowledgment. Only one publish is outstanding at any time: the next
payload is taken from the channel after the previous XADD has returned.

A broker error ends the publisher for the rest of the process. It is not
retried. The channel is closed on exit so request handlers answer 503.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import redis
from redis import asyncio as aioredis

from hookrelay.delivery.channel import DeliveryChannel
from hookrelay.errors import BrokerConnectError, BrokerPublishError, QueueDeclareError
from hookrelay.models import DeliveryPayload

logger = logging.getLogger(__name__)

DEFAULT_CONSUMER_GROUP = "hookrelay"


async def connect(redis_url: str) -> aioredis.Redis:
    """Open a broker connection and verify it with PING.

    Raises:
        BrokerConnectError: broker unreachable or URL invalid
    """
    logger.info("Connecting to broker at %s", redis_url)
    try:
        client = aioredis.from_url(redis_url, decode_responses=False)
        await client.ping()
    except (redis.RedisError, ValueError, OSError) as exc:
        raise BrokerConnectError(f"unable to connect to {redis_url}: {exc}") from exc
    logger.info("Broker connection established")
    return client


class Publisher:
    """Sole owner of the broker connection."""

    def __init__(
        self,
        client: aioredis.Redis,
        channel: DeliveryChannel,
        consumer_group: str = DEFAULT_CONSUMER_GROUP,
    ) -> None:
        self._client = client
        self._channel = channel
        self._group = consumer_group
        self.delivered = 0
        self.failure: BrokerPublishError | None = None

    async def declare(self, manifest: Sequence[str]) -> None:
        """Create every queue in manifest order (idempotent).

        Raises:
            QueueDeclareError: any declaration failure other than an existing group
        """
        for queue_name in manifest:
            try:
                await self._client.xgroup_create(queue_name, self._group, id="0", mkstream=True)
                logger.info("Created queue '%s'", queue_name)
            except redis.ResponseError as exc:
                if "BUSYGROUP" in str(exc):
                    logger.info("Queue '%s' already exists", queue_name)
                    continue
                raise QueueDeclareError(queue_name, str(exc)) from exc
            except redis.RedisError as exc:
                raise QueueDeclareError(queue_name, str(exc)) from exc

    async def publish(self, payload: DeliveryPayload) -> bytes | str:
        """Publish one payload and wait for the broker's entry ID.

        Raises:
            BrokerPublishError: broker rejected the message or the connection failed
        """
        fields = {
            "message_id": payload.request_id,
            "content_type": payload.mime_type,
            "body": payload.body,
        }
        try:
            entry_id = await self._client.xadd(payload.queue_name, fields)
        except (redis.RedisError, OSError) as exc:
            raise BrokerPublishError(payload.queue_name, str(exc)) from exc
        if not entry_id:
            raise BrokerPublishError(payload.queue_name, "no entry id returned")
        return entry_id

    async def run(self) -> None:
        """Relay payloads until the channel is drained or the broker fails."""
        try:
            while True:
                payload = await self._channel.receive()
                if payload is None:
                    break
                try:
                    await self.publish(payload)
                except BrokerPublishError as exc:
                    self.failure = exc
                    logger.error(
                        "Publisher stopped: %s (request %s)",
                        exc.message, payload.request_id, exc_info=True,
                    )
                    break
                self.delivered += 1
                logger.info(
                    "Delivered message %s to queue '%s'", payload.request_id, payload.queue_name,
                )
        finally:
            self._channel.close()
            await self.close()

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (redis.RedisError, OSError):
            logger.warning("Error closing broker connection", exc_info=True)
