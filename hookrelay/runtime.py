"""Relay runtime — startup ordering and shutdown of the delivery pipeline.

Startup (any failure aborts before traffic is accepted):
1. Load the script config
2. Load the script pool and compute the queue manifest
3. Connect to the broker
4. Declare every queue in the manifest
5. Start the publisher task

Shutdown closes the delivery channel, lets the publisher finish its
in-progress publish and drain, then releases the script pool.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from redis import asyncio as aioredis

from hookrelay.config import Settings, load_script_config
from hookrelay.delivery.channel import DeliveryChannel
from hookrelay.delivery.publisher import Publisher, connect
from hookrelay.scripting.pool import ScriptPool

logger = logging.getLogger(__name__)


class Relay:
    """Owns the script pool, the delivery channel and the publisher task."""

    def __init__(
        self,
        settings: Settings,
        client: aioredis.Redis | None = None,
        script_config: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.channel = DeliveryChannel()
        self.pool: ScriptPool | None = None
        self.publisher: Publisher | None = None
        self._client = client
        self._script_config = script_config
        self._publisher_task: asyncio.Task[None] | None = None

    @property
    def manifest(self) -> tuple[str, ...]:
        if self.pool is None:
            return ()
        return self.pool.manifest

    @property
    def running(self) -> bool:
        return self._publisher_task is not None and not self._publisher_task.done()

    def load_scripts(self) -> ScriptPool:
        """Load config and routing module. Raises ConfigError / ScriptLoadError."""
        config = self._script_config
        if config is None:
            config = load_script_config(self.settings.config)
        self.pool = ScriptPool.load(
            self.settings.sandbox,
            config,
            module_name=self.settings.module,
            size=self.settings.pool_size,
            timeout=self.settings.decide_timeout,
        )
        return self.pool

    async def start(self) -> None:
        if self.pool is None:
            self.load_scripts()

        try:
            client = self._client
            if client is None:
                client = await connect(self.settings.redis_url)

            publisher = Publisher(
                client, self.channel, consumer_group=self.settings.consumer_group
            )
            try:
                await publisher.declare(self.manifest)
            except Exception:
                await publisher.close()
                raise
        except Exception:
            self.pool.close()
            raise

        self.publisher = publisher
        self._publisher_task = asyncio.create_task(publisher.run(), name="hookrelay-publisher")
        logger.info("Relay started (%d queues declared)", len(self.manifest))

    async def stop(self) -> None:
        self.channel.close()
        if self._publisher_task is not None:
            await self._publisher_task
            self._publisher_task = None
        if self.pool is not None:
            self.pool.close()
        logger.info("Relay stopped")
