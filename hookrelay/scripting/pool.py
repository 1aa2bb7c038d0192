"""Fixed pool of independently loaded scripting hosts.

Members are selected round-robin and each member's lock is held for the
whole ``decide`` call, so a member never runs two handler calls at once.
With the default size of 1 every call in the process is serialized.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from hookrelay.errors import ScriptLoadError
from hookrelay.models import RequestRecord
from hookrelay.scripting.decision import RoutingDecision
from hookrelay.scripting.host import ScriptHost

logger = logging.getLogger(__name__)


class ScriptPool:
    """Round-robin dispatcher over ScriptHost members."""

    def __init__(self, hosts: Sequence[ScriptHost]) -> None:
        if not hosts:
            raise ValueError("script pool needs at least one host")
        self._hosts = tuple(hosts)
        self._order = itertools.cycle(range(len(self._hosts)))

    @classmethod
    def load(
        cls,
        sandbox_dir: Path | str,
        config: Mapping[str, str],
        module_name: str = "mod",
        size: int = 1,
        timeout: float | None = None,
    ) -> ScriptPool:
        if size < 1:
            raise ScriptLoadError(f"pool size must be at least 1, got {size}")

        hosts = [
            ScriptHost.load(sandbox_dir, config, module_name=module_name, timeout=timeout)
            for _ in range(size)
        ]
        manifest = hosts[0].manifest
        for host in hosts[1:]:
            if host.manifest != manifest:
                raise ScriptLoadError("routing module exported different queue names per load")

        if size > 1:
            logger.info("Script pool ready with %d environments", size)
        return cls(hosts)

    @property
    def manifest(self) -> tuple[str, ...]:
        return self._hosts[0].manifest

    @property
    def hosts(self) -> tuple[ScriptHost, ...]:
        return self._hosts

    def __len__(self) -> int:
        return len(self._hosts)

    async def decide(self, record: RequestRecord) -> RoutingDecision:
        host = self._hosts[next(self._order)]
        async with host.lock:
            return await host.decide(record)

    def close(self) -> None:
        for host in self._hosts:
            host.close()
