"""Shared fixtures for the hookrelay test suite."""

from __future__ import annotations

import sys
import textwrap
import uuid
from collections.abc import Callable
from pathlib import Path
from types import MappingProxyType
from unittest.mock import AsyncMock

import pytest

from hookrelay.config import Settings


@pytest.fixture()
def repo_root() -> Path:
    """Return the repository root directory."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture()
def script_config() -> MappingProxyType:
    return MappingProxyType({"environment": "test", "default_queue": "events"})


@pytest.fixture()
def make_sandbox(tmp_path: Path) -> Callable[..., tuple[Path, str]]:
    """Factory writing a routing module into a fresh sandbox.

    Returns (sandbox_dir, module_name). Module names are unique per call so
    tests never see each other's modules through sys.modules.
    """
    created: list[str] = []

    def _make(source: str, name: str | None = None) -> tuple[Path, str]:
        module_name = name or f"route_{uuid.uuid4().hex[:8]}"
        sandbox = tmp_path / f"sandbox_{module_name}"
        sandbox.mkdir()
        (sandbox / f"{module_name}.py").write_text(textwrap.dedent(source))
        created.append(module_name)
        return sandbox, module_name

    yield _make

    for module_name in created:
        sys.modules.pop(module_name, None)


@pytest.fixture()
def fake_redis() -> AsyncMock:
    """AsyncMock standing in for redis.asyncio.Redis.

    xadd returns increasing stream entry IDs; xgroup_create succeeds.
    """
    client = AsyncMock()
    counter = iter(range(1, 1_000_000))

    def _xadd(name, fields, *args, **kwargs):
        return f"{next(counter)}-0".encode()

    client.ping.return_value = True
    client.xgroup_create.return_value = True
    client.xadd.side_effect = _xadd
    return client


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    def _make(sandbox: Path, module_name: str, **overrides) -> Settings:
        return Settings(sandbox=sandbox, module=module_name, **overrides)

    return _make

