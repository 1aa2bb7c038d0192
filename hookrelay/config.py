"""Relay configuration.

Two layers:
- Settings: process settings from HOOKRELAY_* environment variables,
  an optional .env file, and command-line overrides (see hookrelay.cli).
- Script config: a flat string-to-string JSON object handed read-only to
  the routing module as CONFIG. The file may contain // and /* */ comments
  and trailing commas.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from pydantic_settings import BaseSettings

from hookrelay.errors import ConfigError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven settings for the relay process."""

    listen: str = "127.0.0.1:3000"
    redis_url: str = "redis://127.0.0.1:6379/0"
    sandbox: Path = Path("./scripts")
    config: Path = Path("./config.jsonc")
    module: str = "mod"

    webhook_path: str = "/"
    webhook_methods: list[str] = ["POST"]

    # Seconds; None leaves handler calls unbounded
    decide_timeout: float | None = None
    pool_size: int = 1

    consumer_group: str = "hookrelay"
    log_level: str = "INFO"

    model_config = {"env_prefix": "HOOKRELAY_", "env_file": ".env", "extra": "ignore"}

    @property
    def listen_host(self) -> str:
        host, _, _ = self.listen.rpartition(":")
        return host.strip("[]") or "127.0.0.1"

    @property
    def listen_port(self) -> int:
        _, _, port = self.listen.rpartition(":")
        try:
            return int(port)
        except ValueError as exc:
            raise ConfigError(f"invalid listen address: {self.listen!r}") from exc


def _strip_jsonc(text: str) -> str:
    """Remove comments and trailing commas outside of string literals."""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            # Copy the string literal verbatim, honouring escapes
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            out.append(text[i : j + 1])
            i = j + 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ConfigError("unterminated block comment")
            i = end + 2
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            # A comment may sit between the comma and the closing bracket
            rest = _strip_jsonc(text[j:]) if text.startswith(("//", "/*"), j) else text[j:]
            if rest.lstrip()[:1] in ("}", "]"):
                i += 1
            else:
                out.append(ch)
                i += 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def parse_script_config(text: str) -> Mapping[str, str]:
    """Parse JSONC text into a read-only string-to-string mapping."""
    try:
        parsed = json.loads(_strip_jsonc(text))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config is not valid JSON: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError(f"config must be a JSON object, got {type(parsed).__name__}")

    for key, value in parsed.items():
        if not isinstance(value, str):
            raise ConfigError(
                f"config value for '{key}' must be a string, got {type(value).__name__}"
            )

    return MappingProxyType(dict(parsed))


def load_script_config(path: Path | str) -> Mapping[str, str]:
    """Load the routing script config file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"unable to read config {path}: {exc}") from exc

    if not text.strip():
        raise ConfigError(f"config {path} is empty")

    config = parse_script_config(text)
    logger.info("Loaded script config from %s (%d keys)", path, len(config))
    return config
