"""Output shim installed as ``print`` inside routing modules.

Every call becomes one INFO line on the ``hookrelay.script`` logger.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("hookrelay.script")

_STRUCTURED = (dict, list, tuple, set, frozenset)


def render_value(value: Any) -> str:
    """Render one value as a short, human-readable token."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, BaseException):
        return f"(error: {value!r})"
    if isinstance(value, _STRUCTURED):
        return f"({type(value).__name__}: {id(value):#x})"
    if callable(value):
        name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None)
        return f"(function: {name or type(value).__name__})"
    return f"({type(value).__name__})"


def render_line(*args: Any, sep: str | None = " ") -> str:
    line = (" " if sep is None else sep).join(render_value(arg) for arg in args)
    return line.replace("\r", "\\r").replace("\n", "\\n")


def make_print(log: logging.Logger = logger) -> Callable[..., None]:
    """Build a ``print`` replacement that logs instead of writing to stdout."""

    def _print(*args: Any, sep: str | None = " ", end: str | None = None,
               file: Any = None, flush: bool = False) -> None:
        log.info("%s", render_line(*args, sep=sep))

    return _print
