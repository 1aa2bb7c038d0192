"""Routing decisions returned by the scripting host."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Accept:
    """Forward the request to ``queue_name``."""

    queue_name: str


@dataclass(frozen=True)
class Reject:
    """Handler declined the request."""


@dataclass(frozen=True)
class Error:
    """Handler faulted while deciding."""

    detail: str


RoutingDecision = Union[Accept, Reject, Error]
