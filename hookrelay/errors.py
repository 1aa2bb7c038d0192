"""Error taxonomy for the relay.

Startup errors (fatal, raised before any traffic is served):
- ConfigError, ScriptLoadError, BrokerConnectError, QueueDeclareError

Per-request errors (recovered into an HTTP status by the admission path):
- BodyTooLarge, MimeParseError, BodyNotUtf8, ScriptFault, ChannelClosed

Publisher errors (fatal to the publisher task only):
- BrokerPublishError
"""

from __future__ import annotations

__all__ = [
    "AdmissionError",
    "BodyNotUtf8",
    "BodyTooLarge",
    "BrokerConnectError",
    "BrokerPublishError",
    "ChannelClosed",
    "ConfigError",
    "MimeParseError",
    "QueueDeclareError",
    "RelayError",
    "ScriptFault",
    "ScriptLoadError",
]


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(RelayError):
    """Script config file missing, unparsable, or not a flat string mapping."""


class ScriptLoadError(RelayError):
    """Routing module could not be loaded or has malformed exports."""


class BrokerConnectError(RelayError):
    """Broker unreachable at startup."""


class QueueDeclareError(RelayError):
    """A queue from the manifest could not be declared on the broker."""

    def __init__(self, queue_name: str, reason: str) -> None:
        super().__init__(f"failed to declare queue '{queue_name}': {reason}")
        self.queue_name = queue_name


class AdmissionError(RelayError):
    """Request rejected before the routing handler is consulted."""

    status_code: int = 400


class BodyTooLarge(AdmissionError):
    """Declared or observed body size exceeds the ceiling."""

    status_code = 413

    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(f"body of {size} bytes exceeds max {max_size} bytes")
        self.size = size
        self.max_size = max_size


class MimeParseError(AdmissionError):
    """Content-Type header is not a valid media type."""

    status_code = 400

    def __init__(self, value: str) -> None:
        super().__init__(f"invalid content type: {value!r}")
        self.value = value


class BodyNotUtf8(RelayError, ValueError):
    """Handler read the body of a request whose bytes are not UTF-8."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"body is not utf8: {reason}")


class ScriptFault(RelayError):
    """Routing handler misbehaved (timeout, unexpected return value)."""


class ChannelClosed(RelayError):
    """Delivery channel has no consumer any more."""

    def __init__(self) -> None:
        super().__init__("delivery channel closed")


class BrokerPublishError(RelayError):
    """Broker failed to accept or confirm a publish."""

    def __init__(self, queue_name: str, reason: str) -> None:
        super().__init__(f"failed to publish to queue '{queue_name}': {reason}")
        self.queue_name = queue_name
