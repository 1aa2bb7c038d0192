"""Records passed between the admission path, the scripting host and the publisher."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field

from starlette.datastructures import Headers

# 128 MiB
MAX_BODY_SIZE = 1 << 27

DEFAULT_MIME_TYPE = "application/octet-stream"


def new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class RequestRecord:
    """Immutable snapshot of one inbound webhook request.

    Attributes:
        request_id: Generated UUID4, echoed in the x-request-id response header
        method: Upper-cased HTTP method
        url: Request path
        origin: Remote address as "host:port"
        headers: Case-insensitive header mapping
        mime_type: Content type, or None for bodiless methods without one
        body: Raw body bytes (at most MAX_BODY_SIZE)
    """

    request_id: str
    method: str
    url: str
    origin: str
    headers: Mapping[str, str] = field(default_factory=Headers)
    mime_type: str | None = None
    body: bytes = b""

    def __post_init__(self) -> None:
        if len(self.body) > MAX_BODY_SIZE:
            raise ValueError(f"body exceeds {MAX_BODY_SIZE} bytes")


@dataclass(frozen=True)
class DeliveryPayload:
    """Minimal data needed to publish one message to the broker."""

    request_id: str
    queue_name: str
    mime_type: str
    body: bytes

    @classmethod
    def from_record(cls, record: RequestRecord, queue_name: str) -> DeliveryPayload:
        return cls(
            request_id=record.request_id,
            queue_name=queue_name,
            mime_type=record.mime_type or DEFAULT_MIME_TYPE,
            body=record.body,
        )
