"""Turn a Starlette request into a RequestRecord.

Body reading is incremental and bounded by MAX_BODY_SIZE: a declared
Content-Length above the ceiling fails before reading, and the stream is
abandoned as soon as the observed size crosses it.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator

from starlette.datastructures import Headers
from starlette.requests import Request

from hookrelay.errors import BodyTooLarge, MimeParseError
from hookrelay.models import DEFAULT_MIME_TYPE, MAX_BODY_SIZE, RequestRecord

_BODILESS_METHODS = frozenset({"GET", "HEAD"})

# RFC 7231 media-type: type "/" subtype *( OWS ";" OWS parameter )
_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_QUOTED = r'"(?:[^"\\]|\\.)*"'
_MEDIA_TYPE_RE = re.compile(
    rf"^\s*{_TOKEN}/{_TOKEN}"
    rf"(?:\s*;\s*{_TOKEN}=(?:{_TOKEN}|{_QUOTED}))*\s*;?\s*$"
)


def parse_mime_type(value: str) -> str:
    """Validate a Content-Type value and return it trimmed.

    Raises:
        MimeParseError: value is not a media type
    """
    if not _MEDIA_TYPE_RE.match(value):
        raise MimeParseError(value)
    return value.strip()


def resolve_mime_type(method: str, headers: Headers) -> str | None:
    """Explicit content type, else octet-stream for methods that carry a body."""
    raw = headers.get("content-type")
    if raw is not None:
        return parse_mime_type(raw)
    if method not in _BODILESS_METHODS:
        return DEFAULT_MIME_TYPE
    return None


async def collect_body(
    chunks: AsyncIterator[bytes],
    declared_length: int | None = None,
    max_size: int = MAX_BODY_SIZE,
) -> bytes:
    """Read a streamed body, failing fast past ``max_size``.

    Raises:
        BodyTooLarge: declared or observed size exceeds ``max_size``
    """
    if declared_length is not None and declared_length > max_size:
        raise BodyTooLarge(declared_length, max_size)

    buf = bytearray()
    async for chunk in chunks:
        if not chunk:
            continue
        if len(buf) + len(chunk) > max_size:
            raise BodyTooLarge(len(buf) + len(chunk), max_size)
        buf += chunk
    return bytes(buf)


def _declared_length(headers: Headers) -> int | None:
    raw = headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _origin(request: Request) -> str:
    client = request.client
    if client is None:
        return "unknown"
    host, port = client.host, client.port
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


async def build_record(request: Request, request_id: str) -> RequestRecord:
    """Snapshot an inbound request.

    Raises:
        MimeParseError: malformed Content-Type
        BodyTooLarge: body over the ceiling
    """
    method = request.method.upper()
    headers = Headers(raw=list(request.headers.raw))
    mime_type = resolve_mime_type(method, headers)
    body = await collect_body(
        request.stream(), _declared_length(headers), max_size=MAX_BODY_SIZE
    )

    return RequestRecord(
        request_id=request_id,
        method=method,
        url=request.url.path,
        origin=_origin(request),
        headers=headers,
        mime_type=mime_type,
        body=body,
    )
