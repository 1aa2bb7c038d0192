"""Read-only request view handed to routing handlers."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from hookrelay.errors import BodyNotUtf8
from hookrelay.models import RequestRecord


class RequestView:
    """Narrow, attribute-access view of a RequestRecord.

    Exposes request_id, url, method, origin, headers, mimetype and body.
    ``body`` is decoded on access, so a handler that never touches it is
    unaffected by non-UTF-8 payloads.
    """

    __slots__ = ("_record", "_headers")

    def __init__(self, record: RequestRecord) -> None:
        object.__setattr__(self, "_record", record)
        lowered: dict[str, str] = {}
        for key, value in record.headers.items():
            lowered[key.lower()] = value
        object.__setattr__(self, "_headers", MappingProxyType(lowered))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"request view is read-only (cannot set '{name}')")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"request view is read-only (cannot delete '{name}')")

    @property
    def request_id(self) -> str:
        return self._record.request_id

    @property
    def url(self) -> str:
        return self._record.url

    @property
    def method(self) -> str:
        return self._record.method

    @property
    def origin(self) -> str:
        return self._record.origin

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def mimetype(self) -> str | None:
        return self._record.mime_type

    @property
    def body(self) -> str:
        try:
            return self._record.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BodyNotUtf8(str(exc)) from exc

    def __repr__(self) -> str:
        return (
            f"RequestView(request_id={self.request_id!r}, method={self.method!r}, "
            f"url={self.url!r}, origin={self.origin!r})"
        )
