"""Webhook HTTP handlers — admission path from request to delivery channel.

Each request:
1. Gets a fresh request id (echoed in x-request-id on every response)
2. Is matched against the configured webhook route (404 otherwise)
3. Is snapshotted into a RequestRecord (bounded body read)
4. Is routed by the scripting pool (exclusive access per environment)
5. Is handed to the delivery channel when accepted

Response contract:
- 200 OK     accepted and enqueued
- 400 FAIL   rejected by the handler, or malformed content type
- 404        unmatched method/path, handler not consulted
- 413 FAIL   body over the ceiling, handler not consulted
- 500 ERROR  handler fault
- 503 FAIL   delivery channel closed (publisher gone)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

from hookrelay.admission.request import build_record
from hookrelay.delivery.channel import DeliveryChannel
from hookrelay.errors import AdmissionError, ChannelClosed
from hookrelay.models import DeliveryPayload, new_request_id
from hookrelay.scripting.decision import Accept, Reject
from hookrelay.scripting.pool import ScriptPool

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


def _reply(request_id: str, status_code: int, token: str = "") -> Response:
    return PlainTextResponse(
        token,
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        media_type="text/plain; charset=utf-8",
    )


class AdmissionService:
    """Normalizes webhook requests and routes them through the script pool."""

    def __init__(
        self,
        pool: ScriptPool,
        channel: DeliveryChannel,
        path: str = "/",
        methods: Iterable[str] = ("POST",),
    ) -> None:
        self._pool = pool
        self._channel = channel
        self._path = path
        self._methods = frozenset(m.upper() for m in methods)

    def matches(self, method: str, path: str) -> bool:
        return method.upper() in self._methods and path == self._path

    async def handle(self, request: Request) -> Response:
        request_id = new_request_id()

        if not self.matches(request.method, request.url.path):
            logger.debug("%s %s unmatched (%s)", request.method, request.url.path, request_id)
            return _reply(request_id, 404)

        try:
            record = await build_record(request, request_id)
        except AdmissionError as exc:
            logger.info("Request %s refused: %s", request_id, exc.message)
            return _reply(request_id, exc.status_code, "FAIL")

        logger.debug(
            "%s %s '%s' (%s) - %s",
            record.method, record.url, record.mime_type or "(absent)",
            record.request_id, record.origin,
        )

        decision = await self._pool.decide(record)

        if isinstance(decision, Accept):
            logger.debug("Routing webhook message to queue '%s'", decision.queue_name)
            try:
                await self._channel.send(DeliveryPayload.from_record(record, decision.queue_name))
            except ChannelClosed:
                logger.error("Delivery channel closed, dropping request %s", request_id)
                return _reply(request_id, 503, "FAIL")
            return _reply(request_id, 200, "OK")

        if isinstance(decision, Reject):
            logger.debug("Request %s rejected by handler", request_id)
            return _reply(request_id, 400, "FAIL")

        logger.error("Request handler failed for %s: %s", request_id, decision.detail)
        return _reply(request_id, 500, "ERROR")


class _WebhookEndpoint:
    """ASGI endpoint dispatching every HTTP method to the admission service."""

    def __init__(self, service: AdmissionService) -> None:
        self._service = service

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await self._service.handle(Request(scope, receive))
        await response(scope, receive, send)


def register_webhook_routes(app: FastAPI, service: AdmissionService) -> None:
    """Register a catch-all route so every response carries a request id.

    The endpoint is a plain ASGI app, so the route has no method list and
    never answers 405: unmatched methods get the service's 404, and any
    configured method (including non-standard ones) reaches the handler.
    """
    app.add_route("/{path:path}", _WebhookEndpoint(service), include_in_schema=False)
