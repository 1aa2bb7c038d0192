"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hookrelay.admission.handlers import AdmissionService, register_webhook_routes
from hookrelay.runtime import Relay

logger = logging.getLogger(__name__)


def create_app(relay: Relay) -> FastAPI:
    """Build the webhook app around a Relay.

    The relay's script pool is loaded here so the webhook route can bind to
    it; broker connection and queue declaration happen in the lifespan, which
    completes before the server accepts connections.
    """
    pool = relay.pool if relay.pool is not None else relay.load_scripts()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await relay.start()
        try:
            yield
        finally:
            await relay.stop()

    app = FastAPI(
        title="hookrelay",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.relay = relay

    service = AdmissionService(
        pool,
        relay.channel,
        path=relay.settings.webhook_path,
        methods=relay.settings.webhook_methods,
    )
    register_webhook_routes(app, service)
    return app
