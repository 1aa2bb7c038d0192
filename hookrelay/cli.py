"""Command-line entry point.

Usage:
    hookrelay -l 0.0.0.0:3000 -u redis://127.0.0.1:6379/0 -s ./scripts -c ./config.jsonc
    python -m hookrelay --timeout 2.5 --pool-size 4

Flags override HOOKRELAY_* environment variables and .env values.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

import uvicorn
from pydantic import ValidationError

from hookrelay.app import create_app
from hookrelay.config import Settings
from hookrelay.errors import RelayError
from hookrelay.runtime import Relay

logger = logging.getLogger("hookrelay")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# argparse dest -> Settings field
_OVERRIDES = {
    "listen": "listen",
    "redis_url": "redis_url",
    "sandbox": "sandbox",
    "config": "config",
    "module": "module",
    "path": "webhook_path",
    "methods": "webhook_methods",
    "timeout": "decide_timeout",
    "pool_size": "pool_size",
    "log_level": "log_level",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hookrelay",
        description="Relay webhooks to Redis stream queues chosen by a routing script",
    )
    parser.add_argument("-l", "--listen", help="HTTP listen address (host:port)")
    parser.add_argument("-u", "--redis-url", help="Broker URL")
    parser.add_argument("-s", "--sandbox", help="Routing scripts directory")
    parser.add_argument("-c", "--config", help="Routing script config (JSON with comments)")
    parser.add_argument("--module", help="Routing module name (default: mod)")
    parser.add_argument("--path", help="Webhook path (default: /)")
    parser.add_argument("--methods", nargs="+", help="Webhook methods (default: POST)")
    parser.add_argument("--timeout", type=float, help="Routing handler timeout in seconds")
    parser.add_argument("--pool-size", type=int, help="Independent script environments")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    return parser


def load_settings(argv: Sequence[str] | None = None) -> Settings:
    args = build_parser().parse_args(argv)
    overrides = {
        field: getattr(args, dest)
        for dest, field in _OVERRIDES.items()
        if getattr(args, dest) is not None
    }
    return Settings(**overrides)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = load_settings(argv)
    except ValidationError as exc:
        configure_logging("INFO")
        logger.error("Invalid settings: %s", exc)
        return 1
    configure_logging(settings.log_level)

    try:
        app = create_app(Relay(settings))
        host, port = settings.listen_host, settings.listen_port
    except RelayError as exc:
        logger.error("Startup failed: %s", exc.message)
        return 1

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    # uvicorn handles SIGINT: stop accepting, finish in-flight responses, run lifespan shutdown
    server.run()
    if not server.started:
        logger.error("Startup failed, see errors above")
        return 1
    logger.info("bye")
    return 0


if __name__ == "__main__":
    sys.exit(main())
