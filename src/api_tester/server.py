"""FastAPI app mounted on the local webhook listener."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Request

from api_tester import __version__
from api_tester.config import get_listener_config
from api_tester.listener import ListenerBindError, bind_socket, handle_sigterm
from api_tester.models import HealthResponse, WebhookAck

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build a fresh app; each listener instance gets its own."""
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        nonlocal started_at
        started_at = time.monotonic()
        logger.debug("Listener app started")
        yield
        logger.debug("Listener app stopped")

    app = FastAPI(title="API Tester Listener", version=__version__, lifespan=lifespan)

    # -- Endpoints ------------------------------------------------------------

    @app.get("/health")
    async def health() -> HealthResponse:
        return HealthResponse(
            timestamp=datetime.now(timezone.utc).isoformat(),
            uptime_seconds=round(time.monotonic() - started_at, 2),
        )

    @app.post("/webhook")
    async def webhook(request: Request) -> WebhookAck:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPException(status_code=400, detail="Invalid JSON body") from e
        logger.info("Webhook received: %s", json.dumps(payload, indent=2))
        return WebhookAck()

    return app


# -- Entrypoint (`python -m api_tester.server` or `api-tester serve`) ---------


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def serve(host: str, port: int) -> None:
    """Run the listener in the foreground until interrupted.

    Raises ListenerBindError if the port cannot be acquired.
    """
    sock = bind_socket(host, port)
    signal.signal(signal.SIGTERM, handle_sigterm)
    server = uvicorn.Server(
        uvicorn.Config(create_app(), log_level="info", log_config=None)
    )
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()


def main() -> None:
    defaults = get_listener_config()
    parser = argparse.ArgumentParser(description="Run the webhook listener")
    parser.add_argument("--host", default=defaults.host)
    parser.add_argument("--port", type=int, default=defaults.port)
    args = parser.parse_args()

    _setup_logging()
    try:
        serve(args.host, args.port)
    except ListenerBindError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
