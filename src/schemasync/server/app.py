"""Metrics and health HTTP endpoint.

This module creates the FastAPI application exposing:
- GET /metrics: Prometheus text exposition of a SyncMetrics registry
- GET /health: Plain "OK" liveness probe

MetricsServer runs it with uvicorn on a daemon thread next to the sync
loop, so a stuck scrape never delays a cycle and vice versa.
"""

from __future__ import annotations

import logging
import threading
import time

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from schemasync import __version__
from schemasync.server.metrics import SyncMetrics

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"


def parse_address(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` or ``:port`` listen address.

    Raises:
        ValueError: If the port is missing or not a valid port number.
    """
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid listen address {addr!r}, expected host:port or :port")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in listen address {addr!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in listen address {addr!r}")
    return host.strip("[]") or DEFAULT_HOST, port


def create_app(metrics: SyncMetrics) -> FastAPI:
    """Create the exporter application for a metrics registry.

    Args:
        metrics: Metrics whose registry is served on /metrics.

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="db-schema-sync",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.metrics = metrics

    @application.get("/metrics")
    def metrics_endpoint() -> Response:
        return Response(
            content=generate_latest(metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    @application.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return "OK"

    return application


class MetricsServer:
    """Serves the exporter application from a background thread."""

    def __init__(self, addr: str, metrics: SyncMetrics) -> None:
        self.host, self.port = parse_address(addr)
        self.app = create_app(metrics)
        self.server: uvicorn.Server | None = None
        self.thread: threading.Thread | None = None

    def start(self, timeout: float = 5.0) -> None:
        """Start serving and wait until the socket is bound.

        Raises:
            RuntimeError: If the server does not come up within timeout.
        """
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self.server = uvicorn.Server(config)

        self.thread = threading.Thread(target=self.server.run, name="metrics-server", daemon=True)
        self.thread.start()

        deadline = time.monotonic() + timeout
        while not self.server.started:
            if not self.thread.is_alive():
                raise RuntimeError(f"Metrics server failed to start on {self.host}:{self.port}")
            if time.monotonic() > deadline:
                raise RuntimeError("Metrics server failed to start in time")
            time.sleep(0.05)

        logger.info("Metrics server listening on %s:%d", self.host, self.port)

    def stop(self, timeout: float = 5.0) -> None:
        """Ask the server to exit and wait for its thread."""
        if self.server:
            self.server.should_exit = True
        if self.thread:
            self.thread.join(timeout)
