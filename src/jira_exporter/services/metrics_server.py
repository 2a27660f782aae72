"""HTTP server exposing Prometheus metrics and liveness/readiness probes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from prometheus_client import CollectorRegistry
from prometheus_client.exposition import choose_encoder

logger = logging.getLogger(__name__)


class MetricsRequestHandler(BaseHTTPRequestHandler):
    """Serve ``/metrics``, ``/liveness`` and ``/readiness``."""

    server: MetricsServer

    def do_GET(self) -> None:  # noqa: N802
        """Dispatch a GET request by path."""
        path = urlparse(self.path).path

        if path == "/metrics":
            encoder, content_type = choose_encoder(self.headers.get("Accept", ""))
            self._respond(200, encoder(self.server.registry), content_type)
        elif path == "/liveness":
            self._respond(200, b"ok\n")
        elif path == "/readiness":
            if self.server.readiness_check():
                self._respond(200, b"ok\n")
            else:
                self._respond(500, b"upstream unavailable\n")
        else:
            logger.debug("Ignoring request to %s", path)
            self._respond(404, b"not found\n")

    def _respond(self, status: int, body: bytes, content_type: str = "text/plain; charset=utf-8") -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Route access logs to the module logger instead of stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)


class MetricsServer(ThreadingHTTPServer):
    """A threaded HTTPServer bound to a registry and a readiness check."""

    def __init__(
        self,
        address: tuple[str, int],
        registry: CollectorRegistry,
        readiness_check: Callable[[], bool],
    ) -> None:
        super().__init__(address, MetricsRequestHandler)
        self.registry = registry
        self.readiness_check = readiness_check
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self.server_address[1]

    def serve_in_thread(self) -> threading.Thread:
        """Start :meth:`serve_forever` on a daemon thread and return it."""
        host, port = self.server_address[:2]
        logger.info("Serving metrics on %s:%d", host, port)
        self._thread = threading.Thread(target=self.serve_forever, name="metrics-server", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop accepting requests, then release the socket."""
        if self._thread is not None:
            self.shutdown()
            self._thread.join()
            self._thread = None
        self.server_close()
        logger.debug("Metrics server stopped")
