"""An HTTP server that hands out the conference server's certificate."""

from __future__ import annotations

import logging
import os
import socketserver
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler

from ..ports import get_random_port
from .network import _join_host_port, default_host

log = logging.getLogger(__name__)

CERT_SERVER_PORT = 8181
READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 10.0
SHUTDOWN_TIMEOUT = 15.0


class CertificateError(Exception):
    """Raised when there is no certificate to serve."""


class _Server(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True


def _read_bytes(path: str) -> bytes:
    with open(os.path.normpath(path), "rb") as cert_file:
        return cert_file.read()


def file_exists(filename: str) -> bool:
    """Return whether anything exists at *filename*."""
    try:
        os.stat(filename)
    except (OSError, ValueError):
        return False
    return True


@dataclass
class CertificateServer:
    """Serves a certificate on every request to host:port."""

    host: str
    port: int
    cert: bytes
    read_timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT
    running: bool = False
    _server: _Server | None = field(default=None, init=False, repr=False)
    _stop_requested: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def address(self) -> str:
        return _join_host_port(self.host, self.port)

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        cert = self.cert
        read_timeout = self.read_timeout
        write_timeout = self.write_timeout

        class Handler(BaseHTTPRequestHandler):
            timeout = read_timeout

            def _respond(self) -> None:
                log.debug("serving certificate content")
                self.connection.settimeout(write_timeout)
                self.send_response(HTTPStatus.OK)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(cert)))
                self.end_headers()
                if self.command != "HEAD":
                    self.wfile.write(cert)

            do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = _respond
            do_HEAD = do_OPTIONS = _respond

            def log_message(self, format: str, *args: object) -> None:  # noqa: A002
                log.debug("certificate server: " + format, *args)

        return Handler

    def start(self, on_fails: Callable[[Exception], None] | None = None) -> None:
        """Start serving in the background; *on_fails* receives any serving error."""
        if self.running:
            log.error("Certificate HTTP server is already running")
            return
        log.debug("Starting Mumble certificate HTTP server at %s", self.address)
        with self._lock:
            self._stop_requested = False
        self.running = True
        threading.Thread(
            target=self._serve, args=(on_fails,), name="certificate-server", daemon=True
        ).start()

    def _serve(self, on_fails: Callable[[Exception], None] | None) -> None:
        try:
            server = _Server((self.host, self.port), self._handler_class())
        except OSError as exc:
            self.running = False
            if on_fails is not None:
                on_fails(exc)
            return

        with self._lock:
            if self._stop_requested:
                server.server_close()
                return
            self._server = server

        try:
            server.serve_forever()
        except Exception as exc:  # noqa: BLE001 - reported to the caller's handler
            if on_fails is not None:
                on_fails(exc)
        finally:
            server.server_close()
            with self._lock:
                if self._server is server:
                    self._server = None
            self.running = False

    def stop(self) -> None:
        """Stop serving; does nothing when the server is not running."""
        if not self.running:
            log.debug("stop(): http server not running at %s", self.address)
            return

        with self._lock:
            self._stop_requested = True
            server = self._server

        if server is not None:
            stopper = threading.Thread(target=server.shutdown, daemon=True)
            stopper.start()
            stopper.join(SHUTDOWN_TIMEOUT)
            if stopper.is_alive():
                log.warning("Forcibly shutdown HTTP server while stopping")
            server.server_close()

        self.running = False
        log.info("HTTP server stopped")


def new_certificate_server(
    directory: str, read_file: Callable[[str], bytes] = _read_bytes
) -> CertificateServer:
    """Return a server for the cert.pem in *directory*, on a random free port."""
    cert_file = os.path.join(directory, "cert.pem")
    if not file_exists(cert_file):
        raise CertificateError("the certificate file do not exists")

    cert = read_file(os.path.normpath(cert_file))

    server = CertificateServer(host=default_host(), port=get_random_port(), cert=cert)
    log.debug(
        "Creating Mumble certificate HTTP server at %s for %s", server.address, directory
    )
    return server