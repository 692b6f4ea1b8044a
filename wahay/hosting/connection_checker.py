"""A small TCP service that confirms to clients that a meeting is reachable."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import BinaryIO

from ..ports import get_random_port

log = logging.getLogger(__name__)

CHECK_CONNECTION_PORT = 12321
_ACCEPT_POLL = 0.5


def wait_for_client_message(stream: BinaryIO) -> str:
    """Read one newline-terminated message from *stream* and describe it."""
    try:
        line = stream.readline()
    except OSError as exc:
        raise ConnectionError(f"error reading from connection: {exc}") from exc
    if not line.endswith(b"\n"):
        raise ConnectionError("error reading from connection: EOF")
    text = line.decode("utf-8", errors="replace")
    return f"Message received from client: {text}"


def send_connection_confirmation(stream: BinaryIO) -> str:
    """Write the confirmation line to *stream* and return a status text."""
    try:
        stream.write(b"OK\n")
        stream.flush()
    except OSError as exc:
        raise ConnectionError(f"Error writing response to connection: {exc}") from exc
    return "OK signal send to client."


@dataclass
class CheckService:
    """Answers every line a client sends with a confirmation."""

    port: int
    listener: socket.socket
    _closed: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def start(self) -> None:
        """Accept clients in the background."""
        self.listener.settimeout(_ACCEPT_POLL)
        threading.Thread(target=self._accept_loop, name="check-service", daemon=True).start()

    def _accept_loop(self) -> None:
        while not self._closed.is_set():
            try:
                conn, _ = self.listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    break
                log.error("Error accepting connection: %s", exc)
                continue
            threading.Thread(target=self.handle_client, args=(conn,), daemon=True).start()

    def stop(self) -> None:
        """Stop accepting clients and close the listener."""
        self._closed.set()
        self.listener.close()

    def handle_client(self, conn: socket.socket) -> None:
        """Confirm each message from the client until it disconnects."""
        with conn, conn.makefile("rwb") as stream:
            while True:
                try:
                    message = wait_for_client_message(stream)
                except ConnectionError as exc:
                    log.debug("%s", exc)
                    break
                log.debug("%s", message)

                try:
                    status = send_connection_confirmation(stream)
                except ConnectionError as exc:
                    log.debug("%s", exc)
                    continue
                log.debug("%s", status)


def new_check_connection_service() -> CheckService:
    """Return a service listening on a random free port."""
    port = get_random_port()
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("", port))
        listener.listen()
    except OSError as exc:
        listener.close()
        log.error("Failed to start server on port %s: %s", port, exc)
        raise
    log.info("Check connection server listening on port: %s", port)
    return CheckService(port=port, listener=listener)