"""Local TCP port helpers."""

from __future__ import annotations

import socket


def is_port_available(port: int) -> bool:
    """Return whether a TCP listener could be bound to *port*."""
    if not 0 < port < 65536:
        return False
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("", port))
    except OSError:
        return False
    return True


def get_random_port() -> int:
    """Return a TCP port that the operating system reports as free."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("", 0))
        return sock.getsockname()[1]