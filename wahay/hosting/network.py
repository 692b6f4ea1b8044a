"""Network settings shared by the hosting services."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_PORT = 64738
"""The port a Mumble server listens on unless told otherwise."""

ALL_INTERFACES = "0.0.0.0"
LOCALHOST_INTERFACE = "127.0.0.1"
WHONIX_WORKSTATION_MARKER = "/usr/share/anon-ws-base-files/workstation"

_PORT = re.compile(r"[+-]?[0-9]+")


class InvalidPortError(ValueError):
    """Raised when a port given as text is not a number."""

    def __init__(self, message: str = "invalid port supplied") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class SuperUserData:
    """The credentials of the super user of a conference server."""

    username: str = ""
    password: str = ""


def default_host(stat: Callable[[str], Any] = os.stat) -> str:
    """Return the interface that local services should listen on.

    In a Whonix-like workstation services listen on all interfaces, anywhere
    else on localhost only. If it cannot be told which, localhost is used.
    """
    try:
        stat(WHONIX_WORKSTATION_MARKER)
    except (FileNotFoundError, NotADirectoryError):
        return LOCALHOST_INTERFACE
    except OSError as exc:
        log.error("default_host(): %s", exc)
        return LOCALHOST_INTERFACE
    return ALL_INTERFACES


def parse_port(port: str) -> int:
    """Return the port given as text, or the default port for an empty text."""
    if port == "":
        return DEFAULT_PORT
    if not _PORT.fullmatch(port):
        raise InvalidPortError()
    return int(port)


def _join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def service_url(onion_id: str, service_port: int) -> str:
    """Return the address clients use to reach a service, leaving out the default port."""
    if service_port != DEFAULT_PORT:
        return _join_host_port(onion_id, service_port)
    return onion_id