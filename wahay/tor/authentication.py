"""Authentication against a Tor control port."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Protocol


class Controller(Protocol):
    """What the package needs from a Tor control port connection.

    Every method raises an exception when Tor refuses the request.
    """

    def authenticate_password(self, password: str) -> None:
        """Authenticate with a control password."""

    def authenticate_cookie(self) -> None:
        """Authenticate with the control cookie file."""

    def authenticate_none(self) -> None:
        """Authenticate without credentials."""

    def add_onion(self, ports: Mapping[int, str]) -> str:
        """Create an onion service and return its service id."""

    def get_version(self) -> str:
        """Return the version of the running Tor."""

    def delete_onion(self, service_id: str) -> None:
        """Remove an onion service."""


AuthenticationMethod = Callable[[Controller], None]


def authenticate_none(tc: Controller) -> None:
    """Authenticate without credentials."""
    tc.authenticate_none()


def authenticate_cookie(tc: Controller) -> None:
    """Authenticate with the cookie file."""
    tc.authenticate_cookie()


def authenticate_password(password: str) -> AuthenticationMethod:
    """Return a method that authenticates with the given password."""

    def authenticate(tc: Controller) -> None:
        tc.authenticate_password(password)

    return authenticate


def authenticate_any(*args: AuthenticationMethod) -> AuthenticationMethod:
    """Return a method trying each of *args* in turn until one succeeds.

    If all of them fail, the error of the last one is raised.
    """

    def authenticate(tc: Controller) -> None:
        last_error: Exception | None = None
        for method in args:
            try:
                method(tc)
            except Exception as exc:  # noqa: BLE001 - any failure means "try the next"
                last_error = exc
            else:
                return
        if last_error is not None:
            raise last_error

    return authenticate