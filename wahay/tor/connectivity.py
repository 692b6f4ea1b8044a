"""Checks of whether a Tor instance can be controlled and used."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .authentication import (
    AuthenticationMethod,
    Controller,
    authenticate_any,
    authenticate_cookie,
    authenticate_none,
    authenticate_password,
)
from .facades import ControlError, Platform
from .versions import MIN_SUPPORTED_VERSION, VersionError, compare_versions

log = logging.getLogger(__name__)

DEFAULT_CONTROL_HOST = "127.0.0.1"
DEFAULT_SOCKS_PORT = 9050
DEFAULT_CONTROL_PORT = 9051


class AuthType(str, Enum):
    """The ways of authenticating to a control port."""

    NONE = "none"
    COOKIE = "cookie"
    PASSWORD = "password"


class ConnectivityError(Exception):
    """Base class of the connectivity failures."""

    message = "Tor connectivity error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class PartialTorError(ConnectivityError):
    """A failure that only means this Tor cannot be controlled."""


class NoControlPortError(PartialTorError):
    message = "no Tor control port found"


class NoValidAuthError(PartialTorError):
    message = "no Tor control port valid authentication"


class TorTooOldError(PartialTorError):
    message = "the Tor control port is running a too old version of Tor"


class NoConnectionAllowedError(ConnectivityError):
    """Tor is controllable but cannot reach the internet."""

    message = "no connection over Tor allowed"


_FAILURES = (ControlError, OSError)
_AUTH_FAILURES = (ControlError, OSError, ConnectivityError)


def _join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _close(controller: Any) -> None:
    close = getattr(controller, "close", None)
    if close is not None:
        close()


@dataclass
class Connectivity:
    """Checks a Tor instance given by its SOCKS and control ports."""

    host: str
    route_port: int
    control_port: int
    password: str = ""
    platform: Any = field(default_factory=Platform)
    auth_type: AuthType | None = None

    @property
    def _address(self) -> str:
        return _join_host_port(self.host, self.control_port)

    def control_port_exists(self) -> bool:
        """Return whether something accepts connections on the control port."""
        try:
            controller = self.platform.new_controller(self._address)
        except _FAILURES:
            return False
        _close(controller)
        return True

    def _with_new_controller(self, method: AuthenticationMethod) -> AuthenticationMethod:
        def authenticate(_: Controller | None) -> None:
            controller = self.platform.new_controller(self._address)
            try:
                method(controller)
            finally:
                _close(controller)

        return authenticate

    def _setting_auth_type(
        self, auth_type: AuthType, method: AuthenticationMethod
    ) -> AuthenticationMethod:
        def authenticate(controller: Controller) -> None:
            method(controller)
            self.auth_type = auth_type

        return authenticate

    def check_control_auth(self) -> bool:
        """Find an authentication method the control port accepts and remember it."""
        attempt = authenticate_any(
            self._with_new_controller(self._setting_auth_type(AuthType.NONE, authenticate_none)),
            self._with_new_controller(
                self._setting_auth_type(AuthType.COOKIE, authenticate_cookie)
            ),
            self._with_new_controller(
                self._setting_auth_type(AuthType.PASSWORD, authenticate_password(self.password))
            ),
        )
        try:
            attempt(None)
        except _FAILURES:
            return False
        return True

    def try_authenticate(self, controller: Controller) -> None:
        """Authenticate with the method found by check_control_auth."""
        if self.auth_type == AuthType.NONE:
            authenticate_none(controller)
        elif self.auth_type == AuthType.PASSWORD:
            authenticate_password(self.password)(controller)
        elif self.auth_type == AuthType.COOKIE:
            authenticate_cookie(controller)
        else:
            raise ConnectivityError("no valid authentication type")

    def check_control_port_version(self) -> bool:
        """Return whether the Tor behind the control port is recent enough."""
        try:
            controller = self.platform.new_controller(self._address)
        except _FAILURES as exc:
            log.debug("check_control_port_version() - can't connect to control port: %s", exc)
            return False
        try:
            self.try_authenticate(controller)
            version = controller.get_version()
        except _AUTH_FAILURES as exc:
            log.debug("check_control_port_version() - can't authenticate or get version: %s", exc)
            return False
        finally:
            _close(controller)
        try:
            return compare_versions(version, MIN_SUPPORTED_VERSION) >= 0
        except VersionError as exc:
            log.debug("check_control_port_version() - can't compare versions: %s", exc)
            return False

    def check_connection_over_tor(self) -> bool:
        """Return whether the SOCKS port gives a connection through Tor."""
        return self.platform.check_connection_over_tor(self.host, self.route_port)

    def check(self) -> AuthType:
        """Run all checks and return the authentication method to use.

        Raises a PartialTorError when this Tor cannot be controlled and
        NoConnectionAllowedError when it cannot reach the internet.
        """
        if not self.control_port_exists():
            log.debug(" - no control port exists")
            raise NoControlPortError()
        if not self.check_control_auth():
            log.debug(" - no valid authentication for control port")
            raise NoValidAuthError()
        if not self.check_control_port_version():
            log.debug(" - no valid version of tor on control port")
            raise TorTooOldError()
        if not self.check_connection_over_tor():
            log.debug(" - no connection over tor to the internet possible")
            raise NoConnectionAllowedError()
        return self.auth_type


def new_custom_checker(
    host: str, route_port: int, control_port: int, platform: Any = None
) -> Connectivity:
    """Return a checker for a Tor on custom ports, without a control password."""
    return Connectivity(
        host=host,
        route_port=route_port,
        control_port=control_port,
        platform=Platform() if platform is None else platform,
    )


def new_default_checker(
    control_port: int = DEFAULT_CONTROL_PORT, password: str = "", platform: Any = None
) -> Connectivity:
    """Return a checker for the system Tor on the default host and SOCKS port."""
    return Connectivity(
        host=DEFAULT_CONTROL_HOST,
        route_port=DEFAULT_SOCKS_PORT,
        control_port=control_port,
        password=password,
        platform=Platform() if platform is None else platform,
    )