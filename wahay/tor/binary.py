"""Locating, validating and starting a Tor executable."""

from __future__ import annotations

import functools
import logging
import os
import re
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .facades import Platform
from .versions import MIN_SUPPORTED_VERSION, VersionError, compare_versions

log = logging.getLogger(__name__)

LIB_DIRS = (
    "/lib",
    "/lib64",
    "/lib/x86_64-linux-gnu",
    "/lib64/x86_64-linux-gnu",
)

_BUNDLED_LIBS = ("libcrypto*.so.*", "libevent*.so.*", "libssl*.so.*")
_VERSION = re.compile(r"(\d+\.)(\d+\.)(\d+\.)(\d)", re.ASCII)


class TorBinaryError(Exception):
    """Base class of the errors raised while looking for a Tor executable."""

    message = "Tor binary error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidCommandError(TorBinaryError):
    """The command failed or printed nothing."""

    message = "invalid command"


class InvalidTorPathError(TorBinaryError):
    """A path to look for Tor in is empty."""

    message = "invalid Tor path"


class TorVersionNotCompatibleError(TorBinaryError):
    """A Tor executable was found but its version is too old."""

    message = "incompatible Tor version"


class InvalidConfiguredTorBinaryError(TorBinaryError):
    """The Tor path configured by the user does not point to a usable Tor."""

    message = "invalid Tor binary user configured path"


class TorBinaryNotFoundError(TorBinaryError):
    """No usable Tor executable was found anywhere."""

    message = "no Tor binary found"


def _resolve(platform: Any) -> Any:
    return Platform() if platform is None else platform


@dataclass
class RunningTor:
    """A Tor process started from a binary."""

    args: list[str]
    process: Any
    platform: Any
    finished: bool = False
    exit_status: int | None = None

    def stop(self) -> None:
        """Kill the process if it is still running."""
        if not self.finished and self.process.poll() is None:
            self.process.kill()

    def wait(self) -> int:
        """Wait for the process to end and return its exit status."""
        status = self.platform.wait(self.process)
        self.finished = True
        self.exit_status = status
        return status


@dataclass
class TorBinary:
    """A Tor executable and the environment it needs."""

    path: str
    env: dict[str, str] = field(default_factory=dict)
    is_valid: bool = False
    is_bundle: bool = False

    def start(self, config_file: str, platform: Any = None) -> RunningTor:
        """Start Tor with the given configuration file."""
        platform = _resolve(platform)
        args = [self.path, "-f", config_file]
        env = None
        if self.is_bundle and self.env:
            log.debug("Tor is bundled with environment variables: %s", self.env)
            env = {**platform.environ(), **self.env}
        process = platform.start(args, env)
        return RunningTor(args=args, process=process, platform=platform)


def find_tor_binary(tor_path: str, data_dir: str, platform: Any = None) -> TorBinary:
    """Return the first valid Tor executable, searching the usual places in order.

    A configured path that does not lead to a Tor raises at once rather than
    falling back to the other places.
    """
    platform = _resolve(platform)
    finders: Sequence[Callable[[], TorBinary | None]] = (
        functools.partial(find_in_config_path, tor_path, platform),
        functools.partial(find_in_data_dir, data_dir, platform),
        functools.partial(find_in_working_dir, platform),
        functools.partial(find_in_wahay_dir, platform),
        functools.partial(find_in_system, platform),
    )
    for finder in finders:
        binary = finder()
        if binary is not None and binary.is_valid:
            return binary
    raise TorBinaryNotFoundError()


def find_in_config_path(tor_path: str, platform: Any = None) -> TorBinary | None:
    """Return the Tor at the configured path, or None when no path is configured."""
    platform = _resolve(platform)
    log.debug("find_in_config_path(%s)", tor_path)
    if not tor_path:
        return None
    try:
        binary = configured_tor_binary(tor_path, platform)
    except TorBinaryError as exc:
        raise InvalidConfiguredTorBinaryError() from exc
    if binary is None:
        raise InvalidConfiguredTorBinaryError()
    return binary


def find_in_data_dir(data_dir: str, platform: Any = None) -> TorBinary | None:
    """Return a valid Tor below the system data directory, or None."""
    platform = _resolve(platform)
    for subdir in ("tor", "wahay/tor", "bin/wahay/tor"):
        path = os.path.join(data_dir, subdir)
        log.debug("find_in_data_dir(%s)", path)
        try:
            binary = configured_tor_binary(path, platform)
        except TorBinaryError:
            continue
        if binary is not None and binary.is_valid:
            return binary
    return None


def find_in_working_dir(platform: Any = None) -> TorBinary | None:
    """Return a valid Tor below the current working directory, or None."""
    platform = _resolve(platform)
    log.debug("find_in_working_dir()")
    try:
        cwd = platform.getcwd()
    except OSError:
        return None
    for subdir in ("tor", "bin/tor"):
        try:
            binary = configured_tor_binary(os.path.join(cwd, subdir), platform)
        except TorBinaryError:
            continue
        if binary is not None and binary.is_valid:
            return binary
    return None


def find_in_wahay_dir(platform: Any = None) -> TorBinary | None:
    """Return the Tor next to the running program, or None."""
    platform = _resolve(platform)
    argv = platform.argv()
    if not argv:
        return None
    path = os.path.join(os.path.abspath(os.path.dirname(argv[0])), "tor")
    log.debug("find_in_wahay_dir(%s)", path)
    try:
        return configured_tor_binary(path, platform)
    except TorBinaryError:
        return None


def find_in_system(platform: Any = None) -> TorBinary | None:
    """Return the Tor found on PATH, or None."""
    platform = _resolve(platform)
    path = platform.which("tor")
    if not path:
        return None
    log.debug("find_in_system(%s)", path)
    try:
        return configured_tor_binary(path, platform)
    except TorBinaryError:
        return None


def configured_tor_binary(path: str, platform: Any = None) -> TorBinary | None:
    """Return the Tor at *path*, which may be an executable or a directory.

    For a directory the first valid candidate is returned; when none is valid
    the last candidate tried is returned, or None if there was none.
    """
    platform = _resolve(platform)
    if not path:
        raise InvalidTorPathError()

    if not platform.is_directory(path):
        binary = binary_for_path(path, platform)
        if not binary.is_valid:
            raise TorVersionNotCompatibleError()
        return binary

    binary = None
    for candidate in list_possible_tor_binary(path, platform):
        binary = binary_for_path(candidate, platform)
        if binary.is_valid:
            return binary
    return binary


def binary_for_path(path: str, platform: Any = None) -> TorBinary:
    """Describe the executable at *path*, checking whether it is bundled and usable."""
    platform = _resolve(platform)
    binary = TorBinary(path=path)
    if is_bundled(path, platform):
        binary.is_bundle = True
        binary.env["LD_LIBRARY_PATH"] = os.path.dirname(path)
    binary.is_valid = is_tor_version_compatible(binary, platform)
    return binary


def is_bundled(path: str, platform: Any = None) -> bool:
    """Return whether the libraries Tor needs lie next to the executable."""
    platform = _resolve(platform)
    directory = os.path.dirname(path)
    found = sum(
        1 for library in _BUNDLED_LIBS if platform.glob(os.path.join(directory, library))
    )
    return found >= len(_BUNDLED_LIBS)


def is_tor_version_compatible(binary: TorBinary, platform: Any = None) -> bool:
    """Return whether the executable reports a supported Tor version."""
    platform = _resolve(platform)
    env = dict(binary.env) if binary.is_bundle else None
    try:
        output = exec_tor_command(binary.path, ["--version"], env, platform)
    except InvalidCommandError:
        return False
    try:
        return compare_versions(extract_version_from(output), MIN_SUPPORTED_VERSION) >= 0
    except VersionError:
        return False


def exec_tor_command(
    binary: str,
    args: Sequence[str],
    env: Mapping[str, str] | None = None,
    platform: Any = None,
) -> bytes:
    """Run *binary* and return its output; fail if it fails or prints nothing."""
    platform = _resolve(platform)
    try:
        output = platform.exec_output(binary, args, env)
    except (OSError, subprocess.SubprocessError) as exc:
        raise InvalidCommandError() from exc
    if not output:
        raise InvalidCommandError()
    return output


def extract_version_from(text: bytes | str) -> str:
    """Return the first four-part version number in *text*, or an empty string."""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    match = _VERSION.search(text)
    return match.group(0) if match else ""


def list_possible_tor_binary(path: str, platform: Any = None) -> list[str]:
    """Return the Tor executables in a directory whose names show a supported version."""
    platform = _resolve(platform)
    path = os.path.normpath(path)
    result = []
    for match in platform.glob(os.path.join(path, "Tor*")):
        filename = os.path.basename(match)
        if filename == "tor":
            result.append(match)
            continue
        try:
            if compare_versions(extract_version_from(filename), MIN_SUPPORTED_VERSION) >= 0:
                result.append(match)
        except VersionError:
            pass
    return result