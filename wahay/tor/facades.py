"""Access to the operating system, the Tor control port and the Tor SOCKS proxy."""

from __future__ import annotations

import glob
import http.client
import ipaddress
import json
import os
import re
import shutil
import socket
import ssl
import subprocess
import sys
import threading
import urllib.parse
from collections.abc import Mapping, Sequence

_TIMEOUT = 30.0
_CHECK_URL = "https://check.torproject.org/api/ip"
_COOKIE_FILE = re.compile(r'COOKIEFILE="((?:[^"\\]|\\.)*)"')

_SOCKS_ERRORS = {
    1: "general SOCKS server failure",
    2: "connection not allowed by ruleset",
    3: "network unreachable",
    4: "host unreachable",
    5: "connection refused",
    6: "TTL expired",
    7: "command not supported",
    8: "address type not supported",
}


class ControlError(Exception):
    """Raised when the Tor control port cannot be reached or refuses a command."""


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            raise ConnectionError("connection closed by the proxy")
        data.extend(chunk)
    return bytes(data)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class ControlConnection:
    """A connection to a Tor control port given as ``host:port``."""

    def __init__(self, address: str) -> None:
        host, _, port = address.rpartition(":")
        try:
            self._sock = socket.create_connection(
                (host.strip("[]"), int(port)), timeout=_TIMEOUT
            )
        except (OSError, ValueError) as exc:
            raise ControlError(f"cannot connect to {address}: {exc}") from exc
        self._reader = self._sock.makefile("rb")
        self._lock = threading.Lock()

    def __enter__(self) -> ControlConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection."""
        self._reader.close()
        self._sock.close()

    def _read_line(self) -> str:
        try:
            raw = self._reader.readline()
        except OSError as exc:
            raise ControlError(f"error reading from control port: {exc}") from exc
        if not raw:
            raise ControlError("control connection closed")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def _read_reply(self) -> tuple[str, list[str]]:
        lines = []
        while True:
            line = self._read_line()
            if len(line) < 4:
                raise ControlError(f"malformed control reply: {line!r}")
            code, separator, text = line[:3], line[3], line[4:]
            if separator == "+":
                data = []
                while (data_line := self._read_line()) != ".":
                    data.append(data_line[1:] if data_line.startswith("..") else data_line)
                text = "\n".join([text, *data])
            lines.append(text)
            if separator == " ":
                return code, lines

    def _command(self, line: str) -> list[str]:
        with self._lock:
            try:
                self._sock.sendall(f"{line}\r\n".encode())
            except OSError as exc:
                raise ControlError(f"error writing to control port: {exc}") from exc
            code, lines = self._read_reply()
        if code != "250":
            raise ControlError(f"{code} {' '.join(lines)}")
        return lines

    def authenticate_none(self) -> None:
        """Authenticate without credentials."""
        self._command("AUTHENTICATE")

    def authenticate_cookie(self) -> None:
        """Authenticate with the cookie file that Tor announces."""
        info = "\n".join(self._command("PROTOCOLINFO 1"))
        match = _COOKIE_FILE.search(info)
        if match is None:
            raise ControlError("Tor announced no cookie file")
        path = re.sub(r"\\(.)", r"\1", match.group(1))
        try:
            with open(path, "rb") as cookie_file:
                cookie = cookie_file.read()
        except OSError as exc:
            raise ControlError(f"cannot read cookie file: {exc}") from exc
        self._command(f"AUTHENTICATE {cookie.hex()}")

    def authenticate_password(self, password: str) -> None:
        """Authenticate with a control password."""
        self._command(f"AUTHENTICATE {_quote(password)}")

    def get_version(self) -> str:
        """Return the version that the running Tor reports."""
        for line in self._command("GETINFO version"):
            key, _, value = line.partition("=")
            if key == "version":
                return value
        raise ControlError("Tor did not report its version")

    def add_onion(self, ports: Mapping[int, str]) -> str:
        """Create an onion service forwarding each virtual port to a target."""
        targets = " ".join(f"Port={virtual},{target}" for virtual, target in ports.items())
        for line in self._command(f"ADD_ONION NEW:ED25519-V3 {targets}"):
            key, _, value = line.partition("=")
            if key == "ServiceID":
                return value
        raise ControlError("Tor did not report a service id")

    def delete_onion(self, service_id: str) -> None:
        """Remove an onion service."""
        self._command(f"DEL_ONION {service_id}")


def socks5_connect(
    proxy_host: str, proxy_port: int, target_host: str, target_port: int
) -> socket.socket:
    """Open a connection to a target through a SOCKS5 proxy without authentication."""
    sock = socket.create_connection((proxy_host, proxy_port), timeout=_TIMEOUT)
    try:
        sock.sendall(b"\x05\x01\x00")
        if _recv_exact(sock, 2) != b"\x05\x00":
            raise ConnectionError("SOCKS5 proxy refused the authentication method")

        try:
            address = ipaddress.ip_address(target_host)
        except ValueError:
            name = target_host.encode("idna")
            if len(name) > 255:
                raise ValueError(f"host name too long: {target_host}") from None
            destination = b"\x03" + bytes([len(name)]) + name
        else:
            kind = b"\x01" if address.version == 4 else b"\x04"
            destination = kind + address.packed
        sock.sendall(b"\x05\x01\x00" + destination + target_port.to_bytes(2, "big"))

        version, reply, _, address_type = _recv_exact(sock, 4)
        if version != 5:
            raise ConnectionError("invalid SOCKS5 reply")
        if reply != 0:
            reason = _SOCKS_ERRORS.get(reply, f"code {reply}")
            raise ConnectionError(f"SOCKS5 connect failed: {reason}")
        if address_type == 1:
            _recv_exact(sock, 4)
        elif address_type == 4:
            _recv_exact(sock, 16)
        elif address_type == 3:
            _recv_exact(sock, _recv_exact(sock, 1)[0])
        else:
            raise ConnectionError("invalid SOCKS5 address type")
        _recv_exact(sock, 2)
    except BaseException:
        sock.close()
        raise
    return sock


class Platform:
    """The operating system and network services the Tor code relies on."""

    def getenv(self, key: str) -> str:
        return os.environ.get(key, "")

    def getcwd(self) -> str:
        return os.getcwd()

    def argv(self) -> list[str]:
        return list(sys.argv)

    def environ(self) -> dict[str, str]:
        return dict(os.environ)

    def glob(self, pattern: str) -> list[str]:
        """Return the paths matching *pattern* in lexical order."""
        return sorted(glob.glob(pattern))

    def which(self, name: str) -> str | None:
        """Return the full path of an executable on PATH, or None."""
        return shutil.which(name)

    def exec_output(
        self, binary: str, args: Sequence[str], env: Mapping[str, str] | None
    ) -> bytes:
        """Run a program to completion and return its standard output.

        With *env* None the program inherits the current environment.
        """
        completed = subprocess.run(
            [binary, *args],
            env=None if env is None else dict(env),
            capture_output=True,
            check=True,
        )
        return completed.stdout

    def start(
        self, args: Sequence[str], env: Mapping[str, str] | None
    ) -> subprocess.Popen:
        """Start a program in the background."""
        return subprocess.Popen(list(args), env=None if env is None else dict(env))

    def wait(self, process: subprocess.Popen) -> int:
        """Wait for a started program and return its exit status."""
        return process.wait()

    def is_directory(self, path: str) -> bool:
        return os.path.isdir(path)

    def new_controller(self, address: str) -> ControlConnection:
        return ControlConnection(address)

    def _get(self, host: str, port: int, url: str) -> tuple[int, bytes]:
        parts = urllib.parse.urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"unsupported URL: {url}")
        secure = parts.scheme == "https"
        default_port = 443 if secure else 80
        target_port = parts.port or default_port

        sock = socks5_connect(host, port, parts.hostname, target_port)
        try:
            if secure:
                sock = ssl.create_default_context().wrap_socket(
                    sock, server_hostname=parts.hostname
                )
            path = parts.path or "/"
            if parts.query:
                path = f"{path}?{parts.query}"
            host_header = parts.hostname
            if target_port != default_port:
                host_header = f"{host_header}:{target_port}"
            request = (
                f"GET {path} HTTP/1.1\r\n"
                f"Host: {host_header}\r\n"
                "Accept: */*\r\n"
                "Connection: close\r\n\r\n"
            )
            sock.sendall(request.encode("ascii"))
            response = http.client.HTTPResponse(sock)
            response.begin()
            return response.status, response.read()
        finally:
            sock.close()

    def check_connection_over_tor(self, host: str, port: int) -> bool:
        """Return whether the SOCKS proxy at host:port reaches the internet through Tor."""
        try:
            _, body = self._get(host, port, _CHECK_URL)
            result = json.loads(body)
        except (OSError, ValueError, http.client.HTTPException):
            return False
        return isinstance(result, dict) and result.get("IsTor") is True

    def http_request(self, host: str, port: int, url: str) -> str:
        """Fetch *url* through the SOCKS proxy at host:port and return the body."""
        status, body = self._get(host, port, url)
        if status != http.client.OK:
            raise ConnectionError("invalid request")
        return body.decode("utf-8", errors="replace")