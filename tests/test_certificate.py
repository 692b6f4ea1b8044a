import http.client
import os
import re
import socket
import threading
import time

import pytest

from wahay.hosting.certificate import (
    CertificateError,
    CertificateServer,
    file_exists,
    new_certificate_server,
)
from wahay.ports import get_random_port


def _get(port, deadline=5.0):
    end = time.monotonic() + deadline
    while True:
        try:
            conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
            try:
                conn.request("GET", "/anything")
                response = conn.getresponse()
                return response.status, response.read()
            finally:
                conn.close()
        except ConnectionRefusedError:
            if time.monotonic() > end:
                raise
            time.sleep(0.05)


def test_new_certificate_server_generates_server_successfully(tmp_path):
    (tmp_path / "cert.pem").write_bytes(b"")

    server = new_certificate_server(str(tmp_path))

    assert re.fullmatch(r"(127\.0\.0\.1|0\.0\.0\.0):\d+", server.address)
    assert server.address.endswith(f":{server.port}")
    assert server.cert == b""
    assert server.read_timeout == 5
    assert server.write_timeout == 10
    assert server.running is False


def test_new_certificate_server_fails_when_no_certificate_file_exists(tmp_path):
    with pytest.raises(CertificateError) as info:
        new_certificate_server(str(tmp_path))
    assert str(info.value) == "the certificate file do not exists"


def test_new_certificate_server_fails_when_directory_does_not_exist():
    with pytest.raises(CertificateError) as info:
        new_certificate_server("fake/dir")
    assert str(info.value) == "the certificate file do not exists"


def test_new_certificate_server_fails_when_certificate_cannot_be_read(tmp_path):
    (tmp_path / "cert.pem").write_bytes(b"")
    expected = os.path.join(str(tmp_path), "cert.pem")
    calls = []

    def failing_read(path):
        calls.append(path)
        raise FileNotFoundError(f"open {path}: no such file or directory")

    with pytest.raises(FileNotFoundError) as info:
        new_certificate_server(str(tmp_path), failing_read)
    assert str(info.value) == f"open {expected}: no such file or directory"
    assert calls == [expected]


def test_new_certificate_server_keeps_certificate_content(tmp_path):
    (tmp_path / "cert.pem").write_bytes(b"certificate data")
    server = new_certificate_server(str(tmp_path))
    assert server.cert == b"certificate data"


def test_stop_returns_when_server_is_not_running():
    server = CertificateServer(host="127.0.0.1", port=1, cert=b"")
    assert server.stop() is None
    assert server.running is False


def test_stop_works_when_marked_running_without_a_listener():
    server = CertificateServer(host="127.0.0.1", port=1, cert=b"", running=True)
    server.stop()
    assert server.running is False


def test_start_keeps_server_running_when_already_started():
    failures = []
    server = CertificateServer(host="127.0.0.1", port=1, cert=b"", running=True)
    server.start(failures.append)
    time.sleep(0.1)
    assert server.running is True
    assert failures == []


def test_server_serves_certificate_and_stops():
    cert = b"-----BEGIN CERTIFICATE-----\nplaceholder\n-----END CERTIFICATE-----\n"
    port = get_random_port()
    server = CertificateServer(host="127.0.0.1", port=port, cert=cert)
    server.start()
    try:
        status, body = _get(port)
        assert status == 200
        assert body == cert
        assert server.running is True
    finally:
        server.stop()
    assert server.running is False
    with pytest.raises(OSError):
        socket.create_connection(("127.0.0.1", port), timeout=1).close()


def test_start_reports_failure_when_port_is_taken():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        failed = threading.Event()
        errors = []

        def on_fails(exc):
            errors.append(exc)
            failed.set()

        server = CertificateServer(host="127.0.0.1", port=port, cert=b"")
        server.start(on_fails)
        assert failed.wait(5)
    assert isinstance(errors[0], OSError)
    assert server.running is False


def test_file_exists_returns_true_when_file_exists(tmp_path):
    path = tmp_path / "test_file"
    path.write_text("x")
    assert file_exists(str(path)) is True


def test_file_exists_returns_false_when_file_does_not_exist(tmp_path):
    assert file_exists(str(tmp_path / "test_file")) is False