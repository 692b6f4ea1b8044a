import pytest

from wahay.tor.authentication import (
    authenticate_any,
    authenticate_cookie,
    authenticate_none,
    authenticate_password,
)


class _Refused(Exception):
    pass


class _FakeController:
    def __init__(self, none_ok=False, cookie_ok=False, password_ok=False):
        self.none_ok = none_ok
        self.cookie_ok = cookie_ok
        self.password_ok = password_ok
        self.calls = []
        self.passwords = []

    def authenticate_none(self):
        self.calls.append("none")
        if not self.none_ok:
            raise _Refused("none")

    def authenticate_cookie(self):
        self.calls.append("cookie")
        if not self.cookie_ok:
            raise _Refused("cookie")

    def authenticate_password(self, password):
        self.calls.append("password")
        self.passwords.append(password)
        if not self.password_ok:
            raise _Refused("password")

    def add_onion(self, ports):
        return "service"

    def get_version(self):
        return "0.4.2.1"

    def delete_onion(self, service_id):
        self.calls.append(("delete", service_id))


def test_authenticate_none_calls_the_controller():
    ctrl = _FakeController(none_ok=True)
    authenticate_none(ctrl)
    assert ctrl.calls == ["none"]


def test_authenticate_cookie_propagates_refusal():
    ctrl = _FakeController()
    with pytest.raises(_Refused):
        authenticate_cookie(ctrl)
    assert ctrl.calls == ["cookie"]


def test_authenticate_password_passes_the_password_through():
    ctrl = _FakeController(password_ok=True)
    authenticate_password("secret")(ctrl)
    assert ctrl.passwords == ["secret"]


def test_authenticate_any_stops_at_the_first_success():
    ctrl = _FakeController(cookie_ok=True, password_ok=True)
    method = authenticate_any(
        authenticate_none, authenticate_cookie, authenticate_password("secret")
    )
    method(ctrl)
    assert ctrl.calls == ["none", "cookie"]
    assert ctrl.passwords == []


def test_authenticate_any_raises_the_last_error_when_all_fail():
    ctrl = _FakeController()
    method = authenticate_any(
        authenticate_none, authenticate_password("secret"), authenticate_cookie
    )
    with pytest.raises(_Refused) as info:
        method(ctrl)
    assert str(info.value) == "cookie"
    assert ctrl.calls == ["none", "password", "cookie"]


def test_authenticate_any_without_methods_succeeds_without_touching_the_controller():
    ctrl = _FakeController()
    assert authenticate_any()(ctrl) is None
    assert ctrl.calls == []