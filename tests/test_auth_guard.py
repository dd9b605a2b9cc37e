"""The guard must answer before the wrapped route body ever runs."""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from hetu.auth import AuthGuard, require_user, require_user_csrf
from hetu.errors import register_error_handlers
from tests.factories import JWT_SECRET, auth_headers, make_token


@pytest.fixture()
def guarded(monkeypatch):
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    calls = {"read": 0, "write": 0}
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/read")
    def read(identity=Depends(require_user)):
        calls["read"] += 1
        return {"sub": identity["sub"]}

    @app.post("/write")
    def write(identity=Depends(require_user_csrf)):
        calls["write"] += 1
        return {"sub": identity["sub"], "ok": True}

    client = TestClient(app, base_url="https://testserver")
    return client, calls


def _with_csrf_cookie(client: TestClient, value: str = "abc123") -> str:
    client.cookies.set("csrf-token", value)
    return value


def test_missing_csrf_header_is_forbidden_and_handler_not_called(guarded):
    client, calls = guarded
    _with_csrf_cookie(client)
    response = client.post("/write", headers=auth_headers(make_token()))
    assert response.status_code == 403
    assert response.json()["message"] == "Invalid CSRF token"
    assert calls["write"] == 0


def test_mismatched_csrf_header_is_forbidden(guarded):
    client, calls = guarded
    _with_csrf_cookie(client, "abc123")
    response = client.post("/write", headers=auth_headers(make_token(), csrf="abc124"))
    assert response.status_code == 403
    assert calls["write"] == 0


@pytest.mark.parametrize("csrf_valid", [True, False])
def test_missing_session_is_unauthorized_regardless_of_csrf(guarded, csrf_valid):
    client, calls = guarded
    token = _with_csrf_cookie(client)
    headers = auth_headers(csrf=token if csrf_valid else None)
    response = client.post("/write", headers=headers)
    assert response.status_code == 401
    assert calls["write"] == 0


@pytest.mark.parametrize("csrf_valid", [True, False])
def test_expired_session_is_unauthorized_regardless_of_csrf(guarded, csrf_valid):
    client, calls = guarded
    token = _with_csrf_cookie(client)
    expired = make_token(expires_in=-60)
    response = client.post("/write", headers=auth_headers(expired, csrf=token if csrf_valid else None))
    assert response.status_code == 401
    assert calls["write"] == 0


def test_valid_session_and_csrf_invokes_handler(guarded):
    client, calls = guarded
    token = _with_csrf_cookie(client)
    response = client.post("/write", headers=auth_headers(make_token(sub="u-42"), csrf=token))
    assert response.status_code == 200
    assert response.json() == {"sub": "u-42", "ok": True}
    assert calls["write"] == 1


def test_read_guard_does_not_require_csrf(guarded):
    client, calls = guarded
    response = client.get("/read", headers=auth_headers(make_token(sub="reader")))
    assert response.status_code == 200
    assert response.json() == {"sub": "reader"}
    assert calls["read"] == 1


def test_malformed_authorization_header_is_unauthorized(guarded):
    client, calls = guarded
    response = client.get("/read", headers={"Authorization": "Token abc"})
    assert response.status_code == 401
    assert calls["read"] == 0


def test_guard_flags():
    assert AuthGuard().require_csrf is False
    assert require_user_csrf.require_csrf is True
