import pytest
from starlette.requests import Request

from marketplace.errors import Unauthenticated
from marketplace.utils import security


def _request(headers=None, cookie=None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookie:
        raw.append((b"cookie", f"{security.COOKIE_NAME}={cookie}".encode()))
    return Request({"type": "http", "method": "POST", "path": "/api/v1/checkout", "headers": raw})


def test_bearer_token_has_priority_over_cookie():
    req = _request({"Authorization": "Bearer header-token"}, cookie="cookie-token")
    assert security.bearer_token(req) == "header-token"


def test_cookie_fallback():
    assert security.bearer_token(_request(cookie="cookie-token")) == "cookie-token"


def test_missing_token_is_unauthenticated():
    with pytest.raises(Unauthenticated):
        security.get_current_user(_request())


def test_token_resolves_to_user(monkeypatch):
    monkeypatch.setattr(
        "marketplace.auth.service._repo_get_user_from_token",
        lambda token: {"id": "u1", "email": "u1@example.com", "user_metadata": {"full_name": "U"}},
    )
    user = security.get_current_user(_request({"Authorization": "Bearer t"}))
    assert user == {"id": "u1", "email": "u1@example.com", "metadata": {"full_name": "U"}, "token": "t"}


def test_rejected_token_is_unauthenticated(monkeypatch):
    def _boom(token):
        raise RuntimeError("invalid JWT")

    monkeypatch.setattr("marketplace.auth.service._repo_get_user_from_token", _boom)
    with pytest.raises(Unauthenticated):
        security.get_current_user(_request({"Authorization": "Bearer expired"}))


def test_token_without_user_is_unauthenticated(monkeypatch):
    monkeypatch.setattr("marketplace.auth.service._repo_get_user_from_token", lambda token: {})
    with pytest.raises(Unauthenticated):
        security.get_current_user(_request({"Authorization": "Bearer t"}))
