import time

from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient

from marketplace.app_setup.exceptions import register_exception_handlers
from marketplace.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/limitedA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_a():
        return {"ok": True}

    @app.get("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    client = TestClient(_make_app(times=2, seconds=60))
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    r3 = client.get("/limitedA")
    assert r3.status_code == 429
    assert r3.json()["error"]["kind"] == "TooManyRequests"


def test_rate_limit_is_per_path_and_caller(monkeypatch):
    client = TestClient(_make_app(times=2, seconds=60))
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    alice = {"Authorization": "Bearer alice-token"}
    bob = {"Authorization": "Bearer bob-token"}

    assert client.get("/limitedA", headers=alice).status_code == 200
    assert client.get("/limitedA", headers=alice).status_code == 200
    assert client.get("/limitedA", headers=alice).status_code == 429

    # autre chemin, autre appelant: compteurs indépendants
    assert client.get("/limitedB", headers=alice).status_code == 200
    assert client.get("/limitedA", headers=bob).status_code == 200


def test_rate_limit_resets_after_window(monkeypatch):
    client = TestClient(_make_app(times=2, seconds=1))
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429

    time.sleep(1.1)
    assert client.get("/limitedA").status_code == 200


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=2, seconds=60)
    client = TestClient(app)
    app.state.rate_limit_enabled = False

    for _ in range(4):
        assert client.get("/limitedA").status_code == 200


def test_rate_limit_health_info_without_redis():
    app = _make_app()
    client = TestClient(app)
    app.state.rate_limit_enabled = False

    info = client.get("/rl_info").json()
    assert info["enabled"] is False
    assert info["ready"] is False
    assert info["backend"] is None
