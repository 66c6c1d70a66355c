from fastapi import FastAPI
from fastapi.testclient import TestClient

from telehealth.middleware import RATE_WINDOW_SECONDS, RateLimitMiddleware


async def noop_app(scope, receive, send):
    pass


def make_limiter(limit=2, start=1000.0):
    limiter = RateLimitMiddleware(noop_app, limit=limit)
    limiter._last_sweep = start
    return limiter


def test_blocks_hits_over_the_limit_until_the_window_passes():
    limiter = make_limiter()
    assert limiter._hit("10.0.0.1", 1000.0)
    assert limiter._hit("10.0.0.1", 1001.0)
    assert not limiter._hit("10.0.0.1", 1002.0)
    # Other clients have their own budget
    assert limiter._hit("10.0.0.2", 1002.0)
    assert limiter._hit("10.0.0.1", 1000.0 + RATE_WINDOW_SECONDS)


def test_sweep_forgets_idle_clients():
    limiter = make_limiter()
    limiter._hit("10.0.0.1", 1000.0)
    limiter._hit("10.0.0.2", 1030.0)
    limiter._sweep(1000.0 + RATE_WINDOW_SECONDS)
    assert set(limiter.requests) == {"10.0.0.2"}
    limiter._sweep(1030.0 + RATE_WINDOW_SECONDS)
    assert dict(limiter.requests) == {}


def test_hits_trigger_the_sweep_once_per_window():
    limiter = make_limiter()
    for i in range(50):
        limiter._hit(f"10.0.1.{i}", 1000.0)
    assert len(limiter.requests) == 50
    limiter._hit("10.0.0.9", 1000.0 + RATE_WINDOW_SECONDS / 2)
    assert len(limiter.requests) == 51

    later = 1000.0 + RATE_WINDOW_SECONDS
    limiter._hit("10.0.0.9", later)
    assert set(limiter.requests) == {"10.0.0.9"}
    assert limiter._last_sweep == later


def test_middleware_returns_error_envelope_when_limited():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limit=2)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    client = TestClient(app)
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200
    res = client.get("/ping")
    assert res.status_code == 429
    assert res.json()["success"] is False
    assert res.json()["error"] == "Rate limit exceeded. Please try again later."
