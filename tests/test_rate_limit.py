"""
Tests for the fixed-window rate limiter and its middleware.
"""

import pytest
from starlette.requests import Request
from storefront.main import app
from storefront.rate_limit import RateLimiter, client_id_from_request, UNKNOWN_CLIENT


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_request(headers: dict | None = None, client: tuple | None = ("10.0.0.1", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestRateLimiter:
    """Unit tests with an injected clock."""

    def test_allows_up_to_cap_then_denies(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=3, clock=clock)

        results = [limiter.check("a") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_denial_reports_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        limiter.check("a")

        clock.advance(20.5)
        denied = limiter.check("a")

        assert denied.allowed is False
        assert denied.retry_after == 40  # ceil(39.5)
        assert denied.reset_at == clock.now - 20.5 + 60

    def test_retry_after_is_at_least_one_second(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        limiter.check("a")

        clock.advance(60)  # exactly at the boundary, still the same window
        denied = limiter.check("a")

        assert denied.allowed is False
        assert denied.retry_after == 1

    def test_window_expiry_resets_count(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=2, clock=clock)
        limiter.check("a")
        limiter.check("a")
        assert limiter.check("a").allowed is False

        clock.advance(61)
        result = limiter.check("a")

        assert result.allowed is True
        assert result.remaining == 1

    def test_clients_are_counted_independently(self):
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())

        assert limiter.check("a").allowed is True
        assert limiter.check("b").allowed is True
        assert limiter.check("a").allowed is False

    def test_cleanup_removes_clients_idle_for_two_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=5, clock=clock)
        limiter.check("old")
        clock.advance(100)
        limiter.check("recent")

        clock.advance(30)  # old: 130s, recent: 30s
        removed = limiter.cleanup()

        assert removed == 1
        assert len(limiter) == 1

    def test_cleanup_keeps_clients_within_two_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=5, clock=clock)
        limiter.check("a")

        clock.advance(120)

        assert limiter.cleanup() == 0
        assert len(limiter) == 1

    def test_reset_forgets_everything(self):
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())
        limiter.check("a")
        limiter.check("a")

        limiter.reset()

        assert len(limiter) == 0
        assert limiter.check("a").allowed is True

    def test_reset_at_iso(self):
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=lambda: 0.0)

        assert limiter.check("a").reset_at_iso == "1970-01-01T00:01:00+00:00"


class TestClientIdentification:
    def test_first_forwarded_for_entry_wins(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
        assert client_id_from_request(request) == "203.0.113.7"

    def test_falls_back_to_peer_address(self):
        assert client_id_from_request(make_request()) == "10.0.0.1"

    def test_unknown_when_nothing_identifies_the_caller(self):
        assert client_id_from_request(make_request(client=None)) == UNKNOWN_CLIENT


# ============================================================================
# Middleware
# ============================================================================

@pytest.mark.asyncio
async def test_rate_limit_headers_on_success(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"
    assert "X-RateLimit-Reset" in response.headers


@pytest.mark.asyncio
async def test_rate_limit_exceeded_returns_429(client, monkeypatch):
    monkeypatch.setattr(app.state, "rate_limiter", RateLimiter(window_seconds=60, max_requests=2))

    for _ in range(2):
        assert (await client.get("/")).status_code == 200
    response = await client.get("/")

    assert response.status_code == 429
    body = response.json()
    assert body["statusCode"] == 429
    assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["error"]["details"]["retryAfter"] >= 1
    assert int(response.headers["Retry-After"]) >= 1
    assert response.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_rate_limit_is_per_client(client, monkeypatch):
    monkeypatch.setattr(app.state, "rate_limiter", RateLimiter(window_seconds=60, max_requests=1))

    first = await client.get("/", headers={"X-Forwarded-For": "198.51.100.1"})
    other = await client.get("/", headers={"X-Forwarded-For": "198.51.100.2"})
    repeat = await client.get("/", headers={"X-Forwarded-For": "198.51.100.1"})

    assert first.status_code == 200
    assert other.status_code == 200
    assert repeat.status_code == 429
