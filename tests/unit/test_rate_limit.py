"""
Rate Limit Middleware Unit Tests

Tests for the fixed-window limiter and the middleware applying it.
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storyboard_gateway.middleware.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitMiddleware,
    get_client_ip,
)
from storyboard_gateway.services.telemetry import AiTelemetryLogger, TelemetryEvent


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class RecordingTelemetry(AiTelemetryLogger):
    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, TelemetryEvent]] = []

    def info(self, event: TelemetryEvent) -> None:
        self.events.append(("info", event))

    def error(self, event: TelemetryEvent) -> None:
        self.events.append(("error", event))


class TestFixedWindowRateLimiter:
    """Tests for FixedWindowRateLimiter."""

    def test_allows_up_to_max_then_rejects(self):
        """Three requests pass and the fourth in the same window is rejected."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=3, clock=clock)

        decisions = [limiter.consume("10.0.0.1") for _ in range(4)]

        assert [d.ok for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]
        assert decisions[3].retry_after_ms == 1000

    def test_fresh_window_after_expiry(self):
        """Once the window has passed the identity starts a new window."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=3, clock=clock)
        for _ in range(4):
            limiter.consume("10.0.0.1")

        clock.now += 1001
        decision = limiter.consume("10.0.0.1")

        assert decision.ok is True
        assert decision.remaining == 2
        assert decision.reset_at == clock.now + 1000

    def test_retry_after_shrinks_with_time(self):
        """Retry-after reports the time left in the current window."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=1, clock=clock)
        limiter.consume("a")

        clock.now += 400
        decision = limiter.consume("a")

        assert decision.ok is False
        assert decision.retry_after_ms == 600

    def test_identities_are_independent(self):
        """Each identity has its own window."""
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=1, clock=FakeClock())

        assert limiter.consume("a").ok is True
        assert limiter.consume("b").ok is True
        assert limiter.consume("a").ok is False

    def test_cleanup_expired_removes_only_lapsed_buckets(self):
        """cleanup_expired drops buckets whose window has passed."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=5, clock=clock)
        limiter.consume("old")
        clock.now += 600
        limiter.consume("new")

        clock.now += 500
        removed = limiter.cleanup_expired()

        assert removed == 1
        assert len(limiter) == 1

    def test_limits_are_clamped_to_one(self):
        """Window and count below one are raised to one."""
        limiter = FixedWindowRateLimiter(window_ms=0, max_requests=0, clock=FakeClock())

        assert limiter.window_ms == 1
        assert limiter.max_requests == 1


def _make_app(limiter: FixedWindowRateLimiter, telemetry: AiTelemetryLogger) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, telemetry=telemetry, enabled=True)

    @app.post("/api/ai/chat")
    async def chat():
        return {"text": "ok"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    def test_uses_injected_limiter_without_buckets(self):
        """A limiter with no windows yet is still the one the middleware applies."""
        limiter = FixedWindowRateLimiter(window_ms=1000, max_requests=2, clock=FakeClock())
        assert len(limiter) == 0

        middleware = RateLimitMiddleware(FastAPI(), limiter=limiter, enabled=True)

        assert middleware._limiter is limiter

    @pytest.mark.asyncio
    async def test_fourth_request_gets_429(self):
        """The request over the limit is answered with a rate limit error."""
        telemetry = RecordingTelemetry()
        limiter = FixedWindowRateLimiter(window_ms=60_000, max_requests=3, clock=FakeClock())
        app = _make_app(limiter, telemetry)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            statuses = []
            for _ in range(4):
                resp = await ac.post("/api/ai/chat", json={"chatModel": "gemini-2.5-flash"})
                statuses.append(resp.status_code)

        assert statuses == [200, 200, 200, 429]
        body = resp.json()
        assert body["errorCode"] == "RATE_LIMITED"
        assert body["retryable"] is True
        assert body["requestId"] == resp.headers["x-request-id"]
        assert resp.headers["retry-after"] == "60"
        assert resp.headers["x-rate-limit-remaining"] == "0"

    @pytest.mark.asyncio
    async def test_rejection_is_reported_to_telemetry(self):
        """A rejected request emits one error event with the model from the body."""
        telemetry = RecordingTelemetry()
        limiter = FixedWindowRateLimiter(window_ms=60_000, max_requests=1, clock=FakeClock())
        app = _make_app(limiter, telemetry)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            await ac.post("/api/ai/chat", json={"chatModel": "gemini-2.5-pro"})
            resp = await ac.post(
                "/api/ai/chat", json={"chatModel": "gemini-2.5-pro", "projectId": "p1"}
            )

        assert len(telemetry.events) == 1
        level, event = telemetry.events[0]
        assert level == "error"
        assert event.status == 429
        assert event.model == "gemini-2.5-pro"
        assert event.project_id == "p1"
        assert event.request_id == resp.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_paths_outside_ai_are_not_limited(self):
        """Only /api/ai/ paths count against the limit."""
        limiter = FixedWindowRateLimiter(window_ms=60_000, max_requests=1, clock=FakeClock())
        app = _make_app(limiter, RecordingTelemetry())

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            for _ in range(3):
                resp = await ac.get("/health")
                assert resp.status_code == 200

        assert len(limiter) == 0

    @pytest.mark.asyncio
    async def test_admitted_response_carries_limit_headers(self):
        """Admitted responses report the remaining budget."""
        limiter = FixedWindowRateLimiter(window_ms=60_000, max_requests=5, clock=FakeClock())
        app = _make_app(limiter, RecordingTelemetry())

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/api/ai/chat", json={})

        assert resp.status_code == 200
        assert resp.headers["x-rate-limit-limit"] == "5"
        assert resp.headers["x-rate-limit-remaining"] == "4"


class TestGetClientIp:
    """Tests for get_client_ip function."""

    def _request(self, headers: dict[str, str], client=("127.0.0.1", 5000)):
        from starlette.requests import Request

        scope = {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": client,
        }
        return Request(scope)

    def test_forwarded_for_takes_first_address(self):
        """X-Forwarded-For uses the original client."""
        request = self._request({"X-Forwarded-For": "1.2.3.4, 5.6.7.8"})
        assert get_client_ip(request) == "1.2.3.4"

    def test_real_ip_header(self):
        """X-Real-IP is used when no forwarded chain exists."""
        request = self._request({"X-Real-IP": " 9.9.9.9 "})
        assert get_client_ip(request) == "9.9.9.9"

    def test_falls_back_to_peer_address(self):
        """Without proxy headers the socket peer is used."""
        request = self._request({})
        assert get_client_ip(request) == "127.0.0.1"
