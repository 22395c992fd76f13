"""
Rate Limit Middleware Module

Fixed-window admission control for the AI endpoints, keyed by client IP.
"""

import json
import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from storyboard_gateway.common.errors import RateLimitedError
from storyboard_gateway.common.utils import (
    epoch_ms,
    extract_model,
    extract_project_id,
    generate_request_id,
)
from storyboard_gateway.config import get_settings
from storyboard_gateway.services.telemetry import (
    AiTelemetryLogger,
    TelemetryEvent,
    get_telemetry_logger,
)

logger = logging.getLogger(__name__)

# Only requests under this prefix are rate limited
AI_PATH_PREFIX = "/api/ai/"


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Outcome of one admission check

    ``reset_at`` is an epoch timestamp in ms; ``retry_after_ms`` is 0 when admitted.
    """

    ok: bool
    remaining: int
    reset_at: int
    retry_after_ms: int


@dataclass
class _Bucket:
    count: int
    reset_at: int


class FixedWindowRateLimiter:
    """
    In-memory fixed-window rate limiter.

    Each identity gets a window of ``window_ms`` starting at its first request.
    Bursts at window boundaries are accepted; memory stays bounded by
    ``cleanup_expired``. For multiple workers each process limits independently.
    """

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.window_ms = max(1, int(window_ms))
        self.max_requests = max(1, int(max_requests))
        self._clock = clock or epoch_ms
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def consume(self, identity: str) -> RateLimitDecision:
        """
        Count one request for ``identity``.

        Never raises; a rejection is returned as ``ok=False``.

        Args:
            identity: Client key, e.g. the caller IP

        Returns:
            RateLimitDecision: Admission outcome
        """
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(identity)

            if bucket is None or bucket.reset_at <= now:
                bucket = _Bucket(count=1, reset_at=now + self.window_ms)
                self._buckets[identity] = bucket
                return RateLimitDecision(
                    ok=True,
                    remaining=self.max_requests - 1,
                    reset_at=bucket.reset_at,
                    retry_after_ms=0,
                )

            if bucket.count >= self.max_requests:
                return RateLimitDecision(
                    ok=False,
                    remaining=0,
                    reset_at=bucket.reset_at,
                    retry_after_ms=bucket.reset_at - now,
                )

            bucket.count += 1
            return RateLimitDecision(
                ok=True,
                remaining=self.max_requests - bucket.count,
                reset_at=bucket.reset_at,
                retry_after_ms=0,
            )

    def cleanup_expired(self, now: Optional[int] = None) -> int:
        """Drop buckets whose window has lapsed; returns the number removed"""
        with self._lock:
            now = self._clock() if now is None else now
            expired = [key for key, bucket in self._buckets.items() if bucket.reset_at <= now]
            for key in expired:
                del self._buckets[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._buckets)


_limiter: Optional[FixedWindowRateLimiter] = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Process-wide limiter shared by the middleware and the cleanup job"""
    global _limiter
    if _limiter is None:
        settings = get_settings()
        _limiter = FixedWindowRateLimiter(
            window_ms=settings.rate_limit_window_ms,
            max_requests=settings.rate_limit_max_requests,
        )
    return _limiter


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    # Check X-Forwarded-For header (for reverse proxy setups)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate Limit Middleware

    Applies the fixed-window limiter to every request under /api/ai/ and
    sets x-rate-limit-* headers on admitted and rejected responses alike.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: Optional[FixedWindowRateLimiter] = None,
        telemetry: Optional[AiTelemetryLogger] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        super().__init__(app)
        settings = get_settings()
        self.enabled = settings.AI_RATE_LIMIT_ENABLED if enabled is None else enabled
        self._limiter = limiter if limiter is not None else get_rate_limiter()
        self._telemetry = telemetry

        logger.info(
            "Rate limit middleware initialized: enabled=%s, limit=%s/%sms",
            self.enabled,
            self._limiter.max_requests,
            self._limiter.window_ms,
        )

    @property
    def telemetry(self) -> AiTelemetryLogger:
        return self._telemetry if self._telemetry is not None else get_telemetry_logger()

    def _rate_limit_headers(self, decision: RateLimitDecision) -> dict[str, str]:
        return {
            "x-rate-limit-limit": str(self._limiter.max_requests),
            "x-rate-limit-remaining": str(decision.remaining),
            "x-rate-limit-reset": str(decision.reset_at),
        }

    async def _read_json_body(self, request: Request) -> object:
        try:
            raw = await request.body()
            return json.loads(raw) if raw else None
        except (ValueError, UnicodeDecodeError):
            return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through rate limiter."""
        if not self.enabled or not request.url.path.startswith(AI_PATH_PREFIX):
            return await call_next(request)

        identity = get_client_ip(request)
        decision = self._limiter.consume(identity)
        headers = self._rate_limit_headers(decision)

        if not decision.ok:
            request_id = generate_request_id()
            retry_after_seconds = max(1, math.ceil(decision.retry_after_ms / 1000))
            body = await self._read_json_body(request)

            logger.warning(
                "AI rate limit exceeded: client=%s, path=%s, retry_after_ms=%s",
                identity,
                request.url.path,
                decision.retry_after_ms,
            )
            self.telemetry.error(
                TelemetryEvent(
                    request_id=request_id,
                    endpoint=request.url.path,
                    status=429,
                    latency_ms=0,
                    model=extract_model(body),
                    project_id=extract_project_id(body),
                    retryable=True,
                    error_code="RATE_LIMITED",
                )
            )

            error = RateLimitedError(
                retry_after_ms=decision.retry_after_ms, request_id=request_id
            )
            headers["x-request-id"] = request_id
            headers["Retry-After"] = str(retry_after_seconds)
            return JSONResponse(status_code=429, content=error.to_dict(), headers=headers)

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response
