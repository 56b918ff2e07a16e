"""
HTTP middleware for the service control panel.

Outermost to innermost the chain is fault recovery, request logging,
rate limiting and security headers.
"""

import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

DEFAULT_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.tailwindcss.com; "
    "style-src 'self' 'unsafe-inline' https://cdn.tailwindcss.com; "
    "img-src 'self' data:;"
)

STATIC_CACHE_CONTROL = "public, max-age=86400, immutable"
RATE_LIMIT_NAMESPACE = "svcpanel"


def client_key(request: Request, trust_proxy_headers: bool = False) -> str:
    """Client address used as the rate limit key.

    ``X-Forwarded-For`` and ``X-Real-IP`` are only consulted when the
    panel sits behind a reverse proxy that sets them.
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            first = forwarded_for.split(",", 1)[0].strip()
            if first:
                return first

        real_ip = request.headers.get("X-Real-IP")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    return request.client.host if request.client else "unknown"


class SlidingWindowRateLimiter:
    """Allow at most ``limit`` requests per client within a moving ``window`` of seconds."""

    def __init__(self, limit: int = 100, window: int = 60, storage: Optional[Storage] = None):
        self.item = RateLimitItemPerSecond(limit, window)
        self.storage = storage or MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self.storage)

    def allow(self, key: str) -> bool:
        return self._strategy.hit(self.item, RATE_LIMIT_NAMESPACE, key)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI, limiter: SlidingWindowRateLimiter, trust_proxy_headers: bool = False):
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        key = client_key(request, self.trust_proxy_headers)
        if not self.limiter.allow(key):
            logger.warning("Rate limit exceeded for {} on {} {}", key, request.method, request.url.path)
            return PlainTextResponse("Rate limit exceeded", status_code=429)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses and cache headers to static assets."""

    def __init__(self, app: FastAPI, csp_policy: Optional[str] = None):
        super().__init__(app)
        self.csp_policy = csp_policy or DEFAULT_CSP

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = self.csp_policy

        if request.url.path.startswith("/static/"):
            response.headers["Cache-Control"] = STATIC_CACHE_CONTROL

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "HTTP request {} {} status={} duration={:.4f}s remote_addr={} user_agent={!r}",
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - start,
            request.client.host if request.client else "unknown",
            request.headers.get("User-Agent", ""),
        )
        return response


class FaultRecoveryMiddleware(BaseHTTPMiddleware):
    """Turn unexpected exceptions into a bare 500 so the process keeps serving."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error in HTTP handler: {} {} remote_addr={}",
                request.method,
                request.url.path,
                request.client.host if request.client else "unknown",
            )
            return PlainTextResponse("Internal server error", status_code=500)


def install_middleware(
    app: FastAPI,
    limiter: Optional[SlidingWindowRateLimiter],
    trust_proxy_headers: bool = False,
) -> None:
    """Install the middleware chain; the last one added runs first."""
    app.add_middleware(SecurityHeadersMiddleware)
    if limiter is not None:
        app.add_middleware(RateLimitMiddleware, limiter=limiter, trust_proxy_headers=trust_proxy_headers)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(FaultRecoveryMiddleware)
