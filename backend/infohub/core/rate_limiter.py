"""
Rate Limiting for School Info Hub API
=====================================
Implements rate limiting using slowapi. Counters live in the storage named by
RATE_LIMIT_STORAGE_URI ("memory://" keeps a per-process counter map keyed by
client identifier that resets when its fixed window expires).

Every request is counted against the default window by RateLimitMiddleware.
Sensitive endpoints stack a tighter limit on top:
- /auth/login, /auth/register: 5 req/min (brute force protection)
- /auth/forgot-password, /auth/reset-password: 3 req/min
- bulk operations: 10 req/min
"""

import time
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import parse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from infohub.core.config import settings
from infohub.core.logging_config import logger
from infohub.core.security import extract_token, token_subject


def get_client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key based on user authentication.

    Priority:
    1. Authenticated user ID (request.state, else the access token's subject)
    2. API key (for integrations)
    3. IP address (for anonymous users)

    Middleware runs before the auth dependency, so the token is read here;
    an invalid or expired token falls through to the next key.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        token = extract_token(request)
        user_id = token_subject(token) if token else None
    if user_id:
        return f"user:{user_id}"

    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"apikey:{api_key[:16]}"

    return f"ip:{get_client_ip(request)}"


DEFAULT_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"

limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[DEFAULT_LIMIT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit exceeded errors"""
    retry_after = 60
    limit = getattr(exc, "limit", None)
    if limit is not None and getattr(limit, "limit", None) is not None:
        retry_after = int(limit.limit.get_expiry())

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
            "detail": str(exc.detail),
            "retry_after_seconds": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies the default fixed-window limit to every request and reports the
    window state in X-RateLimit-Limit / X-RateLimit-Remaining / X-RateLimit-Reset.

    Shares the slowapi limiter's storage so per-route limits and the default
    window see the same backend.
    """

    EXEMPT_PATHS = ("/health", "/api/v1/health")

    def __init__(self, app: ASGIApp, limit: str = DEFAULT_LIMIT,
                 key_func: Callable[[Request], str] = get_user_identifier,
                 rate_limiter: Optional[Limiter] = None):
        super().__init__(app)
        self.item = parse(limit)
        self.key_func = key_func
        self.rate_limiter = rate_limiter if rate_limiter is not None else limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.rate_limiter.enabled or request.url.path.startswith(self.EXEMPT_PATHS):
            return await call_next(request)

        key = self.key_func(request)
        strategy = self.rate_limiter.limiter
        allowed = strategy.hit(self.item, "global", key)
        reset_at, remaining = strategy.get_window_stats(self.item, "global", key)
        reset_in = max(0, int(reset_at - time.time()))

        headers = {
            "X-RateLimit-Limit": str(self.item.amount),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

        if not allowed:
            logger.warning(f"[RateLimit] Window exhausted for {key} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "rate_limit_exceeded",
                    "message": "Too many requests. Please slow down.",
                    "retry_after_seconds": reset_in,
                },
                headers={**headers, "Retry-After": str(reset_in)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


# Pre-configured per-route limits
def auth_rate_limit():
    """Rate limit for login/register (5/min)"""
    return limiter.limit("5/minute", key_func=get_user_identifier)


def strict_rate_limit():
    """Very strict rate limit for password reset flows (3/min)"""
    return limiter.limit("3/minute", key_func=get_user_identifier)


def bulk_rate_limit():
    """Rate limit for bulk write operations (10/min)"""
    return limiter.limit("10/minute", key_func=get_user_identifier)


def standard_rate_limit():
    """Rate limit for ordinary create/upload routes (60/min)"""
    return limiter.limit("60/minute", key_func=get_user_identifier)
