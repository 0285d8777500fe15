"""
School Info Hub - HTTP Middleware
Request logging, security headers, input validation, performance tracking
and public response caching.
"""

import json
import time
from typing import Callable, Iterable, Optional, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from infohub.core.config import settings
from infohub.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)
from infohub.services.performance import PerformanceLog, RequestMetric, performance_log
from infohub.services.response_cache import ResponseCache, build_cache_key, response_cache


# Paths that should skip detailed logging (health checks, static files)
SKIP_LOGGING_PATHS: Set[str] = {
    "/health",
    "/",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

# Paths that use SSE/streaming and should not be buffered
STREAMING_PATHS: Set[str] = {
    "/api/v1/notifications/stream",
}

ALLOWED_CONTENT_TYPES = (
    "application/json",
    "multipart/form-data",
    "application/x-www-form-urlencoded",
)


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    if path in SKIP_LOGGING_PATHS:
        return True
    if path.startswith("/static/") or path.endswith((".js", ".css", ".png", ".ico")):
        return True
    return False


def is_streaming_path(path: str) -> bool:
    """Check if path uses SSE/streaming responses"""
    return any(path.startswith(p) for p in STREAMING_PATHS)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": code, "message": message},
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    - Generates and tracks request IDs for correlation
    - Logs request method, path, status, and duration
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        path = request.url.path
        skip_logging = should_skip_logging(path)
        is_streaming = is_streaming_path(path)
        start_time = time.perf_counter()

        if not skip_logging:
            logger.info(
                f"→ {request.method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": path,
                    "client_ip": request.client.host if request.client else "unknown",
                    "user_agent": request.headers.get("user-agent", ""),
                }
            )

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id

            if not skip_logging:
                logger.log_request(
                    request.method, path, response.status_code, duration_ms,
                    is_streaming=is_streaming,
                )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"✗ {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                }
            )
            raise

        finally:
            set_request_id("")
            set_user_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses
    """

    CONTENT_SECURITY_POLICY = (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; "
        "frame-ancestors 'none'"
    )

    def __init__(self, app: ASGIApp, enable_hsts: Optional[bool] = None):
        super().__init__(app)
        self.enable_hsts = settings.is_production() if enable_hsts is None else enable_hsts

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        response.headers["X-Download-Options"] = "noopen"
        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"

        # Swagger UI pulls assets from a CDN
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = self.CONTENT_SECURITY_POLICY

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class InputValidationMiddleware(BaseHTTPMiddleware):
    """
    Rejects malformed write requests before they reach a route:
    413 for bodies over max_size, 415 for unsupported content types,
    400 for JSON bodies that do not parse.
    """

    WRITE_METHODS = {"POST", "PUT", "PATCH"}

    def __init__(self, app: ASGIApp, max_size: int = None):
        super().__init__(app)
        self.max_size = max_size or settings.MAX_REQUEST_SIZE

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method not in self.WRITE_METHODS:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                f"Request body too large: {content_length} bytes (max: {self.max_size})",
                extra={
                    "event_type": "request_too_large",
                    "content_length": int(content_length),
                    "max_size": self.max_size,
                    "http_path": request.url.path,
                }
            )
            return _error(
                413, "payload_too_large",
                f"Request body too large. Maximum size is {self.max_size // 1024 // 1024}MB",
            )

        content_type = request.headers.get("content-type", "").lower()
        if content_type and not content_type.startswith(ALLOWED_CONTENT_TYPES):
            return _error(415, "unsupported_media_type", f"Unsupported content type: {content_type}")

        if content_type.startswith("application/json"):
            body = await request.body()
            if body:
                try:
                    json.loads(body)
                except ValueError:
                    return _error(400, "invalid_json", "Request body is not valid JSON")

        return await call_next(request)


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Times every request, records it in the performance log and reports the
    duration in X-Response-Time.
    """

    def __init__(self, app: ASGIApp, log: Optional[PerformanceLog] = None):
        super().__init__(app)
        self.log = log if log is not None else performance_log

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        path = request.url.path
        self.log.record(RequestMetric(
            endpoint=path,
            method=request.method,
            response_time=duration_ms,
            status_code=response.status_code,
            cached=response.headers.get("X-Cache") == "HIT",
            user_agent=request.headers.get("user-agent"),
        ))

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Performance-Timestamp"] = str(int(time.time() * 1000))

        if duration_ms > self.log.slow_threshold_ms and not is_streaming_path(path):
            logger.log_performance(
                f"{request.method} {path}", duration_ms,
                threshold_ms=self.log.slow_threshold_ms,
                http_status=response.status_code,
            )

        return response


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Caches successful anonymous JSON GET responses under the configured path
    prefixes. Successful API writes invalidate every cached prefix.
    """

    WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

    def __init__(self, app: ASGIApp, prefixes: Optional[Iterable[str]] = None,
                 cache: Optional[ResponseCache] = None, ttl: Optional[int] = None):
        super().__init__(app)
        self.prefixes = tuple(prefixes if prefixes is not None else settings.CACHE_PATH_PREFIXES)
        self.cache = cache if cache is not None else response_cache
        self.ttl = ttl

    def _cached_prefix(self, path: str) -> Optional[str]:
        for prefix in self.prefixes:
            if path.startswith(prefix):
                return prefix
        return None

    @staticmethod
    def _has_credentials(request: Request) -> bool:
        return bool(
            request.headers.get("Authorization")
            or request.cookies.get(settings.AUTH_COOKIE_NAME)
        )

    @staticmethod
    def _short_key(key: str) -> str:
        return key if len(key) <= 50 else key[:50] + "..."

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if request.method in self.WRITE_METHODS:
            response = await call_next(request)
            # Public pages mirror content edited through the authenticated API
            if response.status_code < 400 and path.startswith("/api/") and not path.startswith("/api/v1/auth"):
                for prefix in self.prefixes:
                    await self.cache.invalidate_prefix(f"response:GET:{prefix}")
            return response

        if request.method != "GET" or self._cached_prefix(path) is None or self._has_credentials(request):
            return await call_next(request)

        key = build_cache_key("GET", path, request.url.query)
        cached = await self.cache.get(key)
        if cached is not None:
            return Response(
                content=cached["body"].encode("utf-8"),
                status_code=cached["status_code"],
                media_type="application/json",
                headers={"X-Cache": "HIT", "X-Cache-Key": self._short_key(key)},
            )

        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if response.status_code < 400 and content_type.startswith("application/json"):
            body = b"".join([chunk async for chunk in response.body_iterator])
            await self.cache.set(key, {"body": body.decode("utf-8"), "status_code": response.status_code}, self.ttl)
            headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
            response = Response(
                content=body,
                status_code=response.status_code,
                headers=headers,
                media_type=response.media_type,
            )

        response.headers["X-Cache"] = "MISS"
        response.headers["X-Cache-Key"] = self._short_key(key)
        return response


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "InputValidationMiddleware",
    "PerformanceMonitoringMiddleware",
    "ResponseCacheMiddleware",
    "should_skip_logging",
    "is_streaming_path",
]
