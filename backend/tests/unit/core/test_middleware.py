"""
Unit Tests for HTTP middleware
Tests for: security headers, input validation, performance timing, response caching
"""
import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from infohub.core.middleware import (
    InputValidationMiddleware,
    PerformanceMonitoringMiddleware,
    RequestLoggingMiddleware,
    ResponseCacheMiddleware,
    SecurityHeadersMiddleware,
    is_streaming_path,
    should_skip_logging,
)
from infohub.services.performance import PerformanceLog, performance_log
from infohub.services.response_cache import MemoryCacheBackend, ResponseCache


def _app() -> FastAPI:
    app = FastAPI()
    app.state.hits = 0

    @app.get("/api/v1/public/items")
    async def public_items(request: Request):
        request.app.state.hits += 1
        return {"hits": request.app.state.hits}

    @app.get("/api/v1/public/missing")
    async def public_missing():
        from fastapi import HTTPException
        raise HTTPException(status_code=404, detail="nope")

    @app.post("/api/v1/items")
    async def create_item(request: Request):
        return {"received": await request.json()}

    @app.get("/private")
    async def private():
        return {"ok": True}

    return app


async def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestPathHelpers:

    def test_skip_logging(self):
        assert should_skip_logging("/health")
        assert should_skip_logging("/static/app.js")
        assert not should_skip_logging("/api/v1/events")

    def test_streaming_path(self):
        assert is_streaming_path("/api/v1/notifications/stream")
        assert not is_streaming_path("/api/v1/notifications")


class TestSecurityHeaders:
    """Test security headers on responses"""

    @pytest.mark.asyncio
    async def test_headers_present(self):
        app = _app()
        app.add_middleware(SecurityHeadersMiddleware, enable_hsts=True)
        async with await _client(app) as client:
            response = await client.get("/private")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in response.headers
        assert response.headers["Strict-Transport-Security"].startswith("max-age=")

    @pytest.mark.asyncio
    async def test_no_hsts_outside_production(self):
        app = _app()
        app.add_middleware(SecurityHeadersMiddleware, enable_hsts=False)
        async with await _client(app) as client:
            response = await client.get("/private")

        assert "Strict-Transport-Security" not in response.headers


class TestRequestLogging:

    @pytest.mark.asyncio
    async def test_request_id_echoed(self):
        app = _app()
        app.add_middleware(RequestLoggingMiddleware)
        async with await _client(app) as client:
            response = await client.get("/private", headers={"X-Request-ID": "req-123"})
            generated = await client.get("/private")

        assert response.headers["X-Request-ID"] == "req-123"
        assert generated.headers["X-Request-ID"]


class TestInputValidation:
    """Test request body validation"""

    @pytest.mark.asyncio
    async def test_valid_json_passes_through(self):
        app = _app()
        app.add_middleware(InputValidationMiddleware, max_size=1024)
        async with await _client(app) as client:
            response = await client.post("/api/v1/items", json={"name": "chair"})

        assert response.status_code == 200
        assert response.json() == {"received": {"name": "chair"}}

    @pytest.mark.asyncio
    async def test_oversized_body_rejected(self):
        app = _app()
        app.add_middleware(InputValidationMiddleware, max_size=16)
        async with await _client(app) as client:
            response = await client.post("/api/v1/items", json={"name": "x" * 100})

        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self):
        app = _app()
        app.add_middleware(InputValidationMiddleware, max_size=1024)
        async with await _client(app) as client:
            response = await client.post(
                "/api/v1/items", content=b"<xml/>", headers={"Content-Type": "application/xml"}
            )

        assert response.status_code == 415

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        app = _app()
        app.add_middleware(InputValidationMiddleware, max_size=1024)
        async with await _client(app) as client:
            response = await client.post(
                "/api/v1/items", content=b"{not json", headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_json"


class TestPerformanceMonitoring:

    @pytest.mark.asyncio
    async def test_records_each_request(self):
        log = PerformanceLog(max_size=10, slow_threshold_ms=10_000)
        app = _app()
        app.add_middleware(PerformanceMonitoringMiddleware, log=log)
        async with await _client(app) as client:
            response = await client.get("/private")
            await client.get("/api/v1/public/missing")

        assert response.headers["X-Response-Time"].endswith("ms")
        stats = log.stats()
        assert stats["totalRequests"] == 2
        assert stats["errorRate"] == 50.0
        assert "GET /private" in stats["endpoints"]
        assert len(performance_log) == 0


class TestResponseCache:
    """Test caching of public GET responses"""

    def _cached_app(self):
        cache = ResponseCache(backend=MemoryCacheBackend(), default_ttl=60)
        app = _app()
        app.add_middleware(ResponseCacheMiddleware, prefixes=["/api/v1/public"], cache=cache)
        return app, cache

    @pytest.mark.asyncio
    async def test_second_get_is_a_hit(self):
        app, cache = self._cached_app()
        async with await _client(app) as client:
            first = await client.get("/api/v1/public/items")
            second = await client.get("/api/v1/public/items")

        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json() == {"hits": 1}
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_query_string_is_part_of_key(self):
        app, _ = self._cached_app()
        async with await _client(app) as client:
            await client.get("/api/v1/public/items?page=1")
            other = await client.get("/api/v1/public/items?page=2")

        assert other.headers["X-Cache"] == "MISS"

    @pytest.mark.asyncio
    async def test_authenticated_requests_bypass_cache(self):
        app, _ = self._cached_app()
        async with await _client(app) as client:
            await client.get("/api/v1/public/items")
            response = await client.get("/api/v1/public/items", headers={"Authorization": "Bearer abc"})

        assert "X-Cache" not in response.headers
        assert response.json() == {"hits": 2}

    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self):
        app, cache = self._cached_app()
        async with await _client(app) as client:
            await client.get("/api/v1/public/missing")
            response = await client.get("/api/v1/public/missing")

        assert response.status_code == 404
        assert response.headers["X-Cache"] == "MISS"
        assert cache.hits == 0

    @pytest.mark.asyncio
    async def test_write_invalidates(self):
        app, _ = self._cached_app()
        async with await _client(app) as client:
            await client.get("/api/v1/public/items")
            await client.post("/api/v1/items", json={"name": "desk"})
            response = await client.get("/api/v1/public/items")

        assert response.headers["X-Cache"] == "MISS"
        assert response.json() == {"hits": 2}
