"""
Unit Tests for the response cache
"""
from unittest.mock import patch

import pytest

from infohub.services.response_cache import MemoryCacheBackend, ResponseCache, build_cache_key


def test_cache_key_format():
    assert build_cache_key("get", "/api/v1/public/events", "page=2") == "response:GET:/api/v1/public/events:page=2"


class TestResponseCache:

    @pytest.mark.asyncio
    async def test_hit_miss_accounting(self):
        cache = ResponseCache(backend=MemoryCacheBackend(), default_ttl=60)

        assert await cache.get("k") is None
        await cache.set("k", {"body": "{}", "status_code": 200})
        assert await cache.get("k") == {"body": "{}", "status_code": 200}

        stats = await cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hitRate"] == 50.0
        assert stats["size"] == 1
        assert stats["backend"] == "MemoryCacheBackend"

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        cache = ResponseCache(backend=MemoryCacheBackend(), default_ttl=60)
        with patch("infohub.services.response_cache.time.time", return_value=1000.0):
            await cache.set("k", {"body": "x"}, ttl=5)
        with patch("infohub.services.response_cache.time.time", return_value=1006.0):
            assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_invalidate_prefix(self):
        cache = ResponseCache(backend=MemoryCacheBackend(), default_ttl=60)
        await cache.set("response:GET:/api/v1/public/events:", {"body": "a"})
        await cache.set("response:GET:/api/v1/public/news:", {"body": "b"})
        await cache.set("other", {"body": "c"})

        assert await cache.invalidate_prefix("response:GET:/api/v1/public") == 2
        assert await cache.get("other") == {"body": "c"}

    @pytest.mark.asyncio
    async def test_clear_resets_counters(self):
        cache = ResponseCache(backend=MemoryCacheBackend(), default_ttl=60)
        await cache.set("k", {"body": "x"})
        await cache.get("k")
        await cache.clear()

        stats = await cache.stats()
        assert (stats["hits"], stats["misses"], stats["size"]) == (0, 0, 0)


class TestMemoryBackendBounds:
    """Distinct query strings must not grow the memory cache without limit"""

    @pytest.mark.asyncio
    async def test_expired_entries_swept_on_write(self):
        backend = MemoryCacheBackend(max_entries=10_000)
        with patch("infohub.services.response_cache.time.time", return_value=1000.0):
            for i in range(5000):
                await backend.set(f"response:GET:/api/v1/public/events:x={i}", {"body": "old"}, ttl=1)
        with patch("infohub.services.response_cache.time.time", return_value=1002.0):
            for i in range(10):
                await backend.set(f"response:GET:/api/v1/public/news:x={i}", {"body": "new"}, ttl=60)

        assert len(backend._store) == 10

    @pytest.mark.asyncio
    async def test_oldest_entry_evicted_when_full(self):
        backend = MemoryCacheBackend(max_entries=3)
        for key in ("a", "b", "c"):
            await backend.set(key, {"body": key}, ttl=60)
        await backend.set("a", {"body": "a2"}, ttl=60)
        await backend.set("d", {"body": "d"}, ttl=60)

        assert await backend.get("b") is None
        assert await backend.get("a") == {"body": "a2"}
        assert await backend.size() == 3
