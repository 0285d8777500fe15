"""
Response Cache Service - short-lived cache for public GET responses

Two backends:
- memory: bounded per-process dict with expiry timestamps (default)
- redis: shared cache via redis.asyncio, used when CACHE_BACKEND=redis

Cache failures are never fatal; a broken backend behaves like a miss.
"""

import json
import time
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from infohub.core.config import settings
from infohub.core.logging_config import logger


def build_cache_key(method: str, path: str, query: str = "") -> str:
    """Cache key for a request: response:METHOD:path:query"""
    return f"response:{method.upper()}:{path}:{query}"


class MemoryCacheBackend:
    """
    In-process cache bounded to `max_entries`.

    Expired entries are swept by writes (at most once a second, and always
    when the cache is full). If it is still full the oldest entry goes first.
    """

    SWEEP_INTERVAL = 1.0

    def __init__(self, max_entries: int = None):
        self.max_entries = max_entries or settings.CACHE_MAX_ENTRIES
        self._store: "OrderedDict[str, Tuple[float, Dict[str, Any]]]" = OrderedDict()
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        self._next_sweep = now + self.SWEEP_INTERVAL
        for k in [k for k, (exp, _) in self._store.items() if exp <= now]:
            del self._store[k]

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= time.time():
            self._store.pop(key, None)
            return None
        return payload

    async def set(self, key: str, payload: Dict[str, Any], ttl: int) -> None:
        now = time.time()
        self._store.pop(key, None)
        if now >= self._next_sweep or len(self._store) >= self.max_entries:
            self._sweep(now)
        while len(self._store) >= self.max_entries:
            self._store.popitem(last=False)
        self._store[key] = (now + ttl, payload)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in self._store if k.startswith(prefix)]
        for k in keys:
            del self._store[k]
        return len(keys)

    async def clear(self) -> None:
        self._store.clear()

    async def size(self) -> int:
        self._sweep(time.time())
        return len(self._store)

    async def close(self) -> None:
        return None


class RedisCacheBackend:
    """Redis-backed cache shared between workers"""

    def __init__(self, url: str):
        self._url = url
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._url, decode_responses=True)
            logger.info("[Cache] Redis connection established")
        return self._redis

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        r = await self._get_redis()
        data = await r.get(key)
        return json.loads(data) if data else None

    async def set(self, key: str, payload: Dict[str, Any], ttl: int) -> None:
        r = await self._get_redis()
        await r.setex(key, ttl, json.dumps(payload))

    async def delete(self, key: str) -> None:
        r = await self._get_redis()
        await r.delete(key)

    async def invalidate_prefix(self, prefix: str) -> int:
        r = await self._get_redis()
        deleted = 0
        async for key in r.scan_iter(match=f"{prefix}*"):
            deleted += await r.delete(key)
        return deleted

    async def clear(self) -> None:
        await self.invalidate_prefix("response:")

    async def size(self) -> int:
        r = await self._get_redis()
        count = 0
        async for _ in r.scan_iter(match="response:*"):
            count += 1
        return count

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None


class ResponseCache:
    """Facade tracking hit/miss counts over the configured backend"""

    def __init__(self, backend=None, default_ttl: int = None):
        if backend is None:
            if settings.CACHE_BACKEND == "redis":
                backend = RedisCacheBackend(settings.REDIS_URL)
            else:
                backend = MemoryCacheBackend()
        self.backend = backend
        self.default_ttl = default_ttl or settings.CACHE_DEFAULT_TTL
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            payload = await self.backend.get(key)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"[Cache] get failed for {key}: {e}")
            payload = None
        if payload is None:
            self.misses += 1
        else:
            self.hits += 1
        return payload

    async def set(self, key: str, payload: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        try:
            await self.backend.set(key, payload, ttl or self.default_ttl)
            return True
        except (redis.RedisError, OSError) as e:
            logger.warning(f"[Cache] set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(key)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"[Cache] delete failed for {key}: {e}")

    async def invalidate_prefix(self, prefix: str) -> int:
        try:
            count = await self.backend.invalidate_prefix(prefix)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"[Cache] invalidate failed for {prefix}: {e}")
            return 0
        if count:
            logger.debug(f"[Cache] Invalidated {count} entries under {prefix}")
        return count

    async def clear(self) -> None:
        await self.backend.clear()
        self.hits = 0
        self.misses = 0

    async def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        try:
            size = await self.backend.size()
        except (redis.RedisError, OSError):
            size = -1
        return {
            "backend": type(self.backend).__name__,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": round(self.hits / total * 100, 2) if total else 0.0,
            "size": size,
        }

    async def close(self) -> None:
        await self.backend.close()


response_cache = ResponseCache()
