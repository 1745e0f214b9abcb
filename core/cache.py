import json
import logging
import threading
import time
from typing import Any, Optional

import redis
from fastapi import Request

from core.config import settings

logger = logging.getLogger(__name__)


class CacheStore:
    """Read-through cache for catalog listings.

    Values must be JSON-serializable. ``invalidate`` drops every key that
    starts with the given prefix and returns how many were removed.
    """

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    def invalidate(self, prefix: str = "") -> int:
        raise NotImplementedError


class InMemoryCacheStore(CacheStore):
    def __init__(self, default_ttl: Optional[int] = None):
        self.default_ttl = default_ttl or settings.CACHE_TTL_SECONDS
        self._store: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if time.monotonic() >= expires_at:
                del self._store[key]
                return None
        return json.loads(raw)

    def set(self, key, value, ttl=None):
        # Stored serialized so callers can never mutate a cached value in place
        raw = json.dumps(value, default=str)
        with self._lock:
            self._store[key] = (time.monotonic() + (ttl or self.default_ttl), raw)

    def invalidate(self, prefix=""):
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
        return len(keys)

    def sweep(self) -> int:
        """Drop expired entries. Housekeeping only, reads already skip them."""
        now = time.monotonic()
        with self._lock:
            expired = [k for k, (exp, _) in self._store.items() if exp <= now]
            for k in expired:
                del self._store[k]
        return len(expired)

    def __len__(self):
        return len(self._store)


class RedisCacheStore(CacheStore):
    def __init__(self, client: "redis.Redis", namespace: str = "cache:", default_ttl: Optional[int] = None):
        self.client = client
        self.namespace = namespace
        self.default_ttl = default_ttl or settings.CACHE_TTL_SECONDS

    def get(self, key):
        try:
            raw = self.client.get(self.namespace + key)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(raw) if raw else None

    def set(self, key, value, ttl=None):
        try:
            self.client.setex(self.namespace + key, ttl or self.default_ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def invalidate(self, prefix=""):
        # Errors propagate; stale entries must not outlive a write
        keys = list(self.client.scan_iter(match=f"{self.namespace}{prefix}*"))
        if keys:
            self.client.delete(*keys)
        return len(keys)


def build_cache_store() -> CacheStore:
    if settings.CACHE_BACKEND == "memory":
        return InMemoryCacheStore()
    return RedisCacheStore(redis.from_url(settings.REDIS_URL, decode_responses=True))


def get_cache(request: Request) -> CacheStore:
    """FastAPI dependency returning the cache created at startup."""
    return request.app.state.cache
