"""Cache service with Protocol pattern for dependency injection.

Provides RedisCacheService (shared cache), MemoryCacheService (per-process
map + expiry) and NullCacheService (no-op fallback). Callers never rely on a
hit for correctness.
"""

import json
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

import redis

from ..config import settings

logger = logging.getLogger(__name__)


class CacheService(Protocol):
    """Cache service interface."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str, ttl: int) -> None: ...
    def get_json(self, key: str) -> Any | None: ...
    def set_json(self, key: str, data: Any, ttl: int) -> None: ...


class _JsonMixin:
    def get_json(self, key: str) -> Any | None:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    def set_json(self, key: str, data: Any, ttl: int) -> None:
        self.set(key, json.dumps(data, ensure_ascii=False), ttl)


class RedisCacheService(_JsonMixin):
    """Redis-backed cache implementation."""

    def __init__(self, redis_url: str) -> None:
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._client.ping()

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError:
            logger.warning("Redis GET failed for %s", key)
            return None

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self._client.setex(key, ttl, value)
        except redis.RedisError:
            logger.warning("Redis SET failed for %s", key)


class MemoryCacheService(_JsonMixin):
    """In-process cache: a dict of key -> (expires_at, value)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._store: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: int) -> None:
        if key not in self._store and len(self._store) >= self._max_entries:
            self._evict_expired()
            if len(self._store) >= self._max_entries:
                # Oldest insertion goes first
                self._store.pop(next(iter(self._store)))
        self._store[key] = (self._clock() + ttl, value)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (exp, _) in self._store.items() if now >= exp]:
            del self._store[key]


class NullCacheService:
    """No-op cache for when Redis is unavailable."""

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str, ttl: int) -> None:
        pass

    def get_json(self, key: str) -> Any | None:
        return None

    def set_json(self, key: str, data: Any, ttl: int) -> None:
        pass


def create_cache_service() -> CacheService:
    """Factory: Redis when reachable, otherwise a per-process memory cache."""
    if not settings.redis_url:
        return MemoryCacheService()
    try:
        return RedisCacheService(settings.redis_url)
    except redis.RedisError:
        logger.warning("Redis unreachable at %s, using in-memory cache", settings.redis_url)
        return MemoryCacheService()
