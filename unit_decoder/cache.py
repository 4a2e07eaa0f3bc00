"""Search result caching with Redis primary and in-memory fallback.

The cache only saves latency: entries are keyed by the normalized query and
expire after a fixed TTL, and the service behaves identically without one.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "unit-search"


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...


def cache_key(normalized_query: str, category: str | None = None) -> str:
    scope = category if category is not None else "*"
    digest = hashlib.sha1(f"{scope}\x00{normalized_query}".encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}:{digest}"


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as exc:
            logger.warning("Redis set failed: %s", exc)


class InMemoryCache:
    """Thread-safe TTL cache holding at most ``max_entries`` search results.

    Expired entries are dropped on every write; when the bound is still
    exceeded the least recently used entries go first.
    """

    def __init__(self, max_entries: int = settings.cache_max_entries) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._store: OrderedDict[str, tuple[float, Dict[str, Any]]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at <= time.time():
                self._store.pop(key, None)
                return None
            self._store.move_to_end(key)
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            now = time.time()
            self._purge_expired(now)
            self._store[key] = (now + ttl, value)
            self._store.move_to_end(key)
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _payload) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend | None:
    """Return the process cache, or ``None`` when caching is disabled."""

    global _cache
    if not settings.cache_enabled:
        return None
    if _cache is not None:
        return _cache
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", settings.redis_host, settings.redis_port)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _cache = InMemoryCache(max_entries=settings.cache_max_entries)
    return _cache
