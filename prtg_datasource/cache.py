"""In-memory result cache for backend queries."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from .const import DEFAULT_CACHE_TIME
from .models import Endpoint

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the monotonic time it expires at."""

    key: str
    value: Any
    expires_at: float


def make_cache_key(endpoint: Endpoint, params: Mapping[str, str] | None = None) -> str:
    """Build a cache key from everything that affects a query result."""
    items = sorted((params or {}).items())
    query = "&".join(f"{key}={value}" for key, value in items)
    return f"{endpoint.value}?{query}"


class _KeyLock:
    """Fetch lock of one key and the number of callers holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ResultCache:
    """Thread-safe TTL cache with at most one fetch per key at a time.

    Entries expire lazily: an expired entry is dropped when its key is looked
    up again, and expired entries of other keys are purged whenever a new
    value is stored. Failed fetches are never cached.

    Callers get a shallow copy of the cached value, so reordering or clearing
    a returned list leaves the cache intact. The records inside are frozen.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TIME,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Default time to live in seconds.
            clock: Monotonic clock, replaceable for tests.

        """
        self._ttl = ttl if ttl > 0 else DEFAULT_CACHE_TIME
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    @property
    def ttl(self) -> float:
        """Default time to live in seconds."""
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value for a key, or None when missing or expired."""
        with self._lock:
            entry = self._lookup(key)
        return copy.copy(entry.value) if entry else None

    def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value or fetch, store and return a fresh one.

        Concurrent callers for the same key wait for the first fetch instead
        of issuing their own.

        Args:
            key: Request signature.
            fetch: Callable producing the value on a miss.
            ttl: Time to live for a fetched value, defaults to the cache TTL.

        Returns:
            A shallow copy of the cached or freshly fetched value.

        Raises:
            Exception: Whatever ``fetch`` raises. Nothing is cached then.

        """
        with self._lock:
            entry = self._lookup(key)
            if entry is not None:
                _LOGGER.debug("Cache hit for %s", key)
                return copy.copy(entry.value)
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.users += 1

        try:
            with key_lock.lock:
                with self._lock:
                    entry = self._lookup(key)
                if entry is not None:
                    _LOGGER.debug("Cache hit for %s after waiting", key)
                    return copy.copy(entry.value)

                _LOGGER.debug("Cache miss for %s", key)
                value = fetch()
                self._store(key, value, self._ttl if ttl is None else ttl)
                return copy.copy(value)
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[key]

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()

    def _lookup(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for expired_key in expired:
                del self._entries[expired_key]
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + ttl)
