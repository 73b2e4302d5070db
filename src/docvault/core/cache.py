"""
Bounded in-memory cache with TTL expiry.

Backs ``memoize()`` in the async validation combinators: validation results
are cached per key for a short TTL so repeated checks of the same input (for
example a uniqueness check while the user types) do not recompute.

Architecture:
    ::

        InMemoryCache
          get(key)    → value | None   (expired entries dropped lazily)
          set(key, value, ttl_seconds=None)
          delete(key) / exists(key) / clear() / size()

Examples:
    >>> from docvault.core.cache import InMemoryCache
    >>> cache = InMemoryCache(max_size=100, default_ttl_seconds=30)
    >>> cache.set("identity:dev", "ok")
    >>> cache.get("identity:dev")
    'ok'

Guardrails:
    ❌ DON'T: Store None as a value (indistinguishable from a miss)
    ✅ DO: Cache concrete results only

Tags:
    cache, ttl, lru, in-memory, docvault

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. Expiry is checked lazily on
    read against a monotonic clock, which tests may replace via ``clock``.

    Attributes:
        max_size: Maximum number of keys before LRU eviction.
        default_ttl_seconds: Default TTL for keys (``None`` → no expiry).
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: float | None = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self.delete(key)
            return None

        self._store.move_to_end(key)
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None

        # Evict LRU if at capacity
        if key not in self._store and len(self._store) >= self._max_size:
            self._store.popitem(last=False)

        self._store[key] = (value, expires_at)
        self._store.move_to_end(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        return self.get(key) is not None

    def clear(self) -> None:
        """Remove all keys."""
        self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


__all__ = [
    "InMemoryCache",
]
