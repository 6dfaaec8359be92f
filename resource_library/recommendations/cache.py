from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any

_DEFAULT_TTL = 300.0  # 5 minutes


def _make_key(request_dict: dict) -> str:
    normalized = json.dumps(request_dict, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


class RecommendationCache:
    """TTL cache for recommendation results, keyed by the request parameters.

    Review writes call ``clear()``, so a cached list is never older than the
    last review change or ``ttl`` seconds, whichever comes first.

    Every ``clear()`` starts a new generation. A caller reads ``generation``
    before computing a result and passes it to ``set``; a result computed
    across a ``clear()`` is then dropped instead of cached.
    """

    def __init__(self, ttl: float = _DEFAULT_TTL) -> None:
        self._ttl = ttl
        self._entries: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, request_dict: dict) -> Any | None:
        key = _make_key(request_dict)
        with self._lock:
            entry = self._entries.get(key)
            if entry and time.time() - entry["created_at"] < self._ttl:
                self._hits += 1
                return entry["value"]
            if entry:
                del self._entries[key]
            self._misses += 1
            return None

    def set(self, request_dict: dict, value: Any, generation: int | None = None) -> bool:
        """Store *value*. Returns ``False`` if *generation* is no longer current."""
        key = _make_key(request_dict)
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = {"value": value, "created_at": time.time()}
            return True

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
            }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def reset(self) -> None:
        """Drop all entries and zero the hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._generation += 1
            self._hits = 0
            self._misses = 0
