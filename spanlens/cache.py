"""
Analysis Result Cache

In-memory TTL cache for classifier results.
Key = SHA-256(text + settings). TTL from settings.CACHE_TTL.

Prevents duplicate classifier calls for identical inputs. Error results
are never stored. Guarded by an asyncio lock.

Usage:
    from spanlens.cache import analysis_cache
    cached = await analysis_cache.get(text, settings_key)
    if cached:
        return cached
    result = await analyze_text(...)
    await analysis_cache.put(text, settings_key, result)
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import Optional

from spanlens.config import settings


class AnalysisCache:
    """In-memory cache with TTL eviction."""

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 500):
        self._cache: dict[str, tuple[float, dict]] = {}
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _make_key(text: str, settings_key: str) -> str:
        raw = f"{text}||{settings_key}"
        return hashlib.sha256(raw.encode()).hexdigest()

    async def get(self, text: str, settings_key: str) -> Optional[dict]:
        """Return cached result if exists and not expired."""
        key = self._make_key(text, settings_key)
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            ts, result = entry
            if time.monotonic() - ts > self._ttl:
                del self._cache[key]
                self._misses += 1
                return None

            self._hits += 1
            return {**result, "_cached": True}

    async def put(self, text: str, settings_key: str, result: dict) -> None:
        """Store a successful result. Evicts the oldest entry when full."""
        if "error" in result:
            return
        key = self._make_key(text, settings_key)
        async with self._lock:
            if len(self._cache) >= self._max_entries and key not in self._cache:
                oldest_key = min(self._cache, key=lambda k: self._cache[k][0])
                del self._cache[oldest_key]

            self._cache[key] = (time.monotonic(), result)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    @property
    def stats(self) -> dict:
        """Cache hit/miss statistics."""
        total = self._hits + self._misses
        return {
            "entries": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 3) if total > 0 else 0.0,
        }


# Singleton, shared across the application
analysis_cache = AnalysisCache(
    ttl_seconds=settings.CACHE_TTL, max_entries=settings.CACHE_MAX_ENTRIES,
)
