"""In-process TTL caches for query embeddings and retrieval results."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import orjson

from reader_retrieval.core.errors import ProviderError
from reader_retrieval.core.metrics import CACHE_LOOKUPS
from reader_retrieval.ingest.embeddings import EmbeddingProvider
from reader_retrieval.models.search import RetrievalFilter, RetrievalMode, RetrievalResult
from reader_retrieval.utils.time import Clock, monotonic_clock

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600.0
MAX_CACHE_SIZE = 1000


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class TTLCache(Generic[T]):
    """Key -> entry map with TTL expiry and insertion-order eviction.

    On every ``set`` expired entries are purged first; if the map is still at
    capacity the oldest inserted entries are evicted until there is room.
    Entries are never mutated: a refresh replaces the entry and moves it to
    the young end of the insertion order.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        clock: Clock = monotonic_clock,
        name: str = "cache",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.ttl = ttl
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_valid(self._clock()):
                self._hits += 1
                outcome = "hit"
            else:
                entry = None
                self._misses += 1
                outcome = "miss"
        CACHE_LOOKUPS.labels(cache=self.name, outcome=outcome).inc()
        return entry.data if entry is not None else None

    def set(self, key: str, value: T, ttl: float | None = None) -> None:
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._purge_expired(now)
            while len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = CacheEntry(data=value, timestamp=now, ttl=self.ttl if ttl is None else ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"size": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]


def canonical_key(prefix: str, *parts: Any) -> str:
    """Serialise key parts with sorted object keys so equal inputs share a key."""
    return f"{prefix}:" + orjson.dumps(list(parts), option=orjson.OPT_SORT_KEYS).decode("utf-8")


class EmbeddingCache:
    """Memoises ``provider.embed`` by verbatim query text.

    Concurrent misses for the same text are not coalesced; each may call the
    provider.
    """

    def __init__(self, provider: EmbeddingProvider, cache: TTLCache[tuple[float, ...]] | None = None) -> None:
        self.provider = provider
        self._cache = cache if cache is not None else TTLCache(name="embedding")

    async def get_or_create(self, text: str) -> tuple[float, ...]:
        key = canonical_key("emb", text)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Embedding cache hit: %s", text[:50])
            return cached
        logger.debug("Embedding cache miss, generating: %s", text[:50])
        try:
            vector = await asyncio.to_thread(self.provider.embed, text)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Embedding provider failed: {exc}") from exc
        frozen = tuple(float(value) for value in vector)
        self._cache.set(key, frozen)
        return frozen

    def stats(self) -> dict[str, int]:
        return self._cache.stats()

    def clear(self) -> None:
        self._cache.clear()


class ResultCache:
    """Memoises whole ``RetrievalResult`` objects per (query, owner, filter, mode, top_k).

    ``generation`` advances on every ``clear``. A writer that read it before
    computing a result passes it back to ``set``; a stale generation is dropped
    so a result computed before a clear is never stored after it.
    """

    def __init__(self, cache: TTLCache[RetrievalResult] | None = None) -> None:
        self._cache = cache if cache is not None else TTLCache(name="result")
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def get(
        self,
        query: str,
        owner_id: str,
        filter: RetrievalFilter | None,
        mode: RetrievalMode,
        top_k: int,
    ) -> RetrievalResult | None:
        return self._cache.get(self._key(query, owner_id, filter, mode, top_k))

    def set(
        self,
        query: str,
        owner_id: str,
        filter: RetrievalFilter | None,
        mode: RetrievalMode,
        top_k: int,
        result: RetrievalResult,
        ttl: float | None = None,
        generation: int | None = None,
    ) -> bool:
        key = self._key(query, owner_id, filter, mode, top_k)
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Dropping result computed before cache clear")
                return False
            self._cache.set(key, result, ttl=ttl)
        return True

    def stats(self) -> dict[str, int]:
        return self._cache.stats()

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache.clear()

    @staticmethod
    def _key(
        query: str,
        owner_id: str,
        filter: RetrievalFilter | None,
        mode: RetrievalMode,
        top_k: int,
    ) -> str:
        scope = filter.to_dict() if filter is not None else None
        return canonical_key("result", query, owner_id, scope, RetrievalMode(mode).value, top_k)


__all__ = [
    "CacheEntry",
    "TTLCache",
    "canonical_key",
    "EmbeddingCache",
    "ResultCache",
    "DEFAULT_TTL_SECONDS",
    "MAX_CACHE_SIZE",
]
