"""Cache store contract and in-memory implementations."""

from __future__ import annotations

import threading
from typing import Any, Protocol

from asset_optimizer.optimizer.fingerprint import combine_etags, etag_of
from asset_optimizer.optimizer.models import OptimizationResult
from asset_optimizer.optimizer.sources import Source, source_from_dict

CacheValue = OptimizationResult | Source

RESULT_KIND = "result"
SOURCE_KIND = "source"


class CacheStore(Protocol):
    """Key/value store addressed by ``(name, etag)``; safe across distinct keys."""

    def lookup(self, name: str, etag: str) -> CacheValue | None:
        """Return the stored value or ``None``."""

    def store(self, name: str, etag: str, value: CacheValue) -> None:
        """Persist ``value`` under ``(name, etag)``."""

    def etag_of(self, content: str | bytes | Source) -> str:
        """Fingerprint content."""

    def combine_etags(self, first: str, second: str) -> str:
        """Combine two fingerprints into one key."""


class BaseCacheStore:
    def etag_of(self, content: str | bytes | Source) -> str:
        return etag_of(content)

    def combine_etags(self, first: str, second: str) -> str:
        return combine_etags(first, second)


class MemoryCacheStore(BaseCacheStore):
    """Process-local cache."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CacheValue] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.writes = 0

    def lookup(self, name: str, etag: str) -> CacheValue | None:
        with self._lock:
            value = self._entries.get((name, etag))
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def store(self, name: str, etag: str, value: CacheValue) -> None:
        with self._lock:
            self._entries[(name, etag)] = value
            self.writes += 1

    def keys(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullCacheStore(BaseCacheStore):
    """Cache used when caching is disabled: never hits, never stores."""

    def lookup(self, name: str, etag: str) -> CacheValue | None:
        return None

    def store(self, name: str, etag: str, value: CacheValue) -> None:
        return None


def encode_cache_value(value: CacheValue) -> tuple[str, dict[str, Any]]:
    """Return ``(kind, payload)`` for persistent stores."""

    if isinstance(value, OptimizationResult):
        return RESULT_KIND, value.to_cache_payload()
    if isinstance(value, Source):
        return SOURCE_KIND, value.to_dict()
    raise TypeError(f"Unsupported cache value: {type(value).__name__}")


def decode_cache_value(kind: str, payload: dict[str, Any]) -> CacheValue:
    if kind == RESULT_KIND:
        return OptimizationResult.from_cache_payload(payload)
    if kind == SOURCE_KIND:
        return source_from_dict(payload)
    raise ValueError(f"Unknown cache entry kind: {kind!r}")
