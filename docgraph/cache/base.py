"""
Evicting Cache

Generic keyed cache with TTL expiry, an entry-count cap and a byte-size
cap. When either cap is exceeded, expired entries go first, then a single
batch of the least-used entries is evicted:

    evict max(len - max_entries, floor(len * 0.30)) entries
    ranked by (hit_count ascending, inserted_at ascending)

Evicting in batches keeps eviction rare under steady insert load.

Expiry is checked lazily on get/has and by sweep(); start() runs sweep()
periodically on the event loop until stop().

Thread safety:
    All state is guarded by an RLock, so one instance can be shared by
    concurrent pipelines and worker threads.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from docgraph.types import CacheMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVICTION_FRACTION = 0.30


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with bookkeeping."""

    key: str
    value: T
    inserted_at: float
    approx_size_bytes: int
    hit_count: int = 0


class EvictingCache(Generic[T]):
    """
    Size- and TTL-bounded cache.

    Args:
        max_entries: Entry-count cap
        ttl_seconds: Lifetime of an entry; None disables expiry
        max_size_bytes: Approximate byte budget
        sweep_interval: Seconds between background sweeps
        name: Label used in log messages
        clock: Monotonic time source
        sleep: Awaitable sleep used by the background sweep
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float | None = 24 * 3600.0,
        max_size_bytes: int = 100 * 1024 * 1024,
        sweep_interval: float = 3600.0,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.max_size_bytes = max_size_bytes
        self.sweep_interval = sweep_interval
        self.name = name
        self._clock = clock
        self._sleep = sleep

        self._entries: dict[str, CacheEntry[T]] = {}
        self._total_size = 0
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._sweep_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Key generation
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_key(data: Any) -> str:
        """SHA-256 over a stable serialization (dict keys sorted)."""
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        if isinstance(data, str):
            payload = data
        else:
            payload = json.dumps(data, sort_keys=True, default=str, ensure_ascii=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def get(self, key: str) -> T | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry):
                self._remove(key)
                self._expirations += 1
                self._misses += 1
                return None
            entry.hit_count += 1
            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        """True if a live entry exists. Does not count as a hit."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._is_expired(entry):
                self._remove(key)
                self._expirations += 1
                return False
            return True

    def set(self, key: str, value: T) -> None:
        """Insert or replace an entry, evicting if a cap is exceeded."""
        size = self.estimate_size(value)
        with self._lock:
            if size > self.max_size_bytes:
                logger.warning(
                    f"{self.name}: value of ~{size} bytes exceeds the cache budget "
                    f"of {self.max_size_bytes}; not cached"
                )
                return
            if key in self._entries:
                self._remove(key)
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=self._clock(),
                approx_size_bytes=size,
            )
            self._total_size += size

            if len(self._entries) > self.max_entries or self._total_size > self.max_size_bytes:
                self._evict(protect=key)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_size = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def metrics(self) -> CacheMetrics:
        with self._lock:
            total = self._hits + self._misses
            return CacheMetrics(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                total_size_bytes=self._total_size,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    # -------------------------------------------------------------------------
    # Expiry and eviction
    # -------------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove expired entries. Returns count removed."""
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._is_expired(e)]
            for key in expired:
                self._remove(key)
            self._expirations += len(expired)
        if expired:
            logger.debug(f"{self.name}: swept {len(expired)} expired entries")
        return len(expired)

    def _is_expired(self, entry: CacheEntry[T]) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - entry.inserted_at >= self.ttl_seconds

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._total_size -= entry.approx_size_bytes

    def _evict(self, protect: str | None = None) -> None:
        """Drop expired entries, then one batch of least-used entries if still over a cap."""
        self.sweep()
        count = len(self._entries)
        if count <= self.max_entries and self._total_size <= self.max_size_bytes:
            return

        to_evict = max(count - self.max_entries, math.floor(count * EVICTION_FRACTION), 1)
        candidates = sorted(
            (e for e in self._entries.values() if e.key != protect),
            key=lambda e: (e.hit_count, e.inserted_at),
        )

        evicted = 0
        for entry in candidates:
            if evicted >= to_evict and self._total_size <= self.max_size_bytes:
                break
            self._remove(entry.key)
            evicted += 1

        self._evictions += evicted
        logger.debug(f"{self.name}: evicted {evicted} entries ({len(self._entries)} remain)")

    @staticmethod
    def estimate_size(value: Any) -> int:
        """Approximate byte size: 8 bytes per float for vectors, serialized length otherwise."""
        nbytes = getattr(value, "nbytes", None)
        if isinstance(nbytes, int):
            return nbytes
        if isinstance(value, (list, tuple)) and all(isinstance(v, (int, float)) for v in value):
            return len(value) * 8
        if isinstance(value, BaseModel):
            return len(value.model_dump_json().encode("utf-8"))
        if isinstance(value, str):
            return len(value.encode("utf-8"))
        if isinstance(value, bytes):
            return len(value)
        return len(json.dumps(value, default=str).encode("utf-8"))

    # -------------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await self._sleep(self.sweep_interval)
            self.sweep()
