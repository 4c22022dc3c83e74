"""
Tests for the evicting cache and its presets.

Time is injected through a fake clock, so TTL and sweep behaviour is
tested without waiting.
"""

import asyncio

import pytest

from docgraph.cache import EmbeddingCache, EvictingCache, ResultCache
from docgraph.types import ExtractionPayload, RawEntity


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestEvictingCacheBasics:
    """Tests for get/set/has/delete and metrics."""

    def test_get_missing_counts_miss(self):
        """Test that a missing key returns None and counts a miss."""
        cache = EvictingCache[str]()
        assert cache.get("nope") is None
        assert cache.metrics().misses == 1

    def test_set_and_get(self):
        """Test that a stored value is returned and counted as a hit."""
        cache = EvictingCache[str]()
        cache.set("k", "value")
        assert cache.get("k") == "value"
        metrics = cache.metrics()
        assert metrics.hits == 1
        assert metrics.entries == 1
        assert metrics.hit_rate == 1.0

    def test_has_does_not_count_hit(self):
        """Test that has() leaves hit counters untouched."""
        cache = EvictingCache[str]()
        cache.set("k", "v")
        assert cache.has("k")
        assert "k" in cache
        assert cache.metrics().hits == 0

    def test_replace_updates_size(self):
        """Test that replacing a key does not double count its size."""
        cache = EvictingCache[str]()
        cache.set("k", "a" * 10)
        cache.set("k", "b" * 4)
        assert len(cache) == 1
        assert cache.metrics().total_size_bytes == 4

    def test_delete_and_clear(self):
        """Test delete() and clear()."""
        cache = EvictingCache[str]()
        cache.set("a", "1")
        cache.set("b", "2")
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0
        assert cache.metrics().total_size_bytes == 0

    def test_oversized_value_not_cached(self):
        """Test that a value larger than the byte budget is skipped."""
        cache = EvictingCache[str](max_size_bytes=100)
        cache.set("big", "x" * 200)
        assert len(cache) == 0

    def test_invalid_limits(self):
        """Test that non-positive caps are rejected."""
        with pytest.raises(ValueError):
            EvictingCache(max_entries=0)
        with pytest.raises(ValueError):
            EvictingCache(max_size_bytes=0)

    def test_generate_key_is_order_independent(self):
        """Test that dict key order does not change the cache key."""
        assert EvictingCache.generate_key({"a": 1, "b": 2}) == EvictingCache.generate_key(
            {"b": 2, "a": 1}
        )
        assert EvictingCache.generate_key("x") != EvictingCache.generate_key("y")

    def test_estimate_size_of_vector(self):
        """Test that numeric lists are sized at 8 bytes per element."""
        assert EvictingCache.estimate_size([0.1, 0.2, 0.3]) == 24


class TestEviction:
    """Tests for count- and size-based eviction."""

    def test_evicts_least_used_oldest_batch(self):
        """Test that overflow evicts the lowest (hit_count, inserted_at) entries."""
        clock = FakeClock()
        cache = EvictingCache[str](max_entries=10, ttl_seconds=None, clock=clock)
        for i in range(10):
            clock.now = float(i)
            cache.set(f"k{i}", f"v{i}")
        for i in range(5):
            cache.get(f"k{i}")

        clock.now = 10.0
        cache.set("k10", "v10")

        remaining = {f"k{i}" for i in range(11) if cache.has(f"k{i}")}
        assert len(cache) <= 10
        assert {"k5", "k6", "k7"}.isdisjoint(remaining)
        assert remaining == {"k0", "k1", "k2", "k3", "k4", "k8", "k9", "k10"}
        assert cache.metrics().evictions == 3

    def test_new_entry_is_never_evicted(self):
        """Test that the entry being inserted survives its own eviction pass."""
        cache = EvictingCache[str](max_entries=1, ttl_seconds=None)
        cache.set("old", "1")
        cache.set("new", "2")
        assert cache.get("new") == "2"
        assert cache.get("old") is None

    def test_size_cap_evicts_until_under_budget(self):
        """Test that exceeding the byte budget evicts enough entries."""
        clock = FakeClock()
        cache = EvictingCache[str](
            max_entries=100, ttl_seconds=None, max_size_bytes=50, clock=clock
        )
        for i in range(5):
            clock.now = float(i)
            cache.set(f"k{i}", "x" * 10)
        clock.now = 5.0
        cache.set("k5", "x" * 10)

        assert cache.metrics().total_size_bytes <= 50
        assert cache.has("k5")
        assert not cache.has("k0")


class TestExpiry:
    """Tests for TTL expiry and sweeping."""

    def test_entry_expires_after_ttl(self):
        """Test lazy expiry on get()."""
        clock = FakeClock()
        cache = EvictingCache[str](ttl_seconds=10, clock=clock)
        cache.set("k", "v")

        clock.now = 5.0
        assert cache.get("k") == "v"

        clock.now = 10.0
        assert cache.get("k") is None
        assert cache.metrics().expirations == 1

    def test_sweep_removes_only_expired(self):
        """Test that sweep() removes expired entries and keeps live ones."""
        clock = FakeClock()
        cache = EvictingCache[str](ttl_seconds=10, clock=clock)
        cache.set("old", "1")
        clock.now = 6.0
        cache.set("young", "2")

        clock.now = 11.0
        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.has("young")

    def test_no_ttl_never_expires(self):
        """Test that ttl_seconds=None disables expiry."""
        clock = FakeClock()
        cache = EvictingCache[str](ttl_seconds=None, clock=clock)
        cache.set("k", "v")
        clock.now = 1e9
        assert cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_background_sweep_start_stop(self):
        """Test that start() sweeps periodically and stop() cancels the task."""
        clock = FakeClock()

        async def fake_sleep(seconds: float) -> None:
            await asyncio.sleep(0)

        cache = EvictingCache[str](
            ttl_seconds=1, sweep_interval=60, clock=clock, sleep=fake_sleep
        )
        cache.set("k", "v")
        clock.now = 2.0

        await cache.start()
        assert cache.is_sweeping
        for _ in range(5):
            await asyncio.sleep(0)

        assert len(cache) == 0
        assert cache.metrics().expirations == 1

        await cache.stop()
        assert not cache.is_sweeping

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        """Test that stop() is a no-op when never started."""
        cache = EvictingCache[str]()
        await cache.stop()
        assert not cache.is_sweeping


class TestSpecializedCaches:
    """Tests for EmbeddingCache and ResultCache."""

    def test_embedding_cache_normalizes_text(self):
        """Test that whitespace and case variants share an embedding."""
        cache = EmbeddingCache()
        cache.set_embedding("Hello   World", [1.0, 2.0])
        assert cache.get_embedding("hello world") == [1.0, 2.0]

    def test_result_cache_stores_payloads(self):
        """Test that ResultCache round-trips an ExtractionPayload."""
        cache = ResultCache()
        payload = ExtractionPayload(entities=[RawEntity(name="Acme")])
        key = cache.generate_key("chunk text")
        cache.set(key, payload)
        assert cache.get(key) == payload

    def test_preset_defaults(self):
        """Test the preset limits."""
        assert ResultCache().max_entries == 500
        assert ResultCache().ttl_seconds == 3600.0
        assert EmbeddingCache().max_entries == 2000
        assert EmbeddingCache().name == "embedding-cache"
