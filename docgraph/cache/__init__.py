"""
Caching

Modules:
    base: EvictingCache, TTL + count + size bounded generic cache
    specialized: EmbeddingCache and ResultCache presets
"""

from docgraph.cache.base import CacheEntry, EvictingCache
from docgraph.cache.specialized import EmbeddingCache, ResultCache

__all__ = ["CacheEntry", "EvictingCache", "EmbeddingCache", "ResultCache"]
