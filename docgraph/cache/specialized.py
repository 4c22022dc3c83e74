"""
Specialized Caches

Preconfigured EvictingCache instances for the two hot paths:

    EmbeddingCache: text -> vector, keyed by normalized text
    ResultCache: chunk text -> parsed extraction payload
"""

from __future__ import annotations

from typing import Any

from docgraph.cache.base import EvictingCache
from docgraph.types import ExtractionPayload
from docgraph.utils.text import normalize_for_key

_MB = 1024 * 1024


class EmbeddingCache(EvictingCache[list[float]]):
    """Embedding vectors keyed by whitespace-collapsed, lowercased text."""

    def __init__(
        self,
        max_entries: int = 2000,
        ttl_seconds: float | None = 48 * 3600.0,
        max_size_bytes: int = 200 * _MB,
        sweep_interval: float = 30 * 60.0,
        **kwargs: Any,
    ):
        kwargs.setdefault("name", "embedding-cache")
        super().__init__(max_entries, ttl_seconds, max_size_bytes, sweep_interval, **kwargs)

    def text_key(self, text: str) -> str:
        return self.generate_key(normalize_for_key(text))

    def get_embedding(self, text: str) -> list[float] | None:
        return self.get(self.text_key(text))

    def set_embedding(self, text: str, vector: list[float]) -> None:
        self.set(self.text_key(text), list(vector))


class ResultCache(EvictingCache[ExtractionPayload]):
    """Parsed extraction payloads keyed by generate_key(chunk text)."""

    def __init__(
        self,
        max_entries: int = 500,
        ttl_seconds: float | None = 3600.0,
        max_size_bytes: int = 50 * _MB,
        sweep_interval: float = 15 * 60.0,
        **kwargs: Any,
    ):
        kwargs.setdefault("name", "result-cache")
        super().__init__(max_entries, ttl_seconds, max_size_bytes, sweep_interval, **kwargs)
