"""
Safe Embedder

Wraps an EmbeddingProvider so that embedding never fails the pipeline:

    - inputs are whitespace-normalized and truncated to the token limit
    - vectors are served from an EmbeddingCache when possible
    - provider output is padded or truncated to the configured dimensions
    - any provider failure yields zero vectors (logged as a warning)

With no provider configured every text embeds to the zero vector, which
keeps ingestion usable offline; vector search then simply finds nothing.
"""

from __future__ import annotations

import logging
import re

from docgraph.cache.specialized import EmbeddingCache
from docgraph.providers.base import EmbeddingProvider
from docgraph.utils.token_count import truncate_to_tokens

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class SafeEmbedder:
    """
    Failure-tolerant embedding front end.

    Args:
        provider: Underlying provider, or None for zero vectors
        dimensions: Output vector size
        max_tokens: Token limit applied before embedding
        cache: Optional shared embedding cache
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        dimensions: int = 384,
        max_tokens: int = 8000,
        cache: EmbeddingCache | None = None,
    ):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.provider = provider
        self.dimensions = dimensions
        self.max_tokens = max_tokens
        self.cache = cache

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def zero_vector(self) -> list[float]:
        return [0.0] * self.dimensions

    def prepare(self, text: str) -> str:
        """Normalize whitespace and truncate to the token limit."""
        text = _WHITESPACE.sub(" ", text).strip()
        model = self.provider.model_name if self.provider else "text-embedding-3-small"
        return truncate_to_tokens(text, self.max_tokens, model)

    def fit(self, vector: list[float]) -> list[float]:
        """Pad with zeros or truncate to the configured dimensions."""
        if len(vector) == self.dimensions:
            return [float(v) for v in vector]
        if len(vector) > self.dimensions:
            return [float(v) for v in vector[: self.dimensions]]
        return [float(v) for v in vector] + [0.0] * (self.dimensions - len(vector))

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in order; never raises for provider failures."""
        if not texts:
            return []
        if self.provider is None:
            return [self.zero_vector() for _ in texts]

        prepared = [self.prepare(t) for t in texts]
        results: list[list[float] | None] = [None] * len(prepared)
        missing: list[int] = []

        for i, text in enumerate(prepared):
            if not text:
                results[i] = self.zero_vector()
                continue
            cached = self.cache.get_embedding(text) if self.cache else None
            if cached is not None:
                results[i] = self.fit(cached)
            else:
                missing.append(i)

        if missing:
            try:
                vectors = await self.provider.embed([prepared[i] for i in missing])
                if len(vectors) != len(missing):
                    raise ValueError(
                        f"provider returned {len(vectors)} vectors for {len(missing)} texts"
                    )
            except Exception as e:
                logger.warning(
                    f"Embedding failed for {len(missing)} texts, using zero vectors: {e}"
                )
                for i in missing:
                    results[i] = self.zero_vector()
            else:
                for i, vector in zip(missing, vectors):
                    fitted = self.fit(vector)
                    results[i] = fitted
                    if self.cache is not None:
                        self.cache.set_embedding(prepared[i], fitted)

        return [r if r is not None else self.zero_vector() for r in results]

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]
