"""
Embedding Provider Implementations

Modules:
    openai: OpenAI embeddings (text-embedding-3-small/large) via LangChain

Each provider implements the EmbeddingProvider interface with:
    - embed(): Batch embedding generation
    - embed_single(): Single text embedding
    - dimensions: Vector dimensionality
    - model_name: Current model identifier

Sync LangChain methods are wrapped with asyncio.to_thread.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docgraph.providers.embedding.openai import OpenAIEmbeddingProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid loading LangChain on package import."""
    if name == "OpenAIEmbeddingProvider":
        from docgraph.providers.embedding.openai import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAIEmbeddingProvider"]
