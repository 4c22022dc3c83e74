"""
LLM and Embedding Providers

Provider-agnostic interfaces for the extraction oracle and the embedder.

Modules:
    base: Abstract provider interfaces
    llm/: LLM provider implementations
    embedding/: Embedding provider implementations
    embedder: SafeEmbedder (normalize, truncate, cache, zero-vector fallback)

Example:
    >>> from docgraph.providers import LLMProvider, EmbeddingProvider
    >>> from docgraph.providers.llm import OpenAILLMProvider
    >>> from docgraph.providers.embedding import OpenAIEmbeddingProvider
"""

from docgraph.providers.base import EmbeddingProvider, LLMProvider

__all__ = ["LLMProvider", "EmbeddingProvider"]
