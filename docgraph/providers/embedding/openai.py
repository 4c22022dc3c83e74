"""
OpenAI Embedding Provider (LangChain-based)

Implements EmbeddingProvider interface using LangChain's OpenAIEmbeddings.
text-embedding-3 models accept a `dimensions` parameter, so vectors are
requested at the store's configured size directly.

Example:
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small", dimensions=384)
    >>> vectors = await provider.embed(["Hello world", "Goodbye world"])
    >>> len(vectors[0])
    384
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from docgraph.providers.base import EmbeddingProvider

if TYPE_CHECKING:
    from langchain_openai import OpenAIEmbeddings


# Native output size per model
MODEL_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
) -> "OpenAIEmbeddings":
    """
    Get an OpenAIEmbeddings instance.

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import OpenAIEmbeddings
    except ImportError as e:
        raise ImportError(
            "OpenAI embedding provider requires the 'langchain-openai' package. "
            "Install with: pip install langchain-openai"
        ) from e

    kwargs: dict[str, Any] = {"model": model}
    if dimensions is not None:
        kwargs["dimensions"] = dimensions
    if api_key:
        from pydantic import SecretStr
        kwargs["api_key"] = SecretStr(api_key)
    return OpenAIEmbeddings(**kwargs)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "text-embedding-3-small")
        dimensions: Requested vector size; only text-embedding-3 models honor it
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        supports_dimensions = model.startswith("text-embedding-3")
        self._requested = dimensions if supports_dimensions else None
        self._dimensions = self._requested or MODEL_DIMENSIONS.get(model, 1536)
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> "OpenAIEmbeddings":
        """Get or create the OpenAIEmbeddings client."""
        if self._client is None:
            self._client = _get_openai_embeddings(
                api_key=self._api_key,
                model=self._model,
                dimensions=self._requested,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts (same order as input)."""
        if not texts:
            return []

        client = self._get_client()

        # LangChain's embed_documents is synchronous, run in thread pool
        return await asyncio.to_thread(client.embed_documents, texts)

    async def embed_single(self, text: str) -> list[float]:
        client = self._get_client()
        return await asyncio.to_thread(client.embed_query, text)
