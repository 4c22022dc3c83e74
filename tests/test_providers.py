"""
Tests for providers, the safe embedder and retry helpers.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from docgraph.cache import EmbeddingCache
from docgraph.providers.embedder import SafeEmbedder
from docgraph.providers.embedding.openai import OpenAIEmbeddingProvider
from docgraph.providers.llm.openai import OpenAILLMProvider
from docgraph.utils.retry import retry_with_backoff


def _provider(vectors=None, side_effect=None) -> MagicMock:
    provider = MagicMock()
    provider.model_name = "fake-embedder"
    provider.embed = AsyncMock(return_value=vectors, side_effect=side_effect)
    return provider


class TestSafeEmbedder:
    """Tests for SafeEmbedder."""

    @pytest.mark.asyncio
    async def test_no_provider_gives_zero_vectors(self):
        """Test that a disabled embedder returns zero vectors of the right size."""
        embedder = SafeEmbedder(None, dimensions=4)

        assert embedder.enabled is False
        assert await embedder.embed(["a", "b"]) == [[0.0] * 4, [0.0] * 4]

    @pytest.mark.asyncio
    async def test_vectors_padded_and_truncated(self):
        """Test that provider vectors are fitted to the configured dimensions."""
        provider = _provider([[1.0, 2.0], [1.0, 2.0, 3.0, 4.0, 5.0]])
        vectors = await SafeEmbedder(provider, dimensions=3).embed(["short", "long"])

        assert vectors == [[1.0, 2.0, 0.0], [1.0, 2.0, 3.0]]

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_to_zero(self):
        """Test that a provider exception yields zero vectors instead of raising."""
        embedder = SafeEmbedder(_provider(side_effect=ConnectionError("offline")), dimensions=2)
        assert await embedder.embed(["text"]) == [[0.0, 0.0]]

    @pytest.mark.asyncio
    async def test_count_mismatch_is_a_failure(self):
        """Test that a short provider response is treated as a failure."""
        embedder = SafeEmbedder(_provider([[1.0, 1.0]]), dimensions=2)
        assert await embedder.embed(["one", "two"]) == [[0.0, 0.0], [0.0, 0.0]]

    @pytest.mark.asyncio
    async def test_blank_text_not_sent(self):
        """Test that whitespace-only text embeds to zero without a provider call."""
        provider = _provider([[1.0, 0.0]])
        vectors = await SafeEmbedder(provider, dimensions=2).embed(["  \n ", "real  text"])

        assert vectors == [[0.0, 0.0], [1.0, 0.0]]
        provider.embed.assert_awaited_once_with(["real text"])

    @pytest.mark.asyncio
    async def test_cache_reused(self):
        """Test that cached vectors skip the provider on the second call."""
        provider = _provider([[0.5, 0.5]])
        embedder = SafeEmbedder(provider, dimensions=2, cache=EmbeddingCache())

        first = await embedder.embed_one("Kafka")
        second = await embedder.embed_one("Kafka")

        assert first == second == [0.5, 0.5]
        provider.embed.assert_awaited_once()

    def test_invalid_dimensions(self):
        """Test that non-positive dimensions are rejected."""
        with pytest.raises(ValueError):
            SafeEmbedder(None, dimensions=0)

    @pytest.mark.asyncio
    async def test_empty_input(self):
        """Test that no texts means no vectors."""
        assert await SafeEmbedder(_provider()).embed([]) == []


class TestOpenAIProviders:
    """Tests for the LangChain-backed OpenAI providers."""

    @pytest.mark.asyncio
    async def test_generate_sends_system_and_prompt(self):
        """Test that generate builds system and human messages."""
        client = MagicMock()
        bound = MagicMock()
        bound.ainvoke = AsyncMock(return_value=MagicMock(content='{"entities": []}'))
        client.bind.return_value = bound

        with patch("docgraph.providers.llm.openai._get_chat_openai", return_value=client):
            provider = OpenAILLMProvider(api_key="test-key")
            text = await provider.generate("Extract", system="You extract", max_tokens=100)

        assert text == '{"entities": []}'
        client.bind.assert_called_once_with(max_tokens=100)
        messages = bound.ainvoke.call_args.args[0]
        assert [m.content for m in messages] == ["You extract", "Extract"]

    def test_with_model(self):
        """Test that with_model returns a provider for another model."""
        provider = OpenAILLMProvider(api_key="k").with_model("gpt-4o")
        assert provider.model_name == "gpt-4o"

    def test_embedding_dimensions(self):
        """Test requested dimensions for text-embedding-3 and native sizes otherwise."""
        assert OpenAIEmbeddingProvider(dimensions=384).dimensions == 384
        assert OpenAIEmbeddingProvider(
            model="text-embedding-ada-002", dimensions=384
        ).dimensions == 1536

    @pytest.mark.asyncio
    async def test_embed_uses_client(self):
        """Test that embed delegates to embed_documents."""
        client = MagicMock()
        client.embed_documents.return_value = [[0.1, 0.2]]

        with patch(
            "docgraph.providers.embedding.openai._get_openai_embeddings", return_value=client
        ) as factory:
            provider = OpenAIEmbeddingProvider(api_key="k", dimensions=2)
            assert await provider.embed(["hello"]) == [[0.1, 0.2]]
            assert await provider.embed([]) == []

        factory.assert_called_once_with(
            api_key="k", model="text-embedding-3-small", dimensions=2
        )


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_after_failures(self):
        """Test exponential delays before an eventual success."""
        func = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "ok"])
        sleep = AsyncMock()

        result = await retry_with_backoff(func, max_retries=3, base_delay=1.0, sleep=sleep)

        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_delay_capped(self):
        """Test that delays never exceed max_delay."""
        func = AsyncMock(side_effect=[RuntimeError()] * 3 + ["ok"])
        sleep = AsyncMock()

        await retry_with_backoff(func, max_retries=3, base_delay=4.0, max_delay=5.0, sleep=sleep)

        assert [c.args[0] for c in sleep.await_args_list] == [4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error(self):
        """Test that the last exception propagates after all attempts."""
        func = AsyncMock(side_effect=ValueError("bad"))

        with pytest.raises(ValueError, match="bad"):
            await retry_with_backoff(func, max_retries=2, sleep=AsyncMock())
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self):
        """Test that exceptions outside retryable_exceptions are not retried."""
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await retry_with_backoff(
                func, retryable_exceptions=(TimeoutError,), sleep=AsyncMock()
            )
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_constant_delay(self):
        """Test non-exponential retry delays."""
        func = AsyncMock(side_effect=[RuntimeError(), RuntimeError(), 1])
        sleep = AsyncMock()

        await retry_with_backoff(func, base_delay=0.5, exponential=False, sleep=sleep)

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]
