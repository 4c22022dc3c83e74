"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider interface using LangChain's ChatOpenAI. Used as
the extraction oracle: the response text is parsed as JSON downstream.

Example:
    >>> provider = OpenAILLMProvider(api_key="sk-...", model="gpt-4o-mini")
    >>> response = await provider.generate("Return {} as JSON")
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from docgraph.providers.base import LLMProvider

if TYPE_CHECKING:
    from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.0,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import so importing docgraph stays cheap.

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import ChatOpenAI
    except ImportError as e:
        raise ImportError(
            "OpenAI provider requires the 'langchain-openai' package. "
            "Install with: pip install langchain-openai"
        ) from e

    kwargs: dict[str, Any] = {"model": model, "temperature": temperature}
    if api_key:
        kwargs["api_key"] = api_key

    return ChatOpenAI(**kwargs)


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "gpt-4o-mini")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._clients: dict[float, ChatOpenAI] = {}

    def _get_client(self, temperature: float = 0.0) -> "ChatOpenAI":
        """Get or create the ChatOpenAI client for a temperature."""
        client = self._clients.get(temperature)
        if client is None:
            client = _get_chat_openai(
                api_key=self._api_key,
                model=self._model,
                temperature=temperature,
            )
            self._clients[temperature] = client
        return client

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt
            system: Optional system message
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response
        """
        from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

        start = time.perf_counter()
        client = self._get_client(temperature).bind(max_tokens=max_tokens)

        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        response = await client.ainvoke(messages)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{self._model} responded in {elapsed_ms:.0f}ms")
        return str(response.content)

    def with_model(self, model: str) -> "OpenAILLMProvider":
        """Return a new provider instance with a different model."""
        return OpenAILLMProvider(api_key=self._api_key, model=model)
