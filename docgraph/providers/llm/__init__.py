"""
LLM Provider Implementations

Modules:
    openai: OpenAI provider (gpt-4o, gpt-4o-mini) via LangChain

Each provider implements the LLMProvider interface with:
    - generate(): Text completion, parsed as JSON by the extraction layer
    - model_name: Current model identifier

Example:
    >>> from docgraph.providers.llm import OpenAILLMProvider
    >>> provider = OpenAILLMProvider(model="gpt-4o-mini")
    >>> response = await provider.generate("Hello!")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docgraph.providers.llm.openai import OpenAILLMProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid loading LangChain on package import."""
    if name == "OpenAILLMProvider":
        from docgraph.providers.llm.openai import OpenAILLMProvider
        return OpenAILLMProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAILLMProvider"]
