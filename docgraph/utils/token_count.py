"""
Token counting helpers.

Used to keep embedding inputs under the provider's token limit.
"""

from __future__ import annotations

import tiktoken


def _encoding_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_text_tokens(text: str, model: str) -> int:
    """Count tokens for plain text."""
    if not text:
        return 0
    return len(_encoding_for(model).encode(text))


def truncate_to_tokens(text: str, max_tokens: int, model: str) -> str:
    """
    Truncate text to at most `max_tokens` tokens.

    Every token spans at least one character, so text no longer than
    `max_tokens` characters is returned without tokenizing.
    """
    if max_tokens <= 0:
        return ""
    if len(text) <= max_tokens:
        return text

    encoding = _encoding_for(model)
    tokens = encoding.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return encoding.decode(tokens[:max_tokens])
