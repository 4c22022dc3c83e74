"""
Code and Plain Text Chunkers

Both treat the document as one region and only differ in where they
prefer to cut: code on line boundaries, prose on paragraph and sentence
boundaries.
"""

from docgraph.ingestion.chunking.splitter import (
    Span,
    code_break,
    sentence_break,
    split_region,
    trim_span,
)
from docgraph.types import ChunkingConfig


def chunk_code(content: str, config: ChunkingConfig) -> list[Span]:
    return _chunk_region(content, config, code_break)


def chunk_plain_text(content: str, config: ChunkingConfig) -> list[Span]:
    return _chunk_region(content, config, sentence_break)


def _chunk_region(content, config, break_finder) -> list[Span]:
    start, end = trim_span(content, 0, len(content))
    if start >= end:
        return []
    pieces = split_region(content, start, end, config, break_finder)
    is_split = len(pieces) > 1
    return [
        Span(
            start=s,
            end=e,
            metadata={"part": i, "split": True} if is_split else {},
        )
        for i, (s, e) in enumerate(pieces)
    ]
