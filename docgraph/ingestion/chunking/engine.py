"""
Chunking Engine

Dispatches a document to the strategy for its content type, then turns
the resulting spans into DocumentChunks.

Post-processing:
    - Chunks shorter than min_chunk_size are dropped with a warning,
      except complete heading-delimited markdown sections and documents
      that fit in a single chunk
    - Surviving chunks get sequential, deterministic ids
    - Stats are computed over the survivors

Chunking is a pure function of (content, content type, config).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from docgraph.ingestion.chunking.markdown import chunk_markdown
from docgraph.ingestion.chunking.splitter import Span
from docgraph.ingestion.chunking.structured import chunk_json, chunk_xml
from docgraph.ingestion.chunking.text import chunk_code, chunk_plain_text
from docgraph.ingestion.classify import classify
from docgraph.types import (
    ChunkingConfig,
    ChunkingResult,
    ChunkingStats,
    ContentType,
    Document,
    DocumentChunk,
)
from docgraph.utils.text import generate_chunk_id

logger = logging.getLogger(__name__)

_Strategy = Callable[[str, ChunkingConfig], "list[Span] | None"]

_STRATEGIES: dict[ContentType, _Strategy] = {
    ContentType.MARKDOWN: chunk_markdown,
    ContentType.CODE: chunk_code,
    ContentType.JSON: chunk_json,
    ContentType.XML: chunk_xml,
    ContentType.PLAIN_TEXT: chunk_plain_text,
}


class ChunkingEngine:
    """
    Content-aware document chunker.

    Example:
        >>> engine = ChunkingEngine(ChunkingConfig(max_chunk_size=4000))
        >>> result = engine.chunk(document)
        >>> [c.heading for c in result.chunks]
    """

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or ChunkingConfig()

    def chunk(
        self,
        document: Document,
        content_type: ContentType | None = None,
    ) -> ChunkingResult:
        """
        Chunk a document.

        Args:
            document: Document to chunk
            content_type: Override for the classifier

        Returns:
            ChunkingResult with chunks in sequence order and warnings
        """
        detected = ContentType(content_type) if content_type else classify(document)
        content = document.content

        spans = _STRATEGIES[detected](content, self.config)
        used = detected
        if spans is None:
            logger.info(
                f"Document {document.id}: {detected.value} structure not found, "
                "falling back to plain text"
            )
            used = ContentType.PLAIN_TEXT
            spans = chunk_plain_text(content, self.config)

        warnings: list[str] = []
        chunks: list[DocumentChunk] = []
        single = len(spans) == 1

        for span in spans:
            text = span.text if span.text is not None else content[span.start:span.end]
            if not text.strip() or span.end <= span.start:
                continue

            if (
                len(text) < self.config.min_chunk_size
                and not span.complete_section
                and not single
            ):
                message = (
                    f"Dropped undersized chunk at offsets {span.start}-{span.end} "
                    f"({len(text)} < {self.config.min_chunk_size} chars)"
                )
                logger.warning(f"Document {document.id}: {message}")
                warnings.append(message)
                continue

            sequence = len(chunks)
            chunks.append(
                DocumentChunk(
                    id=generate_chunk_id(document.id, sequence),
                    document_id=document.id,
                    text=text,
                    start_offset=span.start,
                    end_offset=span.end,
                    sequence_index=sequence,
                    heading=span.heading,
                    header_path=span.header_path,
                    content_type=used,
                    metadata=dict(span.metadata),
                )
            )

        stats = _compute_stats(chunks)
        logger.debug(
            f"Document {document.id}: {stats.count} {used.value} chunks "
            f"(avg {stats.avg_size:.0f} chars, {len(warnings)} dropped)"
        )
        return ChunkingResult(
            chunks=chunks,
            content_type=used.value,
            warnings=warnings,
            stats=stats,
        )


def chunk_document(document: Document, config: ChunkingConfig | None = None) -> ChunkingResult:
    """Convenience wrapper around ChunkingEngine.chunk."""
    return ChunkingEngine(config).chunk(document)


def _compute_stats(chunks: list[DocumentChunk]) -> ChunkingStats:
    if not chunks:
        return ChunkingStats()
    sizes = [len(c.text) for c in chunks]
    overlaps = sum(
        1 for prev, nxt in zip(chunks, chunks[1:]) if nxt.start_offset < prev.end_offset
    )
    return ChunkingStats(
        count=len(chunks),
        avg_size=sum(sizes) / len(sizes),
        min_size=min(sizes),
        max_size=max(sizes),
        overlap_count=overlaps,
    )
