"""
Document Chunking

Transforms documents into offset-addressed chunks suitable for extraction.

Modules:
    engine: ChunkingEngine, dispatch and post-processing
    markdown: Heading-aware section chunking with breadcrumbs
    text: Code (line boundaries) and plain text (sentence boundaries)
    structured: JSON (element batches) and XML (element blocks)
    splitter: Shared windowed splitter with overlap
"""

from docgraph.ingestion.chunking.engine import ChunkingEngine, chunk_document

__all__ = ["ChunkingEngine", "chunk_document"]
