"""
Oracle-Based Extraction

Entity and relationship extraction from chunks.

Modules:
    prompts: System prompt and per-chunk user template
    parser: Strict-then-repair JSON parsing of oracle replies
    extractor: ChunkExtractor (cache lookup, retry, interpretation)

Relationships are kept only when the chunk yields at least two entities;
their endpoints are resolved against the store snapshot during
deduplication.
"""

from docgraph.ingestion.extraction.extractor import ChunkExtractor, normalize_relationship_type
from docgraph.ingestion.extraction.parser import parse_extraction_response

__all__ = ["ChunkExtractor", "normalize_relationship_type", "parse_extraction_response"]
