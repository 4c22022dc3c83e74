"""
Utility Functions

Helpers used throughout the package.

Modules:
    text: Id generation, normalization and name similarity
    token_count: tiktoken-based counting and truncation
    retry: Exponential backoff for async calls
"""

from docgraph.utils.retry import retry_with_backoff
from docgraph.utils.text import (
    clean_entity_name,
    generate_chunk_id,
    generate_document_id,
    generate_entity_id,
    generate_relationship_id,
    name_similarity,
    normalize_for_key,
)

__all__ = [
    "retry_with_backoff",
    "clean_entity_name",
    "generate_chunk_id",
    "generate_document_id",
    "generate_entity_id",
    "generate_relationship_id",
    "name_similarity",
    "normalize_for_key",
]
