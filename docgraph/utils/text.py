"""
Text Processing Utilities

Id generation and text normalization shared by chunking, extraction and
deduplication.
"""

from __future__ import annotations

import hashlib
import re

from rapidfuzz.distance import Levenshtein

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def clean_entity_name(name: str) -> str:
    """
    Clean an entity name by removing parenthesized qualifiers.

    Args:
        name: Raw entity name from extraction

    Returns:
        Cleaned entity name ("Kafka (streaming platform)" -> "Kafka")
    """
    name = re.sub(r"\s*\([^)]*\)\s*", " ", name)
    name = _WHITESPACE.sub(" ", name)
    return name.strip()


def generate_entity_id(name: str) -> str:
    """
    Generate an entity id from its name.

    Lowercases, strips non-alphanumerics and joins words with underscores.
    Names with no alphanumeric characters fall back to a hash so that the
    id is never empty.
    """
    normalized = _NON_ALNUM.sub("", name.lower())
    normalized = _WHITESPACE.sub("_", normalized.strip())
    if normalized:
        return normalized
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:16]
    return f"entity_{digest}"


def generate_relationship_id(source_id: str, target_id: str, rel_type: str) -> str:
    """Generate relationship ID: rel_ + sha256("{source}_{target}_{type}")[:16]"""
    key = f"{source_id}_{target_id}_{rel_type}"
    return "rel_" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def generate_document_id(content: str, filename: str | None = None) -> str:
    """Generate a content-addressed document id so re-ingestion is idempotent."""
    key = f"{filename or ''}\n{content}"
    return "doc_" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def generate_chunk_id(doc_id: str, sequence: int) -> str:
    """Generate chunk ID: {doc_id}_chunk_{sequence:04d}"""
    return f"{doc_id}_chunk_{sequence:04d}"


def normalize_for_key(text: str) -> str:
    """Collapse whitespace and lowercase; used for cache keys of free text."""
    return _WHITESPACE.sub(" ", text).strip().lower()


def name_similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity in [0, 1], case-insensitive.

    1.0 means identical after lowercasing.
    """
    return Levenshtein.normalized_similarity(a.lower().strip(), b.lower().strip())


def tokenize_words(text: str) -> set[str]:
    """Lowercased alphanumeric word set."""
    return set(re.findall(r"[a-z0-9]+", text.lower()))
