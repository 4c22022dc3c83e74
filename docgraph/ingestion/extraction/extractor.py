"""
Chunk Extraction

Turns one chunk into entities and relationships:

    1. Look up the parsed payload in the ResultCache (key: chunk text)
    2. On a miss, prompt the oracle (with bounded retry) and parse the reply
    3. Interpret the payload: names become deterministic ids, provenance
       is stamped with the document and chunk ids

Example:
    >>> extractor = ChunkExtractor(llm, cache=ResultCache())
    >>> extraction = await extractor.extract(chunk, title="Guide")
    >>> [e.name for e in extraction.entities]
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from docgraph.exceptions import ExtractionError
from docgraph.ingestion.extraction.parser import parse_extraction_response
from docgraph.ingestion.extraction.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt
from docgraph.types import (
    ChunkExtraction,
    DocumentChunk,
    Entity,
    ExtractionPayload,
    Relationship,
)
from docgraph.utils.retry import retry_with_backoff
from docgraph.utils.text import clean_entity_name, generate_entity_id, generate_relationship_id

if TYPE_CHECKING:
    from docgraph.cache import ResultCache
    from docgraph.providers.base import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_ENTITY_TYPES = ["Person", "Organization", "Technology", "Concept", "Location", "Event"]

_REL_TYPE_CHARS = re.compile(r"[^a-z0-9]+")


def normalize_relationship_type(value: str) -> str:
    """"Part Of" -> "part_of"; empty labels become "related_to"."""
    normalized = _REL_TYPE_CHARS.sub("_", value.strip().lower()).strip("_")
    return normalized or "related_to"


class ChunkExtractor:
    """
    Oracle-backed extraction for single chunks.

    Args:
        llm: Extraction oracle
        cache: Optional ResultCache shared across documents
        temperature: Oracle sampling temperature
        max_tokens: Oracle response limit
        max_retries: Retries per chunk after the first attempt
        base_delay: Initial backoff delay in seconds
        max_delay: Backoff cap in seconds
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        llm: LLMProvider,
        cache: ResultCache | None = None,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.llm = llm
        self.cache = cache
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    async def fetch_payload(
        self,
        chunk: DocumentChunk,
        *,
        title: str = "",
        entity_types: Sequence[str] = DEFAULT_ENTITY_TYPES,
        known_entities: Sequence[Entity] = (),
        known_limit: int = 20,
        use_cache: bool = True,
    ) -> tuple[ExtractionPayload, bool, list[str]]:
        """
        Get the parsed oracle payload for a chunk.

        Returns:
            (payload, served from cache, parse warnings)

        Raises:
            ExtractionError: If the oracle keeps failing or its reply holds
                no recoverable JSON object
        """
        key = self.cache.generate_key(chunk.text) if self.cache is not None else None
        if use_cache and self.cache is not None and key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Result cache hit for {chunk.id}")
                return cached, True, []

        prompt = build_extraction_prompt(
            chunk,
            title=title,
            entity_types=entity_types,
            known_entities=known_entities,
            known_limit=known_limit,
        )

        async def call_oracle() -> str:
            return await self.llm.generate(
                prompt,
                system=EXTRACTION_SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

        try:
            response = await retry_with_backoff(
                call_oracle,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                sleep=self._sleep,
            )
        except Exception as e:
            raise ExtractionError(f"Oracle call failed: {e}", chunk_id=chunk.id) from e

        parsed = parse_extraction_response(response)
        if not parsed.ok:
            raise ExtractionError(parsed.error or "Unparseable oracle response", chunk_id=chunk.id)

        if self.cache is not None and key is not None:
            self.cache.set(key, parsed.payload)
        return parsed.payload, False, list(parsed.warnings)

    def interpret(self, payload: ExtractionPayload, chunk: DocumentChunk) -> ChunkExtraction:
        """Convert a payload into graph artifacts owned by this chunk."""
        now = datetime.now(timezone.utc).isoformat()
        warnings: list[str] = []
        doc_ids = {chunk.document_id}
        chunk_ids = {chunk.id}

        entities: dict[str, Entity] = {}
        for raw in payload.entities:
            name = clean_entity_name(raw.name)
            if not name:
                warnings.append(f"Skipped entity with blank name in {chunk.id}")
                continue
            entity_id = generate_entity_id(name)
            if entity_id in entities:
                existing = entities[entity_id]
                existing.confidence = max(existing.confidence, raw.confidence)
                if not existing.description and raw.description:
                    existing.description = raw.description
                continue
            entities[entity_id] = Entity(
                id=entity_id,
                name=name,
                type=raw.type.strip() or "Concept",
                description=raw.description.strip(),
                source_document_ids=set(doc_ids),
                source_chunk_ids=set(chunk_ids),
                confidence=raw.confidence,
                created_at=now,
                updated_at=now,
            )

        relationships: dict[str, Relationship] = {}
        if payload.relationships and len(entities) < 2:
            warnings.append(
                f"Discarded {len(payload.relationships)} relationships from {chunk.id}: "
                f"fewer than 2 entities extracted"
            )
        elif payload.relationships:
            for raw in payload.relationships:
                source_id = generate_entity_id(clean_entity_name(raw.source))
                target_id = generate_entity_id(clean_entity_name(raw.target))
                rel_type = normalize_relationship_type(raw.type)
                rel_id = generate_relationship_id(source_id, target_id, rel_type)
                if rel_id in relationships:
                    continue
                relationships[rel_id] = Relationship(
                    id=rel_id,
                    source_entity_id=source_id,
                    target_entity_id=target_id,
                    type=rel_type,
                    description=raw.description.strip(),
                    weight=raw.weight,
                    bidirectional=raw.bidirectional,
                    source_document_ids=set(doc_ids),
                    source_chunk_ids=set(chunk_ids),
                    confidence=raw.confidence,
                    created_at=now,
                    updated_at=now,
                )

        return ChunkExtraction(
            chunk_id=chunk.id,
            sequence_index=chunk.sequence_index,
            entities=list(entities.values()),
            relationships=list(relationships.values()),
            warnings=warnings,
        )

    async def extract(
        self,
        chunk: DocumentChunk,
        *,
        title: str = "",
        entity_types: Sequence[str] = DEFAULT_ENTITY_TYPES,
        known_entities: Sequence[Entity] = (),
        known_limit: int = 20,
        use_cache: bool = True,
    ) -> ChunkExtraction:
        """
        Extract entities and relationships from one chunk.

        Raises:
            ExtractionError: Propagated from fetch_payload
        """
        payload, from_cache, parse_warnings = await self.fetch_payload(
            chunk,
            title=title,
            entity_types=entity_types,
            known_entities=known_entities,
            known_limit=known_limit,
            use_cache=use_cache,
        )
        extraction = self.interpret(payload, chunk)
        extraction.from_cache = from_cache
        extraction.warnings = [f"{chunk.id}: {w}" for w in parse_warnings] + extraction.warnings
        return extraction
