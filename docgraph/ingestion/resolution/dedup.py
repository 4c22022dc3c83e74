"""
Cross-Document Deduplication

Merges incoming entities and relationships with each other and with a
snapshot of what the graph store already holds.

Rules:
    - Existing store entities survive over incoming ones; otherwise the
      first occurrence survives and keeps its name and casing
    - A merge unions provenance, keeps the max confidence, fills a
      missing description and stamps updated_at
    - Relationships are re-pointed through the merge map and their ids
      recomputed; duplicates are merged (max weight and confidence)
    - Relationships with an endpoint that is neither merged nor in the
      snapshot are dropped with a warning; self-loops are kept with a warning

Example:
    >>> engine = DeduplicationEngine()
    >>> result = engine.deduplicate(entities, relationships, existing_entities=snapshot)
    >>> print(f"{result.merged_count} merges")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from docgraph.ingestion.resolution.matchers import EntityMatcher, ExactNameMatcher
from docgraph.types import DeduplicationResult, Entity, MergeRecord, Relationship
from docgraph.utils.text import generate_relationship_id

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeduplicationEngine:
    """
    Entity and relationship deduplication against a store snapshot.

    Args:
        matcher: Entity matching strategy (default: ExactNameMatcher)
        clock: Source of merge timestamps
    """

    def __init__(
        self,
        matcher: EntityMatcher | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.matcher = matcher or ExactNameMatcher()
        self._clock = clock

    def deduplicate(
        self,
        new_entities: Sequence[Entity],
        new_relationships: Sequence[Relationship],
        existing_entities: Sequence[Entity] = (),
        existing_relationships: Sequence[Relationship] = (),
    ) -> DeduplicationResult:
        """
        Merge incoming artifacts.

        Returns:
            DeduplicationResult whose new_entities/new_relationships are the
            artifacts to upsert: accepted incoming ones plus existing ones
            that absorbed a duplicate. Input objects are not mutated.
        """
        now = self._clock().isoformat()
        warnings: list[str] = []
        merges: list[MergeRecord] = []

        # Survivors by id: snapshot first so existing entities win
        accepted: dict[str, Entity] = {}
        existing_ids: set[str] = set()
        for existing in existing_entities:
            if existing.id not in accepted:
                accepted[existing.id] = existing
                existing_ids.add(existing.id)

        touched: dict[str, Entity] = {}   # copies of existing entities that absorbed merges
        fresh: dict[str, Entity] = {}     # accepted incoming entities
        remap: dict[str, str] = {}

        for incoming in new_entities:
            survivor = self.matcher.find_match(incoming, accepted)

            if survivor is None:
                entity = incoming.model_copy(deep=True)
                entity.created_at = entity.created_at or now
                entity.updated_at = entity.updated_at or now
                accepted[entity.id] = entity
                fresh[entity.id] = entity
                remap.setdefault(incoming.id, entity.id)
                continue

            if survivor.id in existing_ids and survivor.id not in touched:
                survivor = survivor.model_copy(deep=True)
                accepted[survivor.id] = survivor
                touched[survivor.id] = survivor

            _merge_entity(survivor, incoming, now)
            remap.setdefault(incoming.id, survivor.id)
            merges.append(
                MergeRecord(
                    kind="entity",
                    surviving_id=survivor.id,
                    merged_id=incoming.id,
                    merged_name=incoming.name,
                )
            )
            logger.debug(f"Merged entity '{incoming.name}' into '{survivor.name}'")

        # ---------------------------------------------------------------------
        # Relationships
        # ---------------------------------------------------------------------

        known_ids = set(accepted)
        existing_rels = {r.id: r for r in existing_relationships}
        relationships: dict[str, Relationship] = {}
        relationship_merges = 0

        for incoming in new_relationships:
            source = remap.get(incoming.source_entity_id, incoming.source_entity_id)
            target = remap.get(incoming.target_entity_id, incoming.target_entity_id)

            missing = [eid for eid in (source, target) if eid not in known_ids]
            if missing:
                message = (
                    f"Dropped relationship {incoming.source_entity_id} -[{incoming.type}]-> "
                    f"{incoming.target_entity_id}: unknown endpoint(s) {', '.join(missing)}"
                )
                logger.warning(message)
                warnings.append(message)
                continue

            rel_id = generate_relationship_id(source, target, incoming.type)
            if source == target:
                message = f"Self-loop relationship {rel_id} on entity '{source}' ({incoming.type})"
                logger.warning(message)
                warnings.append(message)

            if rel_id in relationships or rel_id in existing_rels:
                survivor = relationships.get(rel_id)
                if survivor is None:
                    survivor = existing_rels[rel_id].model_copy(deep=True)
                    relationships[rel_id] = survivor
                _merge_relationship(survivor, incoming, now)
                relationship_merges += 1
                merges.append(
                    MergeRecord(kind="relationship", surviving_id=rel_id, merged_id=incoming.id)
                )
                message = f"Merged duplicate relationship {source} -[{incoming.type}]-> {target}"
                logger.warning(message)
                warnings.append(message)
                continue

            relationships[rel_id] = incoming.model_copy(
                deep=True,
                update={
                    "id": rel_id,
                    "source_entity_id": source,
                    "target_entity_id": target,
                    "created_at": incoming.created_at or now,
                    "updated_at": incoming.updated_at or now,
                },
            )

        entity_merges = sum(1 for m in merges if m.kind == "entity")
        if merges:
            logger.info(
                f"Deduplication: {entity_merges} entity merges, "
                f"{relationship_merges} relationship merges"
            )

        return DeduplicationResult(
            new_entities=[*touched.values(), *fresh.values()],
            new_relationships=list(relationships.values()),
            merged_count=entity_merges + relationship_merges,
            merges=merges,
            warnings=warnings,
        )


def _merge_entity(survivor: Entity, incoming: Entity, now: str) -> None:
    survivor.source_document_ids |= incoming.source_document_ids
    survivor.source_chunk_ids |= incoming.source_chunk_ids
    survivor.confidence = max(survivor.confidence, incoming.confidence)
    if not survivor.description.strip() and incoming.description.strip():
        survivor.description = incoming.description
    for key, value in incoming.properties.items():
        survivor.properties.setdefault(key, value)
    for merged_id in [incoming.id, *incoming.merged_from_ids]:
        if merged_id != survivor.id and merged_id not in survivor.merged_from_ids:
            survivor.merged_from_ids.append(merged_id)
    survivor.updated_at = now


def _merge_relationship(survivor: Relationship, incoming: Relationship, now: str) -> None:
    survivor.source_document_ids |= incoming.source_document_ids
    survivor.source_chunk_ids |= incoming.source_chunk_ids
    survivor.weight = max(survivor.weight, incoming.weight)
    survivor.confidence = max(survivor.confidence, incoming.confidence)
    survivor.bidirectional = survivor.bidirectional or incoming.bidirectional
    if not survivor.description.strip() and incoming.description.strip():
        survivor.description = incoming.description
    for key, value in incoming.properties.items():
        survivor.properties.setdefault(key, value)
    survivor.updated_at = now
