"""
Entity and Relationship Types

Entities are typed nodes; relationships are typed, weighted edges between
them. Both track which documents and chunks contributed them so that
provenance survives cross-document merges.

Ids are deterministic (see docgraph.utils.text):
    - Entity.id: normalized name ("Apache Kafka" -> "apache_kafka")
    - Relationship.id: "rel_" + sha256(source_target_type)[:16]
"""

from typing import Any

from pydantic import BaseModel, Field


class Entity(BaseModel):
    """
    A node in the knowledge graph.

    Attributes:
        id: Normalized name
        name: Display name (first occurrence wins on merge)
        type: Entity type label (e.g. "Technology")
        description: Free-text description from extraction
        properties: Extra attributes, including quality_score/quality_category
        source_document_ids: Documents that mention this entity
        source_chunk_ids: Chunks that mention this entity
        confidence: Extraction confidence in [0, 1]
        merged_from_ids: Ids of entities folded into this one
    """

    id: str
    name: str
    type: str = "Concept"
    description: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    source_document_ids: set[str] = Field(default_factory=set)
    source_chunk_ids: set[str] = Field(default_factory=set)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    created_at: str | None = None
    updated_at: str | None = None
    merged_from_ids: list[str] = Field(default_factory=list)


class Relationship(BaseModel):
    """
    A typed edge between two entities.

    Attributes:
        id: Deterministic id derived from (source, target, type)
        source_entity_id: Entity id of the subject
        target_entity_id: Entity id of the object
        type: Relationship label (e.g. "uses", "part_of")
        description: Free-text description
        weight: Strength in [0, 1]
        bidirectional: Whether the edge holds in both directions
        properties: Extra attributes, including quality_score/quality_category
    """

    id: str
    source_entity_id: str
    target_entity_id: str
    type: str
    description: str = ""
    weight: float = Field(default=1.0, ge=0.0, le=1.0)
    bidirectional: bool = False
    properties: dict[str, Any] = Field(default_factory=dict)
    source_document_ids: set[str] = Field(default_factory=set)
    source_chunk_ids: set[str] = Field(default_factory=set)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    created_at: str | None = None
    updated_at: str | None = None
