"""
Abstract Graph Store Interface

Defines the contract for all graph stores, plus the cascade rules for
deleting a document that every store shares.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docgraph.types import Document, DocumentChunk, DocumentStatus, Entity, Relationship


_GROUP_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_group_id(group_id: str) -> str:
    """Return group_id unchanged, or raise ValueError if it has unsafe characters."""
    if not _GROUP_ID_PATTERN.match(group_id or ""):
        raise ValueError(
            f"Invalid group_id: {group_id!r}. "
            "Must contain only alphanumeric characters, hyphens, and underscores."
        )
    return group_id


class GraphStore(ABC):
    """
    Abstract interface for graph stores.

    Multi-tenancy:
        Each store is bound to one workspace (group_id). All reads and
        writes are scoped to it.

    Writes:
        Every add_* call is an upsert by id. Stores do not provide
        compare-and-swap; concurrent writers to one workspace must be
        serialized by the store (or by the caller).

    Lifecycle:
        store = ParquetGraphStore(path, group_id="tenant-1")
        await store.initialize()
        # ... operations ...
        await store.close()

    Or using context manager:
        async with InMemoryGraphStore() as store:
            await store.add_entities(entities)
    """

    @property
    @abstractmethod
    def group_id(self) -> str:
        """Workspace this store is bound to."""
        ...

    @abstractmethod
    async def initialize(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def __aenter__(self) -> "GraphStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_document(self, document: "Document") -> None:
        ...

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list["DocumentChunk"],
        embeddings: list[list[float]] | None = None,
    ) -> None:
        """Upsert chunks, indexing embeddings for query_chunks when given."""
        ...

    @abstractmethod
    async def add_entities(self, entities: list["Entity"]) -> None:
        ...

    @abstractmethod
    async def add_relationships(self, relationships: list["Relationship"]) -> None:
        ...

    async def add_chunk(
        self, chunk: "DocumentChunk", embedding: list[float] | None = None
    ) -> None:
        await self.add_chunks([chunk], [embedding] if embedding is not None else None)

    async def add_entity(self, entity: "Entity") -> None:
        await self.add_entities([entity])

    async def add_relationship(self, relationship: "Relationship") -> None:
        await self.add_relationships([relationship])

    @abstractmethod
    async def update_document_status(self, document_id: str, status: "DocumentStatus") -> None:
        ...

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and cascade (see plan_document_deletion).

        Returns:
            True if the document existed
        """
        ...

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_document(self, document_id: str) -> "Document | None":
        ...

    @abstractmethod
    async def list_documents(self) -> list["Document"]:
        ...

    @abstractmethod
    async def get_chunks(self, document_id: str | None = None) -> list["DocumentChunk"]:
        """Chunks of one document (ordered by sequence_index), or all chunks."""
        ...

    @abstractmethod
    async def get_entities(self, ids: list[str] | None = None) -> list["Entity"]:
        """Entities by id, or all entities when ids is None."""
        ...

    @abstractmethod
    async def get_relationships(self, ids: list[str] | None = None) -> list["Relationship"]:
        ...

    # -------------------------------------------------------------------------
    # Vector Query
    # -------------------------------------------------------------------------

    @abstractmethod
    async def query_chunks(
        self,
        vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> list[tuple["DocumentChunk", float]]:
        """Chunks by cosine similarity, best first. Returns (chunk, score) tuples."""
        ...

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @abstractmethod
    async def count_documents(self) -> int:
        ...

    @abstractmethod
    async def count_chunks(self) -> int:
        ...

    @abstractmethod
    async def count_entities(self) -> int:
        ...

    @abstractmethod
    async def count_relationships(self) -> int:
        ...


# -----------------------------------------------------------------------------
# Cascade Delete
# -----------------------------------------------------------------------------


@dataclass
class DeletionPlan:
    """What deleting one document does to the rest of the graph."""

    chunk_ids: set[str] = field(default_factory=set)
    delete_entity_ids: set[str] = field(default_factory=set)
    update_entities: list["Entity"] = field(default_factory=list)
    delete_relationship_ids: set[str] = field(default_factory=set)
    update_relationships: list["Relationship"] = field(default_factory=list)


def plan_document_deletion(
    document_id: str,
    chunks: list["DocumentChunk"],
    entities: list["Entity"],
    relationships: list["Relationship"],
) -> DeletionPlan:
    """
    Compute the cascade for deleting a document.

    - The document's chunks are deleted
    - Entities and relationships whose only source document is this one
      are deleted
    - Shared entities and relationships lose this document and its chunks
      from their provenance
    - Relationships left pointing at a deleted entity are deleted
    """
    plan = DeletionPlan()
    plan.chunk_ids = {c.id for c in chunks if c.document_id == document_id}

    for entity in entities:
        if document_id not in entity.source_document_ids:
            continue
        if entity.source_document_ids == {document_id}:
            plan.delete_entity_ids.add(entity.id)
            continue
        updated = entity.model_copy(deep=True)
        updated.source_document_ids.discard(document_id)
        updated.source_chunk_ids -= plan.chunk_ids
        plan.update_entities.append(updated)

    for rel in relationships:
        dangling = (
            rel.source_entity_id in plan.delete_entity_ids
            or rel.target_entity_id in plan.delete_entity_ids
        )
        if dangling or rel.source_document_ids == {document_id}:
            plan.delete_relationship_ids.add(rel.id)
            continue
        if document_id in rel.source_document_ids:
            updated = rel.model_copy(deep=True)
            updated.source_document_ids.discard(document_id)
            updated.source_chunk_ids -= plan.chunk_ids
            plan.update_relationships.append(updated)

    return plan
