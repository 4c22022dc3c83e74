"""
In-Memory Graph Store

Dict-backed GraphStore for tests, previews and short-lived sessions.
Chunk vectors are held as a numpy matrix and queried with scipy's cosine
distance.
"""

from __future__ import annotations

import asyncio
import logging

import numpy as np
from scipy.spatial.distance import cdist

from docgraph.storage.base import GraphStore, plan_document_deletion, validate_group_id
from docgraph.types import Document, DocumentChunk, DocumentStatus, Entity, Relationship

logger = logging.getLogger(__name__)


class InMemoryGraphStore(GraphStore):
    """
    GraphStore held entirely in process memory.

    Every read returns deep copies so callers cannot mutate stored state.
    """

    def __init__(self, group_id: str = "default"):
        self._group_id = validate_group_id(group_id)
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, DocumentChunk] = {}
        self._entities: dict[str, Entity] = {}
        self._relationships: dict[str, Relationship] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def group_id(self) -> str:
        return self._group_id

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add_document(self, document: Document) -> None:
        async with self._lock:
            self._documents[document.id] = document.model_copy(deep=True)

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> None:
        if embeddings is not None and len(embeddings) != len(chunks):
            raise ValueError(f"Got {len(embeddings)} embeddings for {len(chunks)} chunks")
        async with self._lock:
            for i, chunk in enumerate(chunks):
                self._chunks[chunk.id] = chunk.model_copy(deep=True)
                if embeddings is not None:
                    self._vectors[chunk.id] = np.asarray(embeddings[i], dtype=np.float32)

    async def add_entities(self, entities: list[Entity]) -> None:
        async with self._lock:
            for entity in entities:
                self._entities[entity.id] = entity.model_copy(deep=True)

    async def add_relationships(self, relationships: list[Relationship]) -> None:
        async with self._lock:
            for rel in relationships:
                self._relationships[rel.id] = rel.model_copy(deep=True)

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise KeyError(f"Unknown document: {document_id}")
            document.status = DocumentStatus(status).value

    async def delete_document(self, document_id: str) -> bool:
        async with self._lock:
            if document_id not in self._documents:
                return False

            plan = plan_document_deletion(
                document_id,
                list(self._chunks.values()),
                list(self._entities.values()),
                list(self._relationships.values()),
            )
            del self._documents[document_id]
            for chunk_id in plan.chunk_ids:
                self._chunks.pop(chunk_id, None)
                self._vectors.pop(chunk_id, None)
            for entity_id in plan.delete_entity_ids:
                self._entities.pop(entity_id, None)
            for entity in plan.update_entities:
                self._entities[entity.id] = entity
            for rel_id in plan.delete_relationship_ids:
                self._relationships.pop(rel_id, None)
            for rel in plan.update_relationships:
                self._relationships[rel.id] = rel

        logger.info(
            f"Deleted document {document_id}: {len(plan.chunk_ids)} chunks, "
            f"{len(plan.delete_entity_ids)} entities, "
            f"{len(plan.delete_relationship_ids)} relationships"
        )
        return True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def list_documents(self) -> list[Document]:
        return [d.model_copy(deep=True) for d in self._documents.values()]

    async def get_chunks(self, document_id: str | None = None) -> list[DocumentChunk]:
        chunks = [
            c for c in self._chunks.values()
            if document_id is None or c.document_id == document_id
        ]
        chunks.sort(key=lambda c: (c.document_id, c.sequence_index))
        return [c.model_copy(deep=True) for c in chunks]

    async def get_entities(self, ids: list[str] | None = None) -> list[Entity]:
        if ids is None:
            return [e.model_copy(deep=True) for e in self._entities.values()]
        return [self._entities[i].model_copy(deep=True) for i in ids if i in self._entities]

    async def get_relationships(self, ids: list[str] | None = None) -> list[Relationship]:
        if ids is None:
            return [r.model_copy(deep=True) for r in self._relationships.values()]
        return [
            self._relationships[i].model_copy(deep=True)
            for i in ids if i in self._relationships
        ]

    async def query_chunks(
        self,
        vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> list[tuple[DocumentChunk, float]]:
        if not self._vectors or limit <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        if not np.any(query):
            return []

        ids = list(self._vectors)
        matrix = np.vstack([self._vectors[i] for i in ids])
        if matrix.shape[1] != query.shape[0]:
            raise ValueError(
                f"Query has {query.shape[0]} dimensions, index has {matrix.shape[1]}"
            )

        with np.errstate(invalid="ignore", divide="ignore"):
            similarities = 1.0 - cdist(query[np.newaxis, :], matrix, metric="cosine")[0]

        ranked: list[tuple[DocumentChunk, float]] = []
        for idx in np.argsort(-np.nan_to_num(similarities, nan=-np.inf)):
            score = float(similarities[idx])
            # zero vectors produce NaN
            if np.isnan(score) or score < threshold:
                continue
            ranked.append((self._chunks[ids[idx]].model_copy(deep=True), score))
            if len(ranked) >= limit:
                break
        return ranked

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def count_documents(self) -> int:
        return len(self._documents)

    async def count_chunks(self) -> int:
        return len(self._chunks)

    async def count_entities(self) -> int:
        return len(self._entities)

    async def count_relationships(self) -> int:
        return len(self._relationships)
