"""
Parquet Graph Store

Orchestrates Parquet part files, the DuckDB read layer and the LanceDB
chunk index.
"""

import asyncio
import json
import logging
import shutil
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq
from filelock import FileLock

from docgraph.config import KGConfig
from docgraph.storage.base import GraphStore, plan_document_deletion, validate_group_id
from docgraph.storage.duckdb.queries import DuckDBQueries
from docgraph.storage.lancedb.indices import ChunkVectorIndex
from docgraph.types import Document, DocumentChunk, DocumentStatus, Entity, Relationship

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _enum_value(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


class ParquetGraphStore(GraphStore):
    """
    Parquet-based graph store with multi-tenant support.

    Directory structure:
        kb_path/
        ├── documents.parquet/      # dataset directories of part files
        ├── chunks.parquet/
        ├── entities.parquet/
        ├── relationships.parquet/
        ├── lancedb/
        │   └── chunks.lance/
        └── metadata.json

    Multi-tenancy:
        All rows are tagged with group_id; reads filter on it.

    Thread safety:
        - Writes hold the file lock (.kb.lock) for the whole upsert
        - Reads only see complete part files (written to a temp name first)
    """

    SCHEMA_VERSION = "1.0.0"

    def __init__(
        self,
        kb_path: Path | str,
        config: KGConfig | None = None,
        group_id: str = "default",
    ):
        self._kb_path = Path(kb_path)
        self.config = config or KGConfig()
        self._group_id = validate_group_id(group_id)
        self._lock = FileLock(self._kb_path / ".kb.lock", timeout=30)
        self._vectors = ChunkVectorIndex(self._kb_path / "lancedb", group_id=group_id)
        self._duckdb = DuckDBQueries(self._kb_path, group_id=group_id)
        self._initialized = False

    @property
    def group_id(self) -> str:
        return self._group_id

    @property
    def kb_path(self) -> Path:
        return self._kb_path

    async def initialize(self) -> None:
        if self._initialized:
            return

        def _init() -> None:
            self.kb_path.mkdir(parents=True, exist_ok=True)
            self._write_metadata_if_missing()

        await asyncio.to_thread(_init)
        await self._vectors.initialize()
        await self._duckdb.initialize()
        self._initialized = True

    async def close(self) -> None:
        await self._vectors.close()
        await self._duckdb.close()
        self._initialized = False

    def _write_metadata_if_missing(self) -> None:
        meta_path = self.kb_path / "metadata.json"
        if not meta_path.exists():
            metadata = {
                "schema_version": self.SCHEMA_VERSION,
                "created_at": _now(),
                "embedding_dimensions": self.config.embedding_dimensions,
            }
            meta_path.write_text(json.dumps(metadata, indent=2))

    # -------------------------------------------------------------------------
    # Parquet Schemas (all include group_id for multi-tenancy)
    # -------------------------------------------------------------------------

    @staticmethod
    def _document_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("title", pa.string()),
            ("filename", pa.string()),
            ("content_type", pa.string()),
            ("size_bytes", pa.int64()),
            ("tags", pa.string()),  # JSON-encoded list
            ("status", pa.string()),
            ("content", pa.string()),
            ("group_id", pa.string()),
            ("created_at", pa.string()),
        ])

    @staticmethod
    def _chunk_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("document_id", pa.string()),
            ("text", pa.string()),
            ("start_offset", pa.int64()),
            ("end_offset", pa.int64()),
            ("sequence_index", pa.int32()),
            ("heading", pa.string()),
            ("header_path", pa.string()),
            ("entity_ids", pa.string()),  # JSON-encoded list
            ("relationship_ids", pa.string()),  # JSON-encoded list
            ("status", pa.string()),
            ("content_type", pa.string()),
            ("metadata", pa.string()),  # JSON-encoded dict
            ("group_id", pa.string()),
            ("created_at", pa.string()),
        ])

    @staticmethod
    def _entity_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("name", pa.string()),
            ("type", pa.string()),
            ("description", pa.string()),
            ("properties", pa.string()),  # JSON-encoded dict
            ("source_document_ids", pa.string()),  # JSON-encoded sorted list
            ("source_chunk_ids", pa.string()),
            ("confidence", pa.float64()),
            ("merged_from_ids", pa.string()),
            ("group_id", pa.string()),
            ("created_at", pa.string()),
            ("updated_at", pa.string()),
        ])

    @staticmethod
    def _relationship_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("source_entity_id", pa.string()),
            ("target_entity_id", pa.string()),
            ("type", pa.string()),
            ("description", pa.string()),
            ("weight", pa.float64()),
            ("bidirectional", pa.bool_()),
            ("properties", pa.string()),
            ("source_document_ids", pa.string()),
            ("source_chunk_ids", pa.string()),
            ("confidence", pa.float64()),
            ("group_id", pa.string()),
            ("created_at", pa.string()),
            ("updated_at", pa.string()),
        ])

    # -------------------------------------------------------------------------
    # Row Encoding
    # -------------------------------------------------------------------------

    def _document_rows(self, documents: list[Document]) -> dict[str, list[Any]]:
        now = _now()
        return {
            "id": [d.id for d in documents],
            "title": [d.metadata.title for d in documents],
            "filename": [d.metadata.filename or "" for d in documents],
            "content_type": [d.metadata.content_type or "" for d in documents],
            "size_bytes": [d.metadata.size_bytes for d in documents],
            "tags": [json.dumps(d.metadata.tags) for d in documents],
            "status": [DocumentStatus(d.status).value for d in documents],
            "content": [d.content for d in documents],
            "group_id": [self._group_id for _ in documents],
            "created_at": [d.created_at or now for d in documents],
        }

    def _chunk_rows(self, chunks: list[DocumentChunk]) -> dict[str, list[Any]]:
        now = _now()
        return {
            "id": [c.id for c in chunks],
            "document_id": [c.document_id for c in chunks],
            "text": [c.text for c in chunks],
            "start_offset": [c.start_offset for c in chunks],
            "end_offset": [c.end_offset for c in chunks],
            "sequence_index": [c.sequence_index for c in chunks],
            "heading": [c.heading or "" for c in chunks],
            "header_path": [c.header_path for c in chunks],
            "entity_ids": [json.dumps(c.entity_ids) for c in chunks],
            "relationship_ids": [json.dumps(c.relationship_ids) for c in chunks],
            "status": [_enum_value(c.status) for c in chunks],
            "content_type": [_enum_value(c.content_type) for c in chunks],
            "metadata": [json.dumps(c.metadata, default=str) for c in chunks],
            "group_id": [self._group_id for _ in chunks],
            "created_at": [now for _ in chunks],
        }

    def _entity_rows(self, entities: list[Entity]) -> dict[str, list[Any]]:
        now = _now()
        return {
            "id": [e.id for e in entities],
            "name": [e.name for e in entities],
            "type": [e.type for e in entities],
            "description": [e.description for e in entities],
            "properties": [json.dumps(e.properties, default=str) for e in entities],
            "source_document_ids": [json.dumps(sorted(e.source_document_ids)) for e in entities],
            "source_chunk_ids": [json.dumps(sorted(e.source_chunk_ids)) for e in entities],
            "confidence": [e.confidence for e in entities],
            "merged_from_ids": [json.dumps(e.merged_from_ids) for e in entities],
            "group_id": [self._group_id for _ in entities],
            "created_at": [e.created_at or now for e in entities],
            "updated_at": [e.updated_at or now for e in entities],
        }

    def _relationship_rows(self, relationships: list[Relationship]) -> dict[str, list[Any]]:
        now = _now()
        return {
            "id": [r.id for r in relationships],
            "source_entity_id": [r.source_entity_id for r in relationships],
            "target_entity_id": [r.target_entity_id for r in relationships],
            "type": [r.type for r in relationships],
            "description": [r.description for r in relationships],
            "weight": [r.weight for r in relationships],
            "bidirectional": [r.bidirectional for r in relationships],
            "properties": [json.dumps(r.properties, default=str) for r in relationships],
            "source_document_ids": [
                json.dumps(sorted(r.source_document_ids)) for r in relationships
            ],
            "source_chunk_ids": [json.dumps(sorted(r.source_chunk_ids)) for r in relationships],
            "confidence": [r.confidence for r in relationships],
            "group_id": [self._group_id for _ in relationships],
            "created_at": [r.created_at or now for r in relationships],
            "updated_at": [r.updated_at or now for r in relationships],
        }

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def add_document(self, document: Document) -> None:
        await self._upsert("documents", self._document_rows([document]), self._document_schema())

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> None:
        if not chunks:
            return
        if embeddings is not None and len(embeddings) != len(chunks):
            raise ValueError(f"Got {len(embeddings)} embeddings for {len(chunks)} chunks")

        await self._upsert("chunks", self._chunk_rows(chunks), self._chunk_schema())

        if embeddings:
            await self._vectors.add(
                [{"id": c.id, "document_id": c.document_id} for c in chunks],
                embeddings,
            )

    async def add_entities(self, entities: list[Entity]) -> None:
        if not entities:
            return
        await self._upsert("entities", self._entity_rows(entities), self._entity_schema())

    async def add_relationships(self, relationships: list[Relationship]) -> None:
        if not relationships:
            return
        await self._upsert(
            "relationships", self._relationship_rows(relationships), self._relationship_schema()
        )

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        document = await self.get_document(document_id)
        if document is None:
            raise KeyError(f"Unknown document: {document_id}")
        document.status = DocumentStatus(status).value
        await self.add_document(document)

    async def delete_document(self, document_id: str) -> bool:
        if await self.get_document(document_id) is None:
            return False

        plan = plan_document_deletion(
            document_id,
            await self.get_chunks(document_id),
            await self.get_entities(),
            await self.get_relationships(),
        )

        def _delete() -> None:
            with self._lock:
                self._remove_rows("documents", {document_id}, self._document_schema())
                self._remove_rows("chunks", plan.chunk_ids, self._chunk_schema())
                self._remove_rows(
                    "entities",
                    plan.delete_entity_ids | {e.id for e in plan.update_entities},
                    self._entity_schema(),
                )
                if plan.update_entities:
                    self._append_to_parquet(
                        "entities", self._entity_rows(plan.update_entities), self._entity_schema()
                    )
                self._remove_rows(
                    "relationships",
                    plan.delete_relationship_ids | {r.id for r in plan.update_relationships},
                    self._relationship_schema(),
                )
                if plan.update_relationships:
                    self._append_to_parquet(
                        "relationships",
                        self._relationship_rows(plan.update_relationships),
                        self._relationship_schema(),
                    )

        await asyncio.to_thread(_delete)
        await self._vectors.delete_document(document_id)
        logger.info(
            f"Deleted document {document_id}: {len(plan.chunk_ids)} chunks, "
            f"{len(plan.delete_entity_ids)} entities, "
            f"{len(plan.delete_relationship_ids)} relationships"
        )
        return True

    # -------------------------------------------------------------------------
    # Parquet File Management
    # -------------------------------------------------------------------------

    async def _upsert(
        self,
        table_name: str,
        data: dict[str, list[Any]],
        schema: pa.Schema,
    ) -> None:
        """Replace rows with the same ids in this workspace, then append."""
        def _write() -> None:
            with self._lock:
                self._remove_rows(table_name, set(data["id"]), schema)
                self._append_to_parquet(table_name, data, schema)

        await asyncio.to_thread(_write)

    def _table_path(self, table_name: str) -> Path:
        return self.kb_path / f"{table_name}.parquet"

    def _read_table(self, table_name: str, schema: pa.Schema) -> pa.Table | None:
        path = self._table_path(table_name)
        if not path.is_dir() or not any(path.glob("*.parquet")):
            return None
        return pq.read_table(path, schema=schema)

    def _remove_rows(self, table_name: str, ids: set[str], schema: pa.Schema) -> int:
        """
        Drop this workspace's rows with the given ids.

        Rewrites the dataset only when at least one row matches. Must be
        called with the lock held.
        """
        if not ids:
            return 0
        table = self._read_table(table_name, schema)
        if table is None or table.num_rows == 0:
            return 0

        mask = pc.and_(
            pc.is_in(table.column("id"), value_set=pa.array(sorted(ids), type=pa.string())),
            pc.equal(table.column("group_id"), self._group_id),
        )
        removed = pc.sum(mask.cast(pa.int64())).as_py() or 0
        if removed:
            self._rewrite_table(table_name, table.filter(pc.invert(mask)))
        return removed

    def _append_to_parquet(
        self,
        table_name: str,
        data: dict[str, list[Any]],
        schema: pa.Schema,
    ) -> None:
        """Append rows as a new immutable part file."""
        path = self._table_path(table_name)
        path.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pydict(data, schema=schema)

        now_part = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        part_name = f"part-{now_part}-{uuid4().hex}.parquet"
        temp_part_path = path / f".{part_name}.tmp"
        pq.write_table(table, temp_part_path, compression=self.config.parquet_compression)
        temp_part_path.replace(path / part_name)

    def _rewrite_table(self, table_name: str, table: pa.Table) -> None:
        """Swap the dataset directory for one holding exactly `table`."""
        path = self._table_path(table_name)
        temp_dir = path.with_name(f"{path.name}.tmp-{uuid4().hex}")
        temp_dir.mkdir(parents=True, exist_ok=False)
        if table.num_rows:
            pq.write_table(
                table, temp_dir / "part-000000.parquet",
                compression=self.config.parquet_compression,
            )

        backup_dir = path.with_name(f"{path.name}.bak-{uuid4().hex}")
        path.replace(backup_dir)
        temp_dir.replace(path)
        shutil.rmtree(backup_dir, ignore_errors=True)

    # -------------------------------------------------------------------------
    # Read Operations (delegate to DuckDB)
    # -------------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document | None:
        return await self._duckdb.get_document(document_id)

    async def list_documents(self) -> list[Document]:
        return await self._duckdb.list_documents()

    async def get_chunks(self, document_id: str | None = None) -> list[DocumentChunk]:
        return await self._duckdb.get_chunks(document_id=document_id)

    async def get_entities(self, ids: list[str] | None = None) -> list[Entity]:
        return await self._duckdb.get_entities(ids)

    async def get_relationships(self, ids: list[str] | None = None) -> list[Relationship]:
        return await self._duckdb.get_relationships(ids)

    # -------------------------------------------------------------------------
    # Vector Query (delegate to LanceDB)
    # -------------------------------------------------------------------------

    async def query_chunks(
        self,
        vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> list[tuple[DocumentChunk, float]]:
        results = await self._vectors.search(vector, limit, threshold)
        if not results:
            return []

        chunks = await self._duckdb.get_chunks(ids=[chunk_id for chunk_id, _ in results])
        by_id = {c.id: c for c in chunks}
        return [(by_id[cid], score) for cid, score in results if cid in by_id]

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def count_documents(self) -> int:
        return await self._duckdb.count("documents")

    async def count_chunks(self) -> int:
        return await self._duckdb.count("chunks")

    async def count_entities(self) -> int:
        return await self._duckdb.count("entities")

    async def count_relationships(self) -> int:
        return await self._duckdb.count("relationships")


