"""
DuckDB Query Layer

SQL reads over the Parquet dataset directories, scoped to one workspace.
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import Any

import duckdb

from docgraph.types import Document, DocumentChunk, DocumentMetadata, Entity, Relationship

TABLES = ("documents", "chunks", "entities", "relationships")


def _json_list(value: Any) -> list[Any]:
    if isinstance(value, str):
        return json.loads(value) if value else []
    return list(value or [])


def _json_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, str):
        return json.loads(value) if value else {}
    return dict(value or {})


class DuckDBQueries:
    """
    DuckDB read layer for the Parquet tables.

    Each table is a dataset directory of immutable part files; views are
    re-created before each query so rewrites and new parts are picked up.

    Multi-tenancy:
        All queries are filtered by group_id.

    Thread safety:
        Uses thread-local connections since DuckDB connections are not
        thread-safe and asyncio.to_thread() may use different threads.
    """

    def __init__(self, kb_path: Path, group_id: str = "default"):
        self.kb_path = kb_path
        self.group_id = group_id
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def _get_conn(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local DuckDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("DuckDB not initialized. Call initialize() first.")

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = duckdb.connect()
            self._local.conn = conn
        return conn

    def _refresh_view(self, table: str) -> None:
        """Point the view at the table's current part files, or drop it."""
        conn = self._get_conn()
        path = self.kb_path / f"{table}.parquet"
        if path.is_dir() and any(path.glob("*.parquet")):
            pattern = str(path / "*.parquet").replace("'", "''")
            conn.execute(f"""
                CREATE OR REPLACE VIEW {table} AS
                SELECT * FROM read_parquet('{pattern}')
            """)
        else:
            conn.execute(f"DROP VIEW IF EXISTS {table}")

    def _fetch(self, table: str, where: str = "", params: list[Any] | None = None,
               order_by: str = "") -> list[dict[str, Any]]:
        self._refresh_view(table)
        conn = self._get_conn()
        sql = f"SELECT * FROM {table} WHERE group_id = ?"
        if where:
            sql += f" AND {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        try:
            rows = conn.execute(sql, [self.group_id, *(params or [])]).fetchall()
        except duckdb.CatalogException:
            return []
        col_names = [desc[0] for desc in conn.description]
        return [dict(zip(col_names, row)) for row in rows]

    @staticmethod
    def _in_clause(column: str, values: list[str]) -> str:
        placeholders = ",".join(["?" for _ in values])
        return f"{column} IN ({placeholders})"

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document | None:
        def _query() -> Document | None:
            rows = self._fetch("documents", "id = ?", [document_id])
            return self._row_to_document(rows[0]) if rows else None

        return await asyncio.to_thread(_query)

    async def list_documents(self) -> list[Document]:
        def _query() -> list[Document]:
            rows = self._fetch("documents", order_by="created_at DESC")
            return [self._row_to_document(r) for r in rows]

        return await asyncio.to_thread(_query)

    def _row_to_document(self, row: dict[str, Any]) -> Document:
        return Document(
            id=row["id"],
            content=row.get("content") or "",
            metadata=DocumentMetadata(
                title=row.get("title") or "",
                filename=row.get("filename") or None,
                content_type=row.get("content_type") or None,
                size_bytes=row.get("size_bytes") or 0,
                tags=_json_list(row.get("tags")),
            ),
            status=row.get("status") or "pending",
            created_at=row.get("created_at"),
        )

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def get_chunks(
        self,
        document_id: str | None = None,
        ids: list[str] | None = None,
    ) -> list[DocumentChunk]:
        """Chunks filtered by document and/or ids, ordered by position."""
        if ids is not None and not ids:
            return []

        def _query() -> list[DocumentChunk]:
            clauses: list[str] = []
            params: list[Any] = []
            if document_id is not None:
                clauses.append("document_id = ?")
                params.append(document_id)
            if ids is not None:
                clauses.append(self._in_clause("id", ids))
                params.extend(ids)
            rows = self._fetch(
                "chunks", " AND ".join(clauses), params,
                order_by="document_id, sequence_index",
            )
            return [self._row_to_chunk(r) for r in rows]

        return await asyncio.to_thread(_query)

    def _row_to_chunk(self, row: dict[str, Any]) -> DocumentChunk:
        return DocumentChunk(
            id=row["id"],
            document_id=row["document_id"],
            text=row["text"],
            start_offset=row["start_offset"],
            end_offset=row["end_offset"],
            sequence_index=row["sequence_index"],
            heading=row.get("heading") or None,
            header_path=row.get("header_path") or "",
            entity_ids=_json_list(row.get("entity_ids")),
            relationship_ids=_json_list(row.get("relationship_ids")),
            status=row.get("status") or "pending",
            content_type=row.get("content_type") or "plain_text",
            metadata=_json_dict(row.get("metadata")),
        )

    # -------------------------------------------------------------------------
    # Entities and Relationships
    # -------------------------------------------------------------------------

    async def get_entities(self, ids: list[str] | None = None) -> list[Entity]:
        if ids is not None and not ids:
            return []

        def _query() -> list[Entity]:
            if ids is None:
                rows = self._fetch("entities", order_by="name")
            else:
                rows = self._fetch("entities", self._in_clause("id", ids), list(ids))
            return [self._row_to_entity(r) for r in rows]

        return await asyncio.to_thread(_query)

    def _row_to_entity(self, row: dict[str, Any]) -> Entity:
        return Entity(
            id=row["id"],
            name=row["name"],
            type=row.get("type") or "Concept",
            description=row.get("description") or "",
            properties=_json_dict(row.get("properties")),
            source_document_ids=set(_json_list(row.get("source_document_ids"))),
            source_chunk_ids=set(_json_list(row.get("source_chunk_ids"))),
            confidence=row.get("confidence", 1.0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            merged_from_ids=_json_list(row.get("merged_from_ids")),
        )

    async def get_relationships(self, ids: list[str] | None = None) -> list[Relationship]:
        if ids is not None and not ids:
            return []

        def _query() -> list[Relationship]:
            if ids is None:
                rows = self._fetch("relationships", order_by="id")
            else:
                rows = self._fetch("relationships", self._in_clause("id", ids), list(ids))
            return [self._row_to_relationship(r) for r in rows]

        return await asyncio.to_thread(_query)

    def _row_to_relationship(self, row: dict[str, Any]) -> Relationship:
        return Relationship(
            id=row["id"],
            source_entity_id=row["source_entity_id"],
            target_entity_id=row["target_entity_id"],
            type=row["type"],
            description=row.get("description") or "",
            weight=row.get("weight", 1.0),
            bidirectional=bool(row.get("bidirectional")),
            properties=_json_dict(row.get("properties")),
            source_document_ids=set(_json_list(row.get("source_document_ids"))),
            source_chunk_ids=set(_json_list(row.get("source_chunk_ids"))),
            confidence=row.get("confidence", 1.0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def count(self, table: str) -> int:
        """Count rows of a table for the current group_id."""
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

        def _query() -> int:
            self._refresh_view(table)
            conn = self._get_conn()
            try:
                result = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE group_id = ?",
                    [self.group_id]
                ).fetchone()
                return result[0] if result else 0
            except duckdb.CatalogException:
                return 0

        return await asyncio.to_thread(_query)
