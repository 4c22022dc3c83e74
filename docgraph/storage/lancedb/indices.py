"""
LanceDB Chunk Index

Vector index over chunk embeddings with workspace isolation.
"""

import asyncio
import math
import threading
from pathlib import Path
from typing import Any

import lancedb


class ChunkVectorIndex:
    """
    LanceDB table of chunk vectors.

    Columns: id, document_id, group_id, vector

    Multi-tenancy:
        Rows are tagged with group_id; searches and deletes filter on it.

    Thread safety:
        Uses thread-local connections since asyncio.to_thread() may use
        different threads.
    """

    TABLE = "chunks"

    @staticmethod
    def _escape_sql_string(value: str) -> str:
        return value.replace("'", "''")

    def __init__(self, lancedb_path: Path, group_id: str = "default"):
        self.path = lancedb_path
        self.group_id = group_id
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        await asyncio.to_thread(self.path.mkdir, parents=True, exist_ok=True)
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False
        if hasattr(self._local, "db"):
            self._local.db = None

    def _get_db(self) -> lancedb.DBConnection:
        if not self._initialized:
            raise RuntimeError("LanceDB not initialized. Call initialize() first.")

        db = getattr(self._local, "db", None)
        if db is None:
            db = lancedb.connect(str(self.path))
            self._local.db = db
        return db

    @staticmethod
    def _table_names(db: lancedb.DBConnection) -> set[str]:
        """
        Return table names across LanceDB API variants.

        Recent LanceDB returns a response object from list_tables() with a
        `tables` attribute, while older versions return a plain list.
        """
        listed = db.list_tables()
        tables = getattr(listed, "tables", listed)
        return {str(name) for name in tables}

    def _scope(self, extra: str = "") -> str:
        clause = f"group_id = '{self._escape_sql_string(self.group_id)}'"
        return f"{clause} AND {extra}" if extra else clause

    def _ids_clause(self, column: str, values: list[str]) -> str:
        quoted = ", ".join(f"'{self._escape_sql_string(v)}'" for v in values)
        return f"{column} IN ({quoted})"

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add(
        self,
        chunks: list[dict[str, Any]],
        embeddings: list[list[float]],
    ) -> None:
        """
        Upsert chunk vectors.

        Args:
            chunks: Dicts with id and document_id
            embeddings: One vector per chunk
        """
        if not chunks or not embeddings:
            return
        if len(chunks) != len(embeddings):
            raise ValueError(f"Got {len(embeddings)} embeddings for {len(chunks)} chunks")

        def _add() -> None:
            db = self._get_db()
            data = [
                {
                    "id": c["id"],
                    "document_id": c["document_id"],
                    "group_id": self.group_id,
                    "vector": [float(v) for v in emb],
                }
                for c, emb in zip(chunks, embeddings)
            ]

            if self.TABLE in self._table_names(db):
                table = db.open_table(self.TABLE)
                table.delete(self._scope(self._ids_clause("id", [c["id"] for c in chunks])))
                table.add(data)
            else:
                db.create_table(self.TABLE, data)

        await asyncio.to_thread(_add)

    async def delete_document(self, document_id: str) -> None:
        def _delete() -> None:
            db = self._get_db()
            if self.TABLE not in self._table_names(db):
                return
            table = db.open_table(self.TABLE)
            table.delete(self._scope(
                f"document_id = '{self._escape_sql_string(document_id)}'"
            ))

        await asyncio.to_thread(_delete)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> list[tuple[str, float]]:
        """
        Search chunk vectors within the current group_id.

        Returns list of (chunk_id, similarity) tuples, best first.
        LanceDB returns cosine distance; similarity is 1 - distance.
        """
        if limit <= 0 or not any(query_vector):
            return []

        def _search() -> list[tuple[str, float]]:
            db = self._get_db()
            if self.TABLE not in self._table_names(db):
                return []

            table = db.open_table(self.TABLE)
            results = (
                table.search(query_vector)
                .distance_type("cosine")
                .where(self._scope(), prefilter=True)
                .limit(limit)
                .to_arrow()
            )

            output: list[tuple[str, float]] = []
            for i in range(results.num_rows):
                distance = results.column("_distance")[i].as_py()
                # zero vectors have no direction
                if distance is None or math.isnan(distance):
                    continue
                similarity = 1 - distance
                if similarity >= threshold:
                    output.append((results.column("id")[i].as_py(), similarity))
            return output

        return await asyncio.to_thread(_search)
