"""
DuckDB Query Layer

Workspace-scoped SQL reads over the Parquet dataset directories.

Example:
    -- Chunks of one document, in order
    SELECT * FROM chunks
    WHERE group_id = ? AND document_id = ?
    ORDER BY document_id, sequence_index
"""

from docgraph.storage.duckdb.queries import DuckDBQueries

__all__ = ["DuckDBQueries"]
