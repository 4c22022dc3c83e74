"""
Graph Stores

Modules:
    base: GraphStore interface and cascade-delete rules
    memory: In-process store (numpy/scipy vector query)
    parquet/: Persistent store (Parquet part files)
    duckdb/: SQL read layer over the Parquet tables
    lancedb/: Chunk vector index

Knowledge Base Directory Structure:
    my_kb/
    ├── metadata.json
    ├── documents.parquet/
    ├── chunks.parquet/
    ├── entities.parquet/
    ├── relationships.parquet/
    └── lancedb/
        └── chunks.lance/
"""

from docgraph.storage.base import GraphStore, plan_document_deletion, validate_group_id
from docgraph.storage.memory import InMemoryGraphStore
from docgraph.storage.parquet.backend import ParquetGraphStore

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "ParquetGraphStore",
    "plan_document_deletion",
    "validate_group_id",
]
