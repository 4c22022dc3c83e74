"""
Parquet Graph Store

Table Schemas (every table also has group_id):
    documents.parquet:
        id, title, filename, content_type, size_bytes, tags, status, content, created_at

    chunks.parquet:
        id, document_id, text, start_offset, end_offset, sequence_index, heading,
        header_path, entity_ids, relationship_ids, status, content_type, metadata

    entities.parquet:
        id, name, type, description, properties, source_document_ids,
        source_chunk_ids, confidence, merged_from_ids, created_at, updated_at

    relationships.parquet:
        id, source_entity_id, target_entity_id, type, description, weight,
        bidirectional, properties, source_document_ids, source_chunk_ids,
        confidence, created_at, updated_at

Sets, lists and dicts are stored as JSON strings.
"""

from docgraph.storage.parquet.backend import ParquetGraphStore

__all__ = ["ParquetGraphStore"]
