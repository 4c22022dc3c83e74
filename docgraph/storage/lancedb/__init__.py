"""
LanceDB Vector Index

Chunk embeddings for query_chunks, filtered by workspace.
"""

from docgraph.storage.lancedb.indices import ChunkVectorIndex

__all__ = ["ChunkVectorIndex"]
