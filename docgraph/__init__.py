"""
docgraph - Documents to Knowledge Graph

A pip-installable Python library that turns markdown, source code, JSON,
XML and plain text into a deduplicated graph of typed entities and
relationships, stored in an embedded knowledge base directory.

Example:
    >>> from docgraph import KnowledgeGraph
    >>> kg = KnowledgeGraph("./my_kb")
    >>> result = await kg.ingest_file("docs/architecture.md")
    >>> print(result.status, len(result.entities))

Main Classes:
    KnowledgeGraph: Primary entry point for all operations
    KGConfig: Configuration management
    PipelineOrchestrator: The ingestion state machine
    ChunkingEngine: Content-aware chunking (usable standalone)
"""

__version__ = "0.1.0"

# Public API - lazy imports to avoid loading storage and provider dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "KnowledgeGraph":
        from docgraph.api.knowledge_graph import KnowledgeGraph
        return KnowledgeGraph

    if name == "KGConfig":
        from docgraph.config.settings import KGConfig
        return KGConfig

    if name in ("PipelineOrchestrator", "CancellationToken"):
        from docgraph import pipeline
        return getattr(pipeline, name)

    if name == "ChunkingEngine":
        from docgraph.ingestion.chunking import ChunkingEngine
        return ChunkingEngine

    # Types
    if name in (
        "Document", "DocumentChunk", "Entity", "Relationship",
        "ProcessingOptions", "ProcessingResult", "ChunkingConfig",
    ):
        from docgraph import types
        return getattr(types, name)

    raise AttributeError(f"module 'docgraph' has no attribute {name!r}")


__all__ = [
    # Main classes
    "KnowledgeGraph",
    "KGConfig",
    "PipelineOrchestrator",
    "CancellationToken",
    "ChunkingEngine",

    # Types
    "Document",
    "DocumentChunk",
    "Entity",
    "Relationship",
    "ProcessingOptions",
    "ProcessingResult",
    "ChunkingConfig",

    # Version
    "__version__",
]
