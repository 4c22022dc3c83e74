"""
Type Definitions

Pydantic models for all data structures.

Storage Models (persisted by graph stores):
    - Document, DocumentChunk - Source content and its segments
    - Entity, Relationship - Graph nodes and edges

Pipeline Models:
    - ChunkingConfig, ProcessingOptions - Run configuration
    - RawEntity, RawRelationship, ExtractionPayload - Oracle output
    - QualityAnalysis, DeduplicationResult, ProcessingResult - Stage outputs
"""

from docgraph.types.documents import (
    ChunkStatus,
    ContentType,
    Document,
    DocumentChunk,
    DocumentMetadata,
    DocumentStatus,
)
from docgraph.types.entities import Entity, Relationship
from docgraph.types.results import (
    BatchQualityResult,
    CacheMetrics,
    ChunkExtraction,
    ChunkingConfig,
    ChunkingResult,
    ChunkingStats,
    DeduplicationResult,
    ExtractionParseResult,
    ExtractionPayload,
    MergeRecord,
    PipelineStage,
    ProcessingLogEntry,
    ProcessingOptions,
    ProcessingResult,
    QualityAnalysis,
    QualityCategory,
    QualityFactor,
    RawEntity,
    RawRelationship,
    StageError,
)

__all__ = [
    # Documents
    "ChunkStatus",
    "ContentType",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentStatus",
    # Graph
    "Entity",
    "Relationship",
    # Options
    "ChunkingConfig",
    "ProcessingOptions",
    # Extraction
    "ChunkExtraction",
    "ExtractionParseResult",
    "ExtractionPayload",
    "RawEntity",
    "RawRelationship",
    # Analysis
    "BatchQualityResult",
    "CacheMetrics",
    "ChunkingResult",
    "ChunkingStats",
    "DeduplicationResult",
    "MergeRecord",
    "QualityAnalysis",
    "QualityCategory",
    "QualityFactor",
    # Pipeline
    "PipelineStage",
    "ProcessingLogEntry",
    "ProcessingResult",
    "StageError",
]
