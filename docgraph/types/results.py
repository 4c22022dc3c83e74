"""
Result and Option Types

Models exchanged between pipeline stages and returned to callers.

Option Models:
    - ChunkingConfig: Size limits for the chunking engine
    - ProcessingOptions: Per-run knobs for the orchestrator

Extraction Models:
    - RawEntity, RawRelationship, ExtractionPayload: Oracle output after parsing
    - ExtractionParseResult: Tagged parse outcome (never raises)
    - ChunkExtraction: Per-chunk extraction outcome

Analysis Models:
    - QualityFactor, QualityAnalysis, BatchQualityResult
    - CacheMetrics
    - ChunkingStats, ChunkingResult
    - MergeRecord, DeduplicationResult

Pipeline Models:
    - PipelineStage, ProcessingLogEntry, StageError, ProcessingResult
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from docgraph.types.documents import DocumentChunk, DocumentStatus
from docgraph.types.entities import Entity, Relationship

# -----------------------------------------------------------------------------
# Options
# -----------------------------------------------------------------------------


class ChunkingConfig(BaseModel):
    """Chunk size limits, in characters."""

    max_chunk_size: int = Field(default=8000, gt=0)
    min_chunk_size: int = Field(default=100, gt=0)
    overlap_size: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def _check_sizes(self) -> "ChunkingConfig":
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError(
                f"min_chunk_size ({self.min_chunk_size}) must not exceed "
                f"max_chunk_size ({self.max_chunk_size})"
            )
        if 2 * self.overlap_size >= self.max_chunk_size:
            raise ValueError(
                f"overlap_size ({self.overlap_size}) must be less than half of "
                f"max_chunk_size ({self.max_chunk_size})"
            )
        return self


class ProcessingOptions(BaseModel):
    """
    Knobs for a single orchestrator run.

    Defaults mirror KGConfig; use KGConfig.processing_options() to build
    one from configuration.
    """

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    batch_size: int = Field(default=5, gt=0)
    entity_types: list[str] = Field(
        default_factory=lambda: [
            "Person", "Organization", "Technology", "Concept", "Location", "Event",
        ]
    )
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    max_document_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    binary_ratio_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    existing_entity_context_limit: int = Field(default=20, ge=0)
    extraction_max_retries: int = Field(default=3, ge=0)
    extraction_base_delay: float = Field(default=1.0, ge=0.0)
    extraction_max_delay: float = Field(default=30.0, ge=0.0)
    use_cache: bool = True


# -----------------------------------------------------------------------------
# Extraction
# -----------------------------------------------------------------------------


def _default_if_none(value: Any, default: Any) -> Any:
    return default if value is None else value


def _clamp_unit(value: Any, default: float) -> Any:
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return min(1.0, max(0.0, float(value)))
    return value


class RawEntity(BaseModel):
    """
    An entity as reported by the extraction oracle.

    Null text fields fall back to their defaults and confidence is clamped
    into [0, 1], so a sloppy but usable item is kept instead of skipped.
    """

    name: str = Field(..., min_length=1, description="Entity name as it appears in the text")
    type: str = Field(default="Concept", description="Entity type label")
    description: str = Field(default="", description="What the entity is")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def _type_default(cls, v: Any) -> Any:
        return _default_if_none(v, "Concept")

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, v: Any) -> Any:
        return _default_if_none(v, "")

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> Any:
        return _clamp_unit(v, 0.5)


class RawRelationship(BaseModel):
    """A relationship as reported by the extraction oracle, keyed by entity names."""

    source: str = Field(..., min_length=1, description="Source entity name")
    target: str = Field(..., min_length=1, description="Target entity name")
    type: str = Field(default="related_to", description="Relationship label")
    description: str = Field(default="")
    weight: float = Field(default=0.5, ge=0.0, le=1.0)
    bidirectional: bool = False
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def _type_default(cls, v: Any) -> Any:
        return _default_if_none(v, "related_to")

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, v: Any) -> Any:
        return _default_if_none(v, "")

    @field_validator("bidirectional", mode="before")
    @classmethod
    def _bidirectional_default(cls, v: Any) -> Any:
        return _default_if_none(v, False)

    @field_validator("weight", "confidence", mode="before")
    @classmethod
    def _clamp_scores(cls, v: Any) -> Any:
        return _clamp_unit(v, 0.5)


class ExtractionPayload(BaseModel):
    """Parsed oracle output for one chunk."""

    entities: list[RawEntity] = Field(default_factory=list)
    relationships: list[RawRelationship] = Field(default_factory=list)


class ExtractionParseResult(BaseModel):
    """
    Tagged outcome of parsing an oracle response.

    `ok` is False only when no JSON object could be recovered; item-level
    validation failures are reported in `skipped` and `warnings`.
    """

    ok: bool
    payload: ExtractionPayload = Field(default_factory=ExtractionPayload)
    error: str | None = None
    repairs: list[str] = Field(default_factory=list)
    skipped: int = 0
    warnings: list[str] = Field(default_factory=list)


class ChunkExtraction(BaseModel):
    """Entities and relationships extracted from a single chunk."""

    chunk_id: str
    sequence_index: int
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    from_cache: bool = False
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Quality
# -----------------------------------------------------------------------------


class QualityCategory(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class QualityFactor(BaseModel):
    """One weighted factor of a quality score."""

    score: float = Field(..., ge=0.0, le=1.0)
    weight: float = Field(..., ge=0.0, le=1.0)
    contribution: float
    details: str = ""


class QualityAnalysis(BaseModel):
    """Weighted multi-factor quality assessment of one artifact."""

    score: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    factors: dict[str, QualityFactor] = Field(default_factory=dict)
    category: QualityCategory
    recommendations: list[str] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)


class BatchQualityResult(BaseModel):
    """Aggregate quality over a batch of entities and relationships."""

    average_score: float = 0.0
    distribution: dict[str, int] = Field(
        default_factory=lambda: {c.value: 0 for c in QualityCategory}
    )
    top_entities: list[tuple[str, float]] = Field(default_factory=list)
    top_relationships: list[tuple[str, float]] = Field(default_factory=list)
    below_threshold: int = 0


# -----------------------------------------------------------------------------
# Cache
# -----------------------------------------------------------------------------


class CacheMetrics(BaseModel):
    entries: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    total_size_bytes: int = 0
    evictions: int = 0
    expirations: int = 0


# -----------------------------------------------------------------------------
# Chunking
# -----------------------------------------------------------------------------


class ChunkingStats(BaseModel):
    count: int = 0
    avg_size: float = 0.0
    min_size: int = 0
    max_size: int = 0
    overlap_count: int = 0


class ChunkingResult(BaseModel):
    """Chunks produced for a document plus non-fatal warnings."""

    chunks: list[DocumentChunk] = Field(default_factory=list)
    content_type: str = "plain_text"
    warnings: list[str] = Field(default_factory=list)
    stats: ChunkingStats = Field(default_factory=ChunkingStats)


# -----------------------------------------------------------------------------
# Deduplication
# -----------------------------------------------------------------------------


class MergeRecord(BaseModel):
    """Record of one entity or relationship folded into another."""

    kind: Literal["entity", "relationship"] = "entity"
    surviving_id: str
    merged_id: str
    merged_name: str = ""


class DeduplicationResult(BaseModel):
    """
    Output of the deduplication engine.

    `new_entities` and `new_relationships` contain every artifact that
    should be upserted, including existing store entities that absorbed
    incoming duplicates.
    """

    new_entities: list[Entity] = Field(default_factory=list)
    new_relationships: list[Relationship] = Field(default_factory=list)
    merged_count: int = 0
    merges: list[MergeRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------


class PipelineStage(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    CHUNKING = "chunking"
    EXTRACTING = "extracting"
    SCORING = "scoring"
    DEDUPLICATING = "deduplicating"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingLogEntry(BaseModel):
    timestamp: str
    stage: PipelineStage
    status: Literal["started", "completed", "error", "warning"]
    message: str = ""
    duration_ms: float | None = None

    model_config = ConfigDict(use_enum_values=True)


class StageError(BaseModel):
    stage: PipelineStage
    message: str

    model_config = ConfigDict(use_enum_values=True)


class ProcessingResult(BaseModel):
    """
    Outcome of processing one document.

    On failure `status` is "failed", `stage` is the stage that failed,
    and the artifact lists are empty: nothing was persisted.
    """

    document_id: str
    status: DocumentStatus
    stage: PipelineStage
    chunks: list[DocumentChunk] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    log: list[ProcessingLogEntry] = Field(default_factory=list)
    errors: list[StageError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    merged_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)

    @property
    def succeeded(self) -> bool:
        return self.status == DocumentStatus.COMPLETED
