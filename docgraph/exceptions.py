"""
Pipeline Exceptions

Every error raised by the ingestion pipeline carries the stage it was
raised in, so callers can report "[chunking] no chunks produced" without
parsing messages.

Hierarchy:
    DocGraphError
    ├── ValidationError         document rejected before chunking
    ├── ChunkingError           no usable chunks were produced
    ├── ExtractionError         oracle failed for a single chunk (degraded)
    ├── PersistenceError        graph store write failed
    └── PipelineCancelledError  cancellation observed between stages
"""

from __future__ import annotations

from docgraph.types.results import PipelineStage


class DocGraphError(Exception):
    """Base class for docgraph errors."""

    default_stage: PipelineStage | None = None

    def __init__(self, message: str, stage: PipelineStage | str | None = None):
        self.message = message
        if stage is None:
            stage = self.default_stage
        self.stage = PipelineStage(stage) if stage is not None else None
        super().__init__(message)

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"[{self.stage.value}] {self.message}"


class ValidationError(DocGraphError):
    """Document failed validation (empty, oversized, binary, untitled)."""

    default_stage = PipelineStage.VALIDATING


class ChunkingError(DocGraphError):
    """Chunking produced no chunks or was misconfigured."""

    default_stage = PipelineStage.CHUNKING


class ExtractionError(DocGraphError):
    """The extraction oracle failed for a chunk after all retries."""

    default_stage = PipelineStage.EXTRACTING

    def __init__(
        self,
        message: str,
        stage: PipelineStage | str | None = None,
        chunk_id: str | None = None,
    ):
        super().__init__(message, stage)
        self.chunk_id = chunk_id


class PersistenceError(DocGraphError):
    """A graph store write failed."""

    default_stage = PipelineStage.PERSISTING


class PipelineCancelledError(DocGraphError):
    """Processing was cancelled between stages."""
