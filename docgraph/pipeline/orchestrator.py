"""
Pipeline Orchestrator

Runs one document through the ingestion state machine:

    Pending -> Validating -> Chunking -> Extracting -> Scoring
            -> Deduplicating -> Persisting -> Completed

Failed is reachable from every non-terminal stage. Each stage is logged
twice: as a ProcessingLogEntry on the result and through stdlib logging.

Nothing is written to the store until every earlier stage has succeeded;
a failed run returns a ProcessingResult with status "failed" and the
stage that failed.

Example:
    >>> orchestrator = PipelineOrchestrator(store, llm, embedder=embedder)
    >>> result = await orchestrator.process(document)
    >>> print(result.status, len(result.entities))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from docgraph.exceptions import (
    ChunkingError,
    DocGraphError,
    ExtractionError,
    PersistenceError,
    PipelineCancelledError,
)
from docgraph.ingestion.chunking import ChunkingEngine
from docgraph.ingestion.extraction import ChunkExtractor
from docgraph.ingestion.quality import QualityContext, QualityScorer
from docgraph.ingestion.resolution import DeduplicationEngine
from docgraph.ingestion.validation import validate_document
from docgraph.types import (
    ChunkExtraction,
    ChunkStatus,
    Document,
    DocumentChunk,
    DocumentStatus,
    Entity,
    PipelineStage,
    ProcessingLogEntry,
    ProcessingOptions,
    ProcessingResult,
    Relationship,
    StageError,
)

if TYPE_CHECKING:
    from docgraph.cache import ResultCache
    from docgraph.providers.base import LLMProvider
    from docgraph.providers.embedder import SafeEmbedder
    from docgraph.storage.base import GraphStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]

_S = PipelineStage

ALLOWED_TRANSITIONS: dict[PipelineStage, set[PipelineStage]] = {
    _S.PENDING: {_S.VALIDATING, _S.FAILED},
    _S.VALIDATING: {_S.CHUNKING, _S.FAILED},
    _S.CHUNKING: {_S.EXTRACTING, _S.FAILED},
    _S.EXTRACTING: {_S.SCORING, _S.FAILED},
    _S.SCORING: {_S.DEDUPLICATING, _S.FAILED},
    _S.DEDUPLICATING: {_S.PERSISTING, _S.FAILED},
    _S.PERSISTING: {_S.COMPLETED, _S.FAILED},
    _S.COMPLETED: set(),
    _S.FAILED: set(),
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class CancellationToken:
    """
    Cooperative cancellation for a pipeline run.

    The orchestrator checks the token between stages, never mid-stage.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = "Processing cancelled"

    def cancel(self, reason: str | None = None) -> None:
        self._cancelled = True
        if reason:
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, stage: PipelineStage) -> None:
        if self._cancelled:
            raise PipelineCancelledError(self.reason, stage)


class _RunState:
    """Stage tracking and log collection for one document."""

    def __init__(self, document_id: str, on_progress: ProgressCallback | None = None):
        self.document_id = document_id
        self.stage = PipelineStage.PENDING
        self.log: list[ProcessingLogEntry] = []
        self.warnings: list[str] = []
        self._on_progress = on_progress

    def transition(self, target: PipelineStage) -> None:
        if target not in ALLOWED_TRANSITIONS[self.stage]:
            raise RuntimeError(
                f"Illegal pipeline transition {self.stage.value} -> {target.value}"
            )
        self.stage = target

    def record(
        self,
        status: str,
        message: str = "",
        duration_ms: float | None = None,
        stage: PipelineStage | None = None,
    ) -> None:
        stage = stage or self.stage
        self.log.append(
            ProcessingLogEntry(
                timestamp=_timestamp(),
                stage=stage,
                status=status,
                message=message,
                duration_ms=duration_ms,
            )
        )
        text = f"[{self.document_id}] {stage.value}: {message or status}"
        if status == "error":
            logger.error(text)
        elif status == "warning":
            logger.warning(text)
        else:
            logger.info(text)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        self.record("warning", message)

    def progress(self, fraction: float) -> None:
        if self._on_progress:
            self._on_progress(self.stage.value, fraction)

    @contextmanager
    def stage_scope(self, stage: PipelineStage) -> Iterator[dict[str, str]]:
        """Enter a stage; yields a dict whose "message" is logged on completion."""
        self.transition(stage)
        self.record("started")
        self.progress(0.0)
        start = time.perf_counter()
        summary: dict[str, str] = {"message": ""}
        yield summary
        duration_ms = (time.perf_counter() - start) * 1000
        self.record("completed", summary["message"], duration_ms)
        self.progress(1.0)


class PipelineOrchestrator:
    """
    Document ingestion pipeline.

    Args:
        store: Graph store (snapshot source and persistence target)
        llm: Extraction oracle
        embedder: Chunk embedder; chunks are stored without vectors when None
        result_cache: Cache of parsed oracle payloads, shared across runs
        scorer: Quality scorer (default: QualityScorer())
        dedup: Deduplication engine (default: exact-name matching)
        options: Default ProcessingOptions for process()
        sleep: Awaitable sleep used between oracle retries
    """

    def __init__(
        self,
        store: GraphStore,
        llm: LLMProvider,
        embedder: SafeEmbedder | None = None,
        result_cache: ResultCache | None = None,
        scorer: QualityScorer | None = None,
        dedup: DeduplicationEngine | None = None,
        options: ProcessingOptions | None = None,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.llm = llm
        self.embedder = embedder
        self.result_cache = result_cache
        self.scorer = scorer or QualityScorer()
        self.dedup = dedup or DeduplicationEngine()
        self.options = options or ProcessingOptions()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sleep = sleep

    def _extractor(self, options: ProcessingOptions) -> ChunkExtractor:
        return ChunkExtractor(
            self.llm,
            self.result_cache,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            max_retries=options.extraction_max_retries,
            base_delay=options.extraction_base_delay,
            max_delay=options.extraction_max_delay,
            sleep=self._sleep,
        )

    async def process(
        self,
        document: Document,
        options: ProcessingOptions | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ProcessingResult:
        """
        Process one document end to end.

        The document's status is moved to processing, then completed or
        failed. Errors never escape: they are reported on the result.

        Args:
            document: Document to ingest
            options: Run options (default: the orchestrator's options)
            cancel_token: Checked between stages
            on_progress: Callback (stage, fraction complete)

        Returns:
            ProcessingResult
        """
        options = options or self.options
        token = cancel_token or CancellationToken()
        run = _RunState(document.id, on_progress)
        started = time.perf_counter()
        document.status = DocumentStatus.PROCESSING.value

        try:
            return await self._run(document, options, token, run, started)
        except DocGraphError as e:
            return await self._fail(document, run, e, started)
        except Exception as e:
            logger.exception(f"[{document.id}] Unexpected error during {run.stage.value}")
            return await self._fail(document, run, e, started)

    async def _run(
        self,
        document: Document,
        options: ProcessingOptions,
        token: CancellationToken,
        run: _RunState,
        started: float,
    ) -> ProcessingResult:
        # Validating
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.VALIDATING) as summary:
            validate_document(document, options)
            summary["message"] = f"{len(document.content)} chars"

        # Chunking
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.CHUNKING) as summary:
            chunking = ChunkingEngine(options.chunking).chunk(document)
            for warning in chunking.warnings:
                run.warn(warning)
            if not chunking.chunks:
                raise ChunkingError("No chunks generated")
            chunks = chunking.chunks
            summary["message"] = f"{len(chunks)} {chunking.content_type} chunks"

        # Extracting
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.EXTRACTING) as summary:
            snapshot_entities, snapshot_relationships = await self._snapshot()
            extractions = await self._extract_all(
                document, chunks, options, snapshot_entities, run
            )
            entities, relationships = self._collect(chunks, extractions, run)
            failed = sum(1 for x in extractions if x.error)
            cached = sum(1 for x in extractions if x.from_cache)
            summary["message"] = (
                f"{len(entities)} entities, {len(relationships)} relationships "
                f"({cached} cached, {failed} failed chunks)"
            )

        # Scoring
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.SCORING) as summary:
            entities, relationships = self._score(
                document, chunks, entities, relationships, snapshot_entities, options, run
            )
            batch = self.scorer.analyze_batch(entities, relationships)
            summary["message"] = f"average quality {batch.average_score:.2f}"

        # Deduplicating
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.DEDUPLICATING) as summary:
            dedup = self.dedup.deduplicate(
                entities, relationships, snapshot_entities, snapshot_relationships
            )
            for warning in dedup.warnings:
                run.warn(warning)
            self._link_chunks(chunks, dedup.new_entities, dedup.new_relationships)
            summary["message"] = f"{dedup.merged_count} merged"

        # Persisting
        token.raise_if_cancelled(run.stage)
        with run.stage_scope(PipelineStage.PERSISTING) as summary:
            await self._persist(document, chunks, dedup.new_entities, dedup.new_relationships)
            summary["message"] = (
                f"{len(chunks)} chunks, {len(dedup.new_entities)} entities, "
                f"{len(dedup.new_relationships)} relationships"
            )

        run.transition(PipelineStage.COMPLETED)
        document.status = DocumentStatus.COMPLETED.value
        elapsed_ms = (time.perf_counter() - started) * 1000
        run.record("completed", f"done in {elapsed_ms:.0f}ms")

        return ProcessingResult(
            document_id=document.id,
            status=DocumentStatus.COMPLETED,
            stage=PipelineStage.COMPLETED,
            chunks=chunks,
            entities=dedup.new_entities,
            relationships=dedup.new_relationships,
            processing_time_ms=elapsed_ms,
            log=run.log,
            warnings=run.warnings,
            merged_count=dedup.merged_count,
            metadata={
                "content_type": chunking.content_type,
                "chunking": chunking.stats.model_dump(),
                "cached_chunks": cached,
                "failed_chunks": failed,
                "average_quality": round(batch.average_score, 4),
                "quality_distribution": batch.distribution,
            },
        )

    async def _fail(
        self,
        document: Document,
        run: _RunState,
        error: Exception,
        started: float,
    ) -> ProcessingResult:
        failed_stage = run.stage
        if isinstance(error, DocGraphError) and error.stage is not None:
            failed_stage = error.stage
        message = error.message if isinstance(error, DocGraphError) else str(error)

        if run.stage in (PipelineStage.COMPLETED, PipelineStage.FAILED):
            raise RuntimeError(f"Cannot fail a run in terminal stage {run.stage.value}")
        persisting = run.stage == PipelineStage.PERSISTING
        run.transition(PipelineStage.FAILED)
        run.record("error", message, stage=failed_stage)
        document.status = DocumentStatus.FAILED.value

        if persisting:
            try:
                await self.store.update_document_status(document.id, DocumentStatus.FAILED)
            except Exception as e:
                logger.warning(f"[{document.id}] Could not mark document failed in store: {e}")

        return ProcessingResult(
            document_id=document.id,
            status=DocumentStatus.FAILED,
            stage=failed_stage,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            log=run.log,
            errors=[StageError(stage=failed_stage, message=message)],
            warnings=run.warnings,
        )

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    async def _snapshot(self) -> tuple[list[Entity], list[Relationship]]:
        try:
            entities = await self.store.get_entities()
            relationships = await self.store.get_relationships()
        except Exception as e:
            raise PersistenceError(
                f"Could not read graph snapshot: {e}", PipelineStage.EXTRACTING
            ) from e
        return entities, relationships

    async def _extract_all(
        self,
        document: Document,
        chunks: list[DocumentChunk],
        options: ProcessingOptions,
        snapshot_entities: list[Entity],
        run: _RunState,
    ) -> list[ChunkExtraction]:
        extractor = self._extractor(options)
        known = sorted(snapshot_entities, key=lambda e: -e.confidence)
        known = known[: options.existing_entity_context_limit]

        async def extract_one(chunk: DocumentChunk) -> ChunkExtraction:
            try:
                return await extractor.extract(
                    chunk,
                    title=document.metadata.title,
                    entity_types=options.entity_types,
                    known_entities=known,
                    known_limit=options.existing_entity_context_limit,
                    use_cache=options.use_cache,
                )
            except ExtractionError as e:
                return ChunkExtraction(
                    chunk_id=chunk.id,
                    sequence_index=chunk.sequence_index,
                    error=e.message,
                )

        results: list[ChunkExtraction] = []
        batch_size = options.batch_size
        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            results.extend(await asyncio.gather(*(extract_one(c) for c in batch)))
            run.progress(min(1.0, (start + len(batch)) / len(chunks)))

        results.sort(key=lambda x: x.sequence_index)
        for extraction in results:
            for warning in extraction.warnings:
                run.warn(warning)
            if extraction.error:
                run.warn(f"Extraction failed for {extraction.chunk_id}: {extraction.error}")
        return results

    def _collect(
        self,
        chunks: list[DocumentChunk],
        extractions: list[ChunkExtraction],
        run: _RunState,
    ) -> tuple[list[Entity], list[Relationship]]:
        by_id = {c.id: c for c in chunks}
        entities: list[Entity] = []
        relationships: list[Relationship] = []
        for extraction in extractions:
            chunk = by_id[extraction.chunk_id]
            if extraction.error:
                chunk.status = ChunkStatus.ERROR.value
                continue
            chunk.status = ChunkStatus.COMPLETED.value
            chunk.entity_ids = [e.id for e in extraction.entities]
            chunk.relationship_ids = [r.id for r in extraction.relationships]
            entities.extend(extraction.entities)
            relationships.extend(extraction.relationships)
        return entities, relationships

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def _score(
        self,
        document: Document,
        chunks: list[DocumentChunk],
        entities: list[Entity],
        relationships: list[Relationship],
        snapshot_entities: list[Entity],
        options: ProcessingOptions,
        run: _RunState,
    ) -> tuple[list[Entity], list[Relationship]]:
        known_docs = {e.id: set(e.source_document_ids) for e in snapshot_entities}
        document_counts = {
            e.id: len(known_docs.get(e.id, set()) | e.source_document_ids) for e in entities
        }
        context = QualityContext(
            entities=entities,
            relationships=relationships,
            text=document.content,
            document_counts=document_counts,
        )

        for entity in entities:
            analysis = self.scorer.score_entity(entity, context)
            entity.properties["quality_score"] = round(analysis.score, 4)
            entity.properties["quality_category"] = analysis.category
        for rel in relationships:
            analysis = self.scorer.score_relationship(rel, context)
            rel.properties["quality_score"] = round(analysis.score, 4)
            rel.properties["quality_category"] = analysis.category

        chunk_context = QualityContext(target_chunk_size=options.chunking.max_chunk_size)
        for chunk in chunks:
            chunk.metadata["quality_score"] = round(
                self.scorer.score_chunk(chunk, chunk_context).score, 4
            )

        if options.min_confidence > 0:
            kept_entities = [e for e in entities if e.confidence >= options.min_confidence]
            kept_relationships = [
                r for r in relationships if r.confidence >= options.min_confidence
            ]
            dropped = (len(entities) - len(kept_entities),
                       len(relationships) - len(kept_relationships))
            if any(dropped):
                run.warn(
                    f"Filtered {dropped[0]} entities and {dropped[1]} relationships "
                    f"below confidence {options.min_confidence}"
                )
            entities, relationships = kept_entities, kept_relationships

        return entities, relationships

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @staticmethod
    def _link_chunks(
        chunks: list[DocumentChunk],
        entities: list[Entity],
        relationships: list[Relationship],
    ) -> None:
        """Point chunk.entity_ids/relationship_ids at the post-merge ids."""
        by_id = {c.id: c for c in chunks}
        entity_ids: dict[str, list[str]] = {c.id: [] for c in chunks}
        rel_ids: dict[str, list[str]] = {c.id: [] for c in chunks}
        for entity in entities:
            for chunk_id in sorted(entity.source_chunk_ids):
                if chunk_id in by_id:
                    entity_ids[chunk_id].append(entity.id)
        for rel in relationships:
            for chunk_id in sorted(rel.source_chunk_ids):
                if chunk_id in by_id:
                    rel_ids[chunk_id].append(rel.id)
        for chunk in chunks:
            chunk.entity_ids = entity_ids[chunk.id]
            chunk.relationship_ids = rel_ids[chunk.id]

    async def _persist(
        self,
        document: Document,
        chunks: list[DocumentChunk],
        entities: list[Entity],
        relationships: list[Relationship],
    ) -> None:
        try:
            await self.store.add_document(document)
            embeddings = None
            if self.embedder is not None:
                embeddings = await self.embedder.embed([c.text for c in chunks])
            await self.store.add_chunks(chunks, embeddings)
            await self.store.add_entities(entities)
            await self.store.add_relationships(relationships)
            await self.store.update_document_status(document.id, DocumentStatus.COMPLETED)
        except Exception as e:
            raise PersistenceError(f"Graph store write failed: {e}") from e
