"""
KnowledgeGraph - Primary Entry Point

The KnowledgeGraph class manages a knowledge base directory and provides
methods for ingestion, search, and inspection.

A knowledge base is a self-contained directory containing:
    - documents.parquet/: Source documents and their status
    - chunks.parquet/: Document chunks with offsets and headings
    - entities.parquet/: Deduplicated entities with provenance
    - relationships.parquet/: Typed, weighted edges
    - lancedb/: Chunk vector index
    - metadata.json: KB metadata and version

Example:
    >>> kg = KnowledgeGraph("./my_kb")
    >>> result = await kg.ingest_file("notes/architecture.md")
    >>> print(result.status, len(result.entities))
    >>> hits = await kg.search("message queues")

    # Or with sync API
    >>> kg = KnowledgeGraph("./my_kb")
    >>> kg.ingest_file_sync("README.md")
    >>> kg.stats_sync()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from docgraph.cache import EmbeddingCache, ResultCache
    from docgraph.config.settings import KGConfig
    from docgraph.pipeline import CancellationToken, PipelineOrchestrator
    from docgraph.providers.base import EmbeddingProvider, LLMProvider
    from docgraph.providers.embedder import SafeEmbedder
    from docgraph.storage.base import GraphStore
    from docgraph.types import (
        CacheMetrics,
        Document,
        DocumentChunk,
        Entity,
        ProcessingOptions,
        ProcessingResult,
        Relationship,
    )

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


class KnowledgeGraph:
    """
    A portable, embedded knowledge graph built from documents.

    Args:
        path: Directory for the knowledge base. Created if it doesn't exist.
        config: Optional configuration. Uses defaults if not provided.
        workspace: Workspace (group_id) this instance reads and writes.
        create: If True, create directory if missing. Default True.
    """

    def __init__(
        self,
        path: str | Path,
        config: "KGConfig | None" = None,
        workspace: str = "default",
        create: bool = True,
    ) -> None:
        self._path = Path(path).resolve()
        self._workspace = workspace
        self._create = create

        if config is None:
            from docgraph.config import KGConfig
            config = KGConfig()
        self._config = config

        # Lazy-initialized components
        self._storage: "GraphStore | None" = None
        self._llm: "LLMProvider | None" = None
        self._embeddings: "EmbeddingProvider | None" = None
        self._embedder: "SafeEmbedder | None" = None
        self._result_cache: "ResultCache | None" = None
        self._embedding_cache: "EmbeddingCache | None" = None
        self._orchestrator: "PipelineOrchestrator | None" = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Lazy initialization of storage, providers and caches on first use."""
        if self._initialized:
            return

        from docgraph.cache import EmbeddingCache, ResultCache
        from docgraph.ingestion.quality import QualityScorer
        from docgraph.ingestion.resolution import DeduplicationEngine, build_matcher
        from docgraph.pipeline import PipelineOrchestrator
        from docgraph.providers.embedder import SafeEmbedder

        if self._storage is None:
            self._storage = self._create_storage()
        await self._storage.initialize()

        if self._llm is None:
            self._llm = self._create_llm_provider()
        if self._embeddings is None:
            self._embeddings = self._create_embedding_provider()

        if self._config.cache_enabled:
            self._result_cache = ResultCache(
                max_entries=self._config.result_cache_max_entries,
                ttl_seconds=self._config.result_cache_ttl_seconds,
                max_size_bytes=int(self._config.result_cache_max_size_mb * _MB),
            )
            self._embedding_cache = EmbeddingCache(
                max_entries=self._config.embedding_cache_max_entries,
                ttl_seconds=self._config.embedding_cache_ttl_seconds,
                max_size_bytes=int(self._config.embedding_cache_max_size_mb * _MB),
            )
            await self._result_cache.start()
            await self._embedding_cache.start()

        self._embedder = SafeEmbedder(
            self._embeddings,
            dimensions=self._config.embedding_dimensions,
            max_tokens=self._config.embedding_max_tokens,
            cache=self._embedding_cache,
        )
        self._orchestrator = PipelineOrchestrator(
            self._storage,
            self._llm,
            embedder=self._embedder,
            result_cache=self._result_cache,
            scorer=QualityScorer(),
            dedup=DeduplicationEngine(
                build_matcher(
                    self._config.dedup_strategy,
                    self._config.dedup_similarity_threshold,
                )
            ),
            options=self._config.processing_options(),
            temperature=self._config.llm_temperature,
            max_tokens=self._config.llm_max_tokens,
        )
        self._initialized = True
        logger.debug(f"Knowledge graph ready at {self._path} (workspace {self._workspace})")

    def _create_storage(self) -> "GraphStore":
        """Create the graph store based on config."""
        backend = self._config.storage_backend.lower()

        if backend == "parquet":
            if self._create:
                self._path.mkdir(parents=True, exist_ok=True)
            elif not self._path.exists():
                raise FileNotFoundError(f"Knowledge base not found: {self._path}")
            from docgraph.storage.parquet.backend import ParquetGraphStore
            return ParquetGraphStore(self._path, self._config, group_id=self._workspace)
        elif backend == "memory":
            from docgraph.storage.memory import InMemoryGraphStore
            return InMemoryGraphStore(group_id=self._workspace)
        else:
            raise ValueError(f"Unknown storage backend: {backend}")

    def _create_llm_provider(self) -> "LLMProvider":
        """Create LLM provider based on config."""
        provider = self._config.llm_provider.lower()

        if provider == "openai":
            from docgraph.providers.llm.openai import OpenAILLMProvider
            return OpenAILLMProvider(
                api_key=self._config.openai_api_key,
                model=self._config.llm_model,
            )
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

    def _create_embedding_provider(self) -> "EmbeddingProvider | None":
        """Create embedding provider based on config ("none" disables embeddings)."""
        provider = self._config.embedding_provider.lower()

        if provider == "openai":
            from docgraph.providers.embedding.openai import OpenAIEmbeddingProvider
            return OpenAIEmbeddingProvider(
                api_key=self._config.openai_api_key,
                model=self._config.embedding_model,
                dimensions=self._config.embedding_dimensions,
            )
        elif provider == "none":
            return None
        else:
            raise ValueError(f"Unknown embedding provider: {provider}")

    # === Lifecycle ===

    async def __aenter__(self) -> "KnowledgeGraph":
        await self._ensure_initialized()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release all resources."""
        for cache in (self._result_cache, self._embedding_cache):
            if cache is not None:
                await cache.stop()
        if self._storage is not None:
            await self._storage.close()
        self._orchestrator = None
        self._initialized = False

    # === Properties ===

    @property
    def path(self) -> Path:
        """Path to the knowledge base directory."""
        return self._path

    @property
    def workspace(self) -> str:
        return self._workspace

    @property
    def config(self) -> "KGConfig":
        """Current configuration."""
        return self._config

    @property
    def is_initialized(self) -> bool:
        """Whether the knowledge graph has been initialized."""
        return self._initialized

    # === Ingestion Methods ===

    async def ingest_text(
        self,
        content: str,
        *,
        title: str | None = None,
        filename: str | None = None,
        content_type: str | None = None,
        tags: list[str] | None = None,
        options: "ProcessingOptions | None" = None,
        cancel_token: "CancellationToken | None" = None,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> "ProcessingResult":
        """
        Ingest a text document.

        The text is sanitized first; the document id is derived from the
        filename and sanitized content, so re-ingesting is idempotent.

        Args:
            content: Document text
            title: Title (defaults to the filename stem)
            filename: Original filename, used for content type detection
            content_type: ContentType value or MIME type hint
            tags: Free-form labels
            options: Per-run overrides of the configured ProcessingOptions
            cancel_token: Checked between pipeline stages
            on_progress: Callback (stage, fraction complete)

        Returns:
            ProcessingResult
        """
        await self._ensure_initialized()
        assert self._orchestrator is not None

        from docgraph.ingestion.validation import sanitize_text
        from docgraph.types import Document, DocumentMetadata
        from docgraph.utils.text import generate_document_id

        text = sanitize_text(content)
        if title is None and filename:
            title = Path(filename).stem
        document = Document(
            id=generate_document_id(text, filename),
            content=text,
            metadata=DocumentMetadata(
                title=title or "",
                filename=filename,
                content_type=content_type,
                size_bytes=len(text.encode("utf-8")),
                tags=list(tags or []),
            ),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        return await self._orchestrator.process(
            document, options, cancel_token=cancel_token, on_progress=on_progress
        )

    async def ingest_file(
        self,
        path: str | Path,
        *,
        title: str | None = None,
        tags: list[str] | None = None,
        options: "ProcessingOptions | None" = None,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> "ProcessingResult":
        """Ingest a file; undecodable bytes are replaced and caught by validation."""
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        raw = await asyncio.to_thread(path.read_bytes)
        return await self.ingest_text(
            raw.decode("utf-8", errors="replace"),
            title=title,
            filename=path.name,
            tags=tags,
            options=options,
            on_progress=on_progress,
        )

    async def ingest_directory(
        self,
        path: str | Path,
        *,
        pattern: str = "**/*",
        tags: list[str] | None = None,
        on_progress: Callable[[str, int, int], None] | None = None,
    ) -> list["ProcessingResult"]:
        """
        Ingest all matching files in a directory.

        Args:
            path: Directory path
            pattern: Glob pattern (default: every file, recursively)
            tags: Labels applied to every document
            on_progress: Callback (filename, current, total)

        Returns:
            List of ProcessingResult for each file
        """
        path = Path(path)
        if not path.is_dir():
            raise ValueError(f"Not a directory: {path}")

        files = sorted(
            p for p in path.glob(pattern)
            if p.is_file() and not any(part.startswith(".") for part in p.relative_to(path).parts)
        )
        results = []
        for i, file_path in enumerate(files):
            if on_progress:
                on_progress(file_path.name, i + 1, len(files))
            results.append(await self.ingest_file(file_path, tags=tags))
        return results

    # Sync wrappers
    def ingest_text_sync(self, content: str, **kwargs: Any) -> "ProcessingResult":
        return asyncio.run(self.ingest_text(content, **kwargs))

    def ingest_file_sync(self, path: str | Path, **kwargs: Any) -> "ProcessingResult":
        return asyncio.run(self.ingest_file(path, **kwargs))

    # === Search ===

    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        threshold: float = 0.3,
    ) -> list[tuple["DocumentChunk", float]]:
        """Search chunks by embedding similarity. Returns (chunk, score) tuples."""
        await self._ensure_initialized()
        assert self._storage is not None
        assert self._embedder is not None

        if not self._embedder.enabled:
            logger.warning("Search requires an embedding provider; none is configured")
            return []

        vector = await self._embedder.embed_one(query)
        return await self._storage.query_chunks(vector, limit=limit, threshold=threshold)

    # === Data Access ===

    async def get_document(self, document_id: str) -> "Document | None":
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.get_document(document_id)

    async def get_documents(self) -> list["Document"]:
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.list_documents()

    async def get_chunks(self, document_id: str | None = None) -> list["DocumentChunk"]:
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.get_chunks(document_id)

    async def get_entities(self, ids: list[str] | None = None) -> list["Entity"]:
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.get_entities(ids)

    async def get_relationships(self, ids: list[str] | None = None) -> list["Relationship"]:
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.get_relationships(ids)

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document and everything only it contributed."""
        await self._ensure_initialized()
        assert self._storage is not None
        return await self._storage.delete_document(document_id)

    # === Statistics ===

    async def stats(self) -> dict[str, int]:
        """Get knowledge base statistics."""
        await self._ensure_initialized()
        assert self._storage is not None

        return {
            "documents": await self._storage.count_documents(),
            "chunks": await self._storage.count_chunks(),
            "entities": await self._storage.count_entities(),
            "relationships": await self._storage.count_relationships(),
        }

    def stats_sync(self) -> dict[str, int]:
        return asyncio.run(self.stats())

    def cache_metrics(self) -> dict[str, "CacheMetrics"]:
        """Metrics of the result and embedding caches (empty when caching is off)."""
        metrics = {}
        if self._result_cache is not None:
            metrics["result"] = self._result_cache.metrics()
        if self._embedding_cache is not None:
            metrics["embedding"] = self._embedding_cache.metrics()
        return metrics
