"""
KGConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> kg = KnowledgeGraph("./kb")

    >>> # Explicit configuration
    >>> config = KGConfig(
    ...     llm_model="gpt-4o-mini",
    ...     chunk_max_size=4000,
    ... )
    >>> kg = KnowledgeGraph("./kb", config=config)

    >>> # From config file
    >>> config = KGConfig.from_file("./docgraph.toml")

Environment Variables:
    DOCGRAPH_LLM_PROVIDER - LLM provider name
    DOCGRAPH_LLM_MODEL - Model for extraction
    DOCGRAPH_EMBEDDING_PROVIDER - Embedding provider name ("openai" or "none")
    DOCGRAPH_EMBEDDING_MODEL - Embedding model name
    DOCGRAPH_EMBEDDING_DIMENSIONS - Embedding vector dimensions
    DOCGRAPH_CHUNK_MAX_SIZE / DOCGRAPH_CHUNK_MIN_SIZE / DOCGRAPH_CHUNK_OVERLAP
    DOCGRAPH_BATCH_SIZE - Chunks extracted concurrently per batch
    DOCGRAPH_STORAGE_BACKEND - "parquet" or "memory"
    DOCGRAPH_LOG_LEVEL - Logging level for the CLI
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

from docgraph.types.results import ChunkingConfig, ProcessingOptions

# TOML support: tomllib is built-in for Python 3.11+, use tomli for 3.10
try:
    import tomllib
except ImportError:
    import tomli as tomllib


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return cast(dict[str, Any], tomllib.load(f))


_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "DOCGRAPH_LLM_PROVIDER": ("llm_provider", str),
    "DOCGRAPH_LLM_MODEL": ("llm_model", str),
    "DOCGRAPH_EMBEDDING_PROVIDER": ("embedding_provider", str),
    "DOCGRAPH_EMBEDDING_MODEL": ("embedding_model", str),
    "DOCGRAPH_EMBEDDING_DIMENSIONS": ("embedding_dimensions", int),
    "DOCGRAPH_CHUNK_MAX_SIZE": ("chunk_max_size", int),
    "DOCGRAPH_CHUNK_MIN_SIZE": ("chunk_min_size", int),
    "DOCGRAPH_CHUNK_OVERLAP": ("chunk_overlap", int),
    "DOCGRAPH_BATCH_SIZE": ("batch_size", int),
    "DOCGRAPH_EXTRACTION_MAX_RETRIES": ("extraction_max_retries", int),
    "DOCGRAPH_STORAGE_BACKEND": ("storage_backend", str),
    "DOCGRAPH_LOG_LEVEL": ("log_level", str),
}


class KGConfig:
    """Configuration for docgraph."""

    # === LLM Configuration ===

    llm_provider: str = "openai"
    """LLM provider for extraction: "openai" """

    llm_model: str = "gpt-4o-mini"
    """Model used as the extraction oracle"""

    llm_temperature: float = 0.0
    """Sampling temperature for extraction"""

    llm_max_tokens: int = 4096
    """Maximum tokens in an extraction response"""

    # === Embedding Configuration ===

    embedding_provider: str = "openai"
    """Embedding provider: "openai" or "none" (zero vectors) """

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 384
    """Embedding vector dimensions; provider output is padded or truncated to this"""

    embedding_max_tokens: int = 8000
    """Inputs longer than this are truncated before embedding"""

    # === API Keys ===

    openai_api_key: str | None = None

    # === Chunking Configuration ===

    chunk_max_size: int = 8000
    """Maximum characters per chunk"""

    chunk_min_size: int = 100
    """Chunks shorter than this are dropped (complete markdown sections excepted)"""

    chunk_overlap: int = 200
    """Characters carried over when a region is split"""

    # === Processing Configuration ===

    batch_size: int = 5
    """Chunks extracted concurrently per batch"""

    extraction_max_retries: int = 3
    """Retries for a failed oracle call"""

    extraction_base_delay: float = 1.0
    """Initial retry delay in seconds"""

    extraction_max_delay: float = 30.0
    """Retry delay cap in seconds"""

    max_document_bytes: int = 10 * 1024 * 1024
    """Documents larger than this (UTF-8) are rejected"""

    binary_ratio_threshold: float = 0.3
    """Content with more non-printable characters than this ratio is rejected"""

    entity_types: list[str] = [
        "Person", "Organization", "Technology", "Concept", "Location", "Event",
    ]
    """Entity type allowlist given to the oracle"""

    existing_entity_context_limit: int = 20
    """Known entities included in each extraction prompt"""

    min_confidence: float = 0.0
    """Extracted items below this confidence are discarded"""

    dedup_strategy: str = "exact"
    """Entity matching: "exact" (case-insensitive name) or "fuzzy" (edit distance)"""

    dedup_similarity_threshold: float = 0.9
    """Name similarity required for a fuzzy match"""

    # === Cache Configuration ===

    cache_enabled: bool = True
    """Cache parsed extraction results and embeddings"""

    result_cache_max_entries: int = 500
    result_cache_ttl_seconds: float = 3600.0
    result_cache_max_size_mb: float = 50.0

    embedding_cache_max_entries: int = 2000
    embedding_cache_ttl_seconds: float = 48 * 3600.0
    embedding_cache_max_size_mb: float = 200.0

    # === Storage Configuration ===

    storage_backend: str = "parquet"
    """Graph store: "parquet" (on disk) or "memory" """

    parquet_compression: str = "zstd"
    """Parquet compression: "zstd", "snappy", "gzip", "none" """

    # === Logging ===

    log_level: str = "INFO"

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        self.entity_types = list(type(self).entity_types)

        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key) and not key.startswith("_"):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        for env_name, (attr, cast_to) in _ENV_OVERRIDES.items():
            if raw := os.getenv(env_name):
                try:
                    setattr(self, attr, cast_to(raw))
                except ValueError as e:
                    raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e

        if types := os.getenv("DOCGRAPH_ENTITY_TYPES"):
            self.entity_types = [t.strip() for t in types.split(",") if t.strip()]

    @classmethod
    def from_file(cls, path: str | Path) -> "KGConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened with their prefix.

        Example TOML:
            [llm]
            model = "gpt-4o-mini"

            [chunking]
            max_size = 4000
            overlap = 150

            [processing]
            batch_size = 8

            [api_keys]
            openai = "sk-..."

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        section_mapping = {
            "llm": "llm_",
            "embedding": "embedding_",
            "chunking": "chunk_",
            "api_keys": "",  # api_keys.openai -> openai_api_key
            "processing": "",
            "cache": "",
            "storage": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        flat_config[f"{key}_api_key"] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "KGConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are excluded.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, Any]] = {
            "llm": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "temperature": self.llm_temperature,
                "max_tokens": self.llm_max_tokens,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
                "max_tokens": self.embedding_max_tokens,
            },
            "chunking": {
                "max_size": self.chunk_max_size,
                "min_size": self.chunk_min_size,
                "overlap": self.chunk_overlap,
            },
            "processing": {
                "batch_size": self.batch_size,
                "extraction_max_retries": self.extraction_max_retries,
                "extraction_base_delay": self.extraction_base_delay,
                "extraction_max_delay": self.extraction_max_delay,
                "max_document_bytes": self.max_document_bytes,
                "binary_ratio_threshold": self.binary_ratio_threshold,
                "entity_types": self.entity_types,
                "existing_entity_context_limit": self.existing_entity_context_limit,
                "min_confidence": self.min_confidence,
                "dedup_strategy": self.dedup_strategy,
                "dedup_similarity_threshold": self.dedup_similarity_threshold,
            },
            "cache": {
                "cache_enabled": self.cache_enabled,
                "result_cache_max_entries": self.result_cache_max_entries,
                "result_cache_ttl_seconds": self.result_cache_ttl_seconds,
                "result_cache_max_size_mb": self.result_cache_max_size_mb,
                "embedding_cache_max_entries": self.embedding_cache_max_entries,
                "embedding_cache_ttl_seconds": self.embedding_cache_ttl_seconds,
                "embedding_cache_max_size_mb": self.embedding_cache_max_size_mb,
            },
            "storage": {
                "storage_backend": self.storage_backend,
                "parquet_compression": self.parquet_compression,
                "log_level": self.log_level,
            },
        }

        # Build TOML string manually (avoids extra dependency)
        lines = ["# docgraph configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "KGConfig":
        """Return new config with specified overrides."""
        new_config = KGConfig.__new__(KGConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        new_config.entity_types = list(self.entity_types)
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config

    # -------------------------------------------------------------------------
    # Derived option models
    # -------------------------------------------------------------------------

    def chunking_config(self) -> ChunkingConfig:
        """Chunk size limits as a validated ChunkingConfig."""
        return ChunkingConfig(
            max_chunk_size=self.chunk_max_size,
            min_chunk_size=self.chunk_min_size,
            overlap_size=self.chunk_overlap,
        )

    def processing_options(self) -> ProcessingOptions:
        """Per-run orchestrator options derived from this configuration."""
        return ProcessingOptions(
            chunking=self.chunking_config(),
            batch_size=self.batch_size,
            entity_types=list(self.entity_types),
            min_confidence=self.min_confidence,
            max_document_bytes=self.max_document_bytes,
            binary_ratio_threshold=self.binary_ratio_threshold,
            existing_entity_context_limit=self.existing_entity_context_limit,
            extraction_max_retries=self.extraction_max_retries,
            extraction_base_delay=self.extraction_base_delay,
            extraction_max_delay=self.extraction_max_delay,
            use_cache=self.cache_enabled,
        )


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    raise TypeError(f"Unsupported TOML value: {value!r}")
