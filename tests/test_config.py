"""
Tests for KGConfig.

Tests cover:
- Defaults and explicit overrides
- Environment variables
- TOML round trip
- Derived ChunkingConfig / ProcessingOptions
"""

import pytest
from pydantic import ValidationError

from docgraph.config import KGConfig

_ENV_NAMES = [
    "DOCGRAPH_LLM_PROVIDER", "DOCGRAPH_LLM_MODEL", "DOCGRAPH_EMBEDDING_PROVIDER",
    "DOCGRAPH_EMBEDDING_MODEL", "DOCGRAPH_EMBEDDING_DIMENSIONS", "DOCGRAPH_CHUNK_MAX_SIZE",
    "DOCGRAPH_CHUNK_MIN_SIZE", "DOCGRAPH_CHUNK_OVERLAP", "DOCGRAPH_BATCH_SIZE",
    "DOCGRAPH_EXTRACTION_MAX_RETRIES", "DOCGRAPH_STORAGE_BACKEND", "DOCGRAPH_LOG_LEVEL",
    "DOCGRAPH_ENTITY_TYPES", "OPENAI_API_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestKGConfigDefaults:
    """Tests for defaults and overrides."""

    def test_defaults(self, clean_env):
        """Test built-in defaults."""
        config = KGConfig()

        assert config.llm_model == "gpt-4o-mini"
        assert config.embedding_dimensions == 384
        assert config.chunk_max_size == 8000
        assert config.chunk_min_size == 100
        assert config.chunk_overlap == 200
        assert config.storage_backend == "parquet"
        assert config.dedup_strategy == "exact"
        assert config.openai_api_key is None
        assert "Organization" in config.entity_types

    def test_entity_types_not_shared(self, clean_env):
        """Test that instances do not share the entity type list."""
        first = KGConfig()
        first.entity_types.append("Gene")
        assert "Gene" not in KGConfig().entity_types

    def test_kwargs_override(self, clean_env):
        """Test explicit keyword overrides."""
        config = KGConfig(chunk_max_size=4000, batch_size=2)
        assert config.chunk_max_size == 4000
        assert config.batch_size == 2

    def test_unknown_option(self, clean_env):
        """Test that unknown keys are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration option"):
            KGConfig(chunk_size=10)

    def test_with_overrides(self, clean_env):
        """Test that with_overrides copies and leaves the original untouched."""
        base = KGConfig(llm_model="gpt-4o")
        derived = base.with_overrides(batch_size=9)

        assert derived.llm_model == "gpt-4o"
        assert derived.batch_size == 9
        assert base.batch_size == 5
        with pytest.raises(ValueError):
            base.with_overrides(nope=1)


class TestKGConfigEnvironment:
    """Tests for environment variable loading."""

    def test_env_values(self, clean_env):
        """Test typed environment overrides."""
        clean_env.setenv("DOCGRAPH_LLM_MODEL", "gpt-4o")
        clean_env.setenv("DOCGRAPH_CHUNK_MAX_SIZE", "3000")
        clean_env.setenv("DOCGRAPH_ENTITY_TYPES", "Gene, Protein,,Disease")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")

        config = KGConfig()

        assert config.llm_model == "gpt-4o"
        assert config.chunk_max_size == 3000
        assert config.entity_types == ["Gene", "Protein", "Disease"]
        assert config.openai_api_key == "sk-test"

    def test_kwargs_beat_env(self, clean_env):
        """Test that explicit arguments take priority over the environment."""
        clean_env.setenv("DOCGRAPH_BATCH_SIZE", "7")
        assert KGConfig(batch_size=3).batch_size == 3

    def test_invalid_env_int(self, clean_env):
        """Test that a non-integer environment value is reported by name."""
        clean_env.setenv("DOCGRAPH_EMBEDDING_DIMENSIONS", "large")
        with pytest.raises(ValueError, match="DOCGRAPH_EMBEDDING_DIMENSIONS"):
            KGConfig()


class TestKGConfigFile:
    """Tests for TOML persistence."""

    def test_round_trip(self, clean_env, tmp_path):
        """Test that to_file and from_file preserve settings."""
        original = KGConfig(
            llm_model="gpt-4o",
            embedding_provider="none",
            chunk_max_size=5000,
            entity_types=["Gene", "Protein"],
            cache_enabled=False,
            storage_backend="memory",
            openai_api_key="sk-secret",
        )
        path = tmp_path / "conf" / "docgraph.toml"
        original.to_file(path)

        assert "sk-secret" not in path.read_text()

        loaded = KGConfig.from_file(path)
        assert loaded.llm_model == "gpt-4o"
        assert loaded.embedding_provider == "none"
        assert loaded.chunk_max_size == 5000
        assert loaded.entity_types == ["Gene", "Protein"]
        assert loaded.cache_enabled is False
        assert loaded.storage_backend == "memory"
        assert loaded.openai_api_key is None

    def test_sections_flattened(self, clean_env, tmp_path):
        """Test prefix flattening for hand-written files."""
        path = tmp_path / "docgraph.toml"
        path.write_text(
            'log_level = "DEBUG"\n\n'
            '[llm]\nmodel = "gpt-4o"\n\n'
            "[chunking]\nmax_size = 4000\noverlap = 150\n\n"
            '[api_keys]\nopenai = "sk-file"\n'
        )

        config = KGConfig.from_file(path)
        assert config.llm_model == "gpt-4o"
        assert config.chunk_max_size == 4000
        assert config.chunk_overlap == 150
        assert config.openai_api_key == "sk-file"
        assert config.log_level == "DEBUG"

    def test_missing_file(self, clean_env, tmp_path):
        """Test that a missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            KGConfig.from_file(tmp_path / "missing.toml")


class TestDerivedOptions:
    """Tests for ChunkingConfig and ProcessingOptions derivation."""

    def test_processing_options(self, clean_env):
        """Test that run options mirror the configuration."""
        options = KGConfig(
            chunk_max_size=2000, batch_size=3, min_confidence=0.4, cache_enabled=False
        ).processing_options()

        assert options.chunking.max_chunk_size == 2000
        assert options.batch_size == 3
        assert options.min_confidence == 0.4
        assert options.use_cache is False

    def test_inconsistent_chunk_sizes(self, clean_env):
        """Test that overlap too large for the chunk size is rejected."""
        with pytest.raises(ValidationError):
            KGConfig(chunk_max_size=300, chunk_overlap=200).chunking_config()
