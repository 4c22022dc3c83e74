"""
Tests for cross-document entity and relationship deduplication.
"""

from datetime import datetime, timezone

import pytest

from docgraph.ingestion.resolution import (
    DeduplicationEngine,
    EditDistanceMatcher,
    ExactNameMatcher,
    build_matcher,
)
from docgraph.types import Entity, Relationship
from docgraph.utils.text import generate_entity_id, generate_relationship_id, name_similarity

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _engine(matcher=None) -> DeduplicationEngine:
    return DeduplicationEngine(matcher, clock=lambda: FIXED_NOW)


def _entity(name: str, confidence: float = 1.0, docs=("d1",), etype: str = "Technology",
            description: str = "") -> Entity:
    return Entity(
        id=generate_entity_id(name),
        name=name,
        type=etype,
        description=description,
        confidence=confidence,
        source_document_ids=set(docs),
        source_chunk_ids={f"{d}_chunk_0000" for d in docs},
    )


def _rel(source: str, target: str, rel_type: str = "uses", docs=("d1",), weight=0.5) -> Relationship:
    return Relationship(
        id=generate_relationship_id(source, target, rel_type),
        source_entity_id=source,
        target_entity_id=target,
        type=rel_type,
        weight=weight,
        source_document_ids=set(docs),
    )


class TestEntityMerging:
    """Tests for entity merge rules."""

    def test_case_insensitive_convergence(self):
        """Test that Python/python from two documents converge on the first occurrence."""
        result = _engine().deduplicate(
            [_entity("Python", 0.6, ["d1"]), _entity("python", 0.9, ["d2"])],
            [],
        )

        assert len(result.new_entities) == 1
        merged = result.new_entities[0]
        assert merged.name == "Python"
        assert merged.confidence == 0.9
        assert merged.source_document_ids == {"d1", "d2"}
        assert merged.source_chunk_ids == {"d1_chunk_0000", "d2_chunk_0000"}
        assert result.merged_count == 1

    def test_existing_entity_survives(self):
        """Test that a snapshot entity absorbs an incoming duplicate."""
        existing = _entity("PostgreSQL", 0.7, ["d0"], description="Relational database")
        result = _engine().deduplicate(
            [_entity("postgresql", 0.95, ["d1"])], [], existing_entities=[existing]
        )

        assert len(result.new_entities) == 1
        merged = result.new_entities[0]
        assert merged.name == "PostgreSQL"
        assert merged.description == "Relational database"
        assert merged.confidence == 0.95
        assert merged.source_document_ids == {"d0", "d1"}
        assert merged.updated_at == FIXED_NOW.isoformat()

    def test_inputs_not_mutated(self):
        """Test that snapshot and incoming entities are left untouched."""
        existing = _entity("Redis", 0.5, ["d0"])
        incoming = _entity("redis", 0.9, ["d1"])
        _engine().deduplicate([incoming], [], existing_entities=[existing])

        assert existing.source_document_ids == {"d0"}
        assert existing.confidence == 0.5
        assert incoming.source_document_ids == {"d1"}

    def test_untouched_existing_entities_not_returned(self):
        """Test that snapshot entities without merges are not re-upserted."""
        result = _engine().deduplicate(
            [_entity("Go")], [], existing_entities=[_entity("Rust", docs=["d0"])]
        )
        assert [e.name for e in result.new_entities] == ["Go"]

    def test_missing_description_filled(self):
        """Test that a merge fills an empty description."""
        result = _engine().deduplicate(
            [_entity("Kafka"), _entity("KAFKA", description="Event streaming platform")], []
        )
        assert result.new_entities[0].description == "Event streaming platform"

    def test_timestamps_stamped(self):
        """Test that new entities get created_at/updated_at from the clock."""
        result = _engine().deduplicate([_entity("Docker")], [])
        assert result.new_entities[0].created_at == FIXED_NOW.isoformat()


class TestRelationshipMerging:
    """Tests for relationship re-pointing and merging."""

    def test_relationship_repointed_to_survivor(self):
        """Test that relationships follow entity merges and get new ids."""
        entities = [_entity("Django"), _entity("Python"), _entity("python", docs=["d2"])]
        relationships = [_rel("django", "python")]
        result = _engine().deduplicate(entities, relationships)

        assert len(result.new_relationships) == 1
        rel = result.new_relationships[0]
        assert rel.source_entity_id == "django"
        assert rel.target_entity_id == "python"
        assert rel.id == generate_relationship_id("django", "python", "uses")

    def test_duplicate_relationships_merged(self):
        """Test that duplicate relationships keep the max weight and union provenance."""
        entities = [_entity("Django"), _entity("Python")]
        relationships = [
            _rel("django", "python", docs=["d1"], weight=0.4),
            _rel("django", "python", docs=["d2"], weight=0.9),
        ]
        result = _engine().deduplicate(entities, relationships)

        assert len(result.new_relationships) == 1
        rel = result.new_relationships[0]
        assert rel.weight == 0.9
        assert rel.source_document_ids == {"d1", "d2"}
        assert any("Merged duplicate relationship" in w for w in result.warnings)

    def test_merge_with_existing_relationship(self):
        """Test that an incoming relationship merges into the snapshot copy."""
        existing_rel = _rel("django", "python", docs=["d0"], weight=0.3)
        result = _engine().deduplicate(
            [_entity("Django", docs=["d1"]), _entity("Python", docs=["d1"])],
            [_rel("django", "python", docs=["d1"], weight=0.6)],
            existing_entities=[_entity("Django", docs=["d0"]), _entity("Python", docs=["d0"])],
            existing_relationships=[existing_rel],
        )

        assert len(result.new_relationships) == 1
        assert result.new_relationships[0].source_document_ids == {"d0", "d1"}
        assert result.new_relationships[0].weight == 0.6
        assert existing_rel.source_document_ids == {"d0"}
        assert result.merged_count == 3

    def test_unknown_endpoint_dropped(self):
        """Test that relationships to unknown entities are dropped with a warning."""
        result = _engine().deduplicate([_entity("Django")], [_rel("django", "flask")])

        assert result.new_relationships == []
        assert any("unknown endpoint" in w for w in result.warnings)

    def test_endpoint_from_snapshot_accepted(self):
        """Test that an endpoint known only to the snapshot is valid."""
        result = _engine().deduplicate(
            [_entity("Django")],
            [_rel("django", "python")],
            existing_entities=[_entity("Python", docs=["d0"])],
        )
        assert len(result.new_relationships) == 1

    def test_self_loop_kept_with_warning(self):
        """Test that self-loops survive but are reported."""
        result = _engine().deduplicate([_entity("Linux")], [_rel("linux", "linux", "extends")])

        assert len(result.new_relationships) == 1
        assert any("Self-loop" in w for w in result.warnings)


class TestMatchers:
    """Tests for entity matching strategies."""

    def test_exact_matcher_ignores_near_misses(self):
        """Test that the default matcher does not merge similar names."""
        result = DeduplicationEngine(ExactNameMatcher()).deduplicate(
            [_entity("Kubernetes"), _entity("Kubernetis")], []
        )
        assert len(result.new_entities) == 2

    def test_edit_distance_matcher_merges_similar_names(self):
        """Test that fuzzy matching merges names above the threshold."""
        result = _engine(EditDistanceMatcher(threshold=0.8)).deduplicate(
            [_entity("Kubernetes"), _entity("Kubernetis", docs=["d2"])], []
        )
        assert len(result.new_entities) == 1
        assert result.new_entities[0].merged_from_ids == ["kubernetis"]

    def test_edit_distance_matcher_respects_type(self):
        """Test that fuzzy matching requires equal types by default."""
        result = _engine(EditDistanceMatcher(threshold=0.8)).deduplicate(
            [_entity("Mercury", etype="Location"), _entity("Mercuri", etype="Person")], []
        )
        assert len(result.new_entities) == 2

    def test_invalid_threshold(self):
        """Test that thresholds outside (0, 1] are rejected."""
        with pytest.raises(ValueError):
            EditDistanceMatcher(threshold=0.0)

    def test_build_matcher(self):
        """Test matcher construction from config names."""
        assert isinstance(build_matcher("exact"), ExactNameMatcher)
        assert isinstance(build_matcher("fuzzy", 0.85), EditDistanceMatcher)
        with pytest.raises(ValueError, match="Unknown dedup strategy"):
            build_matcher("semantic")


class TestNameSimilarity:
    """Tests for the normalized edit-distance similarity used by matchers."""

    def test_case_and_whitespace_ignored(self):
        """Test that names differing only in case and padding are identical."""
        assert name_similarity("  Kubernetes", "KUBERNETES ") == 1.0

    def test_one_edit_in_ten_characters(self):
        """Test that a single substitution in a ten-letter name scores 0.9."""
        assert name_similarity("Kubernetes", "Kubernetis") == pytest.approx(0.9)

    def test_unrelated_and_empty_names(self):
        """Test the bounds for disjoint names and for two empty names."""
        assert name_similarity("abc", "xyz") == 0.0
        assert name_similarity("", "") == 1.0
        assert 0.0 < name_similarity("Postgres", "PostgreSQL") < 1.0
