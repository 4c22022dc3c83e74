"""
Tests for weighted quality scoring.
"""

import pytest

from docgraph.ingestion.quality import QualityContext, QualityScorer, categorize
from docgraph.ingestion.quality import tables
from docgraph.ingestion.quality.scorer import evaluate
from docgraph.types import DocumentChunk, Entity, Relationship


def _entity(name: str, description: str = "", docs: set[str] | None = None) -> Entity:
    return Entity(
        id=name.lower().replace(" ", "_"),
        name=name,
        description=description,
        source_document_ids=docs or {"d1"},
    )


def _rel(source: str, target: str, rel_type: str, **kwargs) -> Relationship:
    return Relationship(
        id=f"rel_{source}_{target}_{rel_type}",
        source_entity_id=source,
        target_entity_id=target,
        type=rel_type,
        **kwargs,
    )


class TestCategorize:
    """Tests for score categories."""

    @pytest.mark.parametrize(
        "score,expected",
        [(0.0, "poor"), (0.39, "poor"), (0.4, "fair"), (0.6, "good"), (0.75, "good"),
         (0.8, "excellent"), (1.0, "excellent")],
    )
    def test_category_cutoffs(self, score, expected):
        """Test the category boundaries."""
        assert categorize(score) == expected


class TestEvaluate:
    """Tests for the generic weighted-factor evaluator."""

    def test_weighted_sum_and_confidence(self):
        """Test score, confidence and contributions for two opposite factors."""
        analysis = evaluate({"a": (1.0, ""), "b": (0.0, "")}, {"a": 0.5, "b": 0.5})

        assert analysis.score == pytest.approx(0.5)
        assert analysis.confidence == pytest.approx(0.75)
        assert analysis.factors["a"].contribution == pytest.approx(0.5)
        assert analysis.category == "fair"

    def test_factor_scores_are_clamped(self):
        """Test that out-of-range factor scores are clamped to [0, 1]."""
        analysis = evaluate({"a": (1.7, ""), "b": (-0.3, "")}, {"a": 1.0, "b": 1.0})
        assert analysis.factors["a"].score == 1.0
        assert analysis.factors["b"].score == 0.0
        assert analysis.score == 1.0

    def test_recommendations_for_weak_factors(self):
        """Test that factors under 0.5 produce their recommendation."""
        analysis = evaluate(
            {"description_length": (0.1, ""), "name_length": (0.9, "")},
            {"description_length": 0.5, "name_length": 0.5},
        )
        assert analysis.recommendations == [tables.RECOMMENDATIONS["description_length"]]


class TestQualityScorer:
    """Tests for entity, relationship and chunk scoring."""

    def test_entity_score_in_bounds(self):
        """Test that entity scores and confidences stay in range."""
        scorer = QualityScorer()
        for entity in (_entity("X"), _entity("Apache Kafka", "A distributed event log " * 5)):
            analysis = scorer.score_entity(entity, QualityContext(text="Apache Kafka is fast"))
            assert 0.0 <= analysis.score <= 1.0
            assert 0.1 <= analysis.confidence <= 1.0
            assert set(analysis.factors) == set(tables.ENTITY_WEIGHTS)

    def test_described_entity_beats_bare_entity(self):
        """Test that description and context relevance raise the score."""
        scorer = QualityScorer()
        context = QualityContext(text="Apache Kafka streams events between services.")
        bare = scorer.score_entity(_entity("Zq"), context)
        rich = scorer.score_entity(
            _entity("Apache Kafka", "Distributed event streaming platform used for pipelines."),
            context,
        )
        assert rich.score > bare.score

    def test_scoring_is_pure(self):
        """Test that scoring the same entity twice gives the same analysis."""
        scorer = QualityScorer()
        entity = _entity("Python", "A programming language")
        assert scorer.score_entity(entity) == scorer.score_entity(entity)

    def test_specific_relationship_type_scores_higher(self):
        """Test that specific relationship types beat generic ones."""
        scorer = QualityScorer()
        specific = scorer.score_relationship(_rel("a", "b", "depends_on"))
        generic = scorer.score_relationship(_rel("a", "b", "related_to"))
        assert (
            specific.factors["type_specificity"].score
            > generic.factors["type_specificity"].score
        )
        assert specific.score > generic.score

    def test_bidirectional_reverse_edge_confirmed(self):
        """Test that a bidirectional edge with its reverse present scores better."""
        scorer = QualityScorer()
        forward = _rel("a", "b", "uses", bidirectional=True)
        reverse = _rel("b", "a", "uses")
        confirmed = scorer.score_relationship(
            forward, QualityContext(relationships=[forward, reverse])
        )
        unconfirmed = scorer.score_relationship(forward, QualityContext(relationships=[forward]))
        assert (
            confirmed.factors["bidirectional_consistency"].score
            > unconfirmed.factors["bidirectional_consistency"].score
        )

    def test_chunk_score(self):
        """Test chunk scoring uses the chunk weights."""
        chunk = DocumentChunk(
            id="d_chunk_0000",
            document_id="d",
            text="Kafka moves events. Services consume them.",
            start_offset=0,
            end_offset=42,
            sequence_index=0,
            entity_ids=["kafka"],
        )
        analysis = QualityScorer().score_chunk(chunk)
        assert set(analysis.factors) == set(tables.CHUNK_WEIGHTS)
        assert 0.0 <= analysis.score <= 1.0

    def test_custom_weight_table(self):
        """Test that a swapped weight table changes scoring without code changes."""
        scorer = QualityScorer(entity_weights={"name_length": 1.0})
        analysis = scorer.score_entity(_entity("Python"))
        assert list(analysis.factors) == ["name_length"]
        assert analysis.score == pytest.approx(analysis.factors["name_length"].score)

    @pytest.mark.parametrize(
        "kwargs, bad_key",
        [
            ({"entity_weights": {"name_lenght": 1.0}}, "name_lenght"),
            ({"relationship_weights": {"description_quality": 0.5, "novelty": 0.5}}, "novelty"),
            ({"chunk_weights": {"readability": 1.0}}, "readability"),
        ],
    )
    def test_unknown_weight_key_rejected(self, kwargs, bad_key):
        """Test that a weight for a factor that does not exist fails at construction."""
        with pytest.raises(ValueError, match=bad_key):
            QualityScorer(**kwargs)

    def test_analyze_batch(self):
        """Test batch averages, distribution and top lists."""
        entities = [_entity("Kafka", "Event log"), _entity("Zookeeper", "Coordinator")]
        relationships = [_rel("kafka", "zookeeper", "depends_on")]
        result = QualityScorer().analyze_batch(entities, relationships, text="Kafka Zookeeper")

        assert sum(result.distribution.values()) == 3
        assert 0.0 < result.average_score <= 1.0
        assert {name for name, _ in result.top_entities} == {"Kafka", "Zookeeper"}
        assert result.top_relationships[0][0] == relationships[0].id

    def test_empty_batch(self):
        """Test that an empty batch averages to zero."""
        result = QualityScorer().analyze_batch([], [])
        assert result.average_score == 0.0
        assert result.below_threshold == 0
