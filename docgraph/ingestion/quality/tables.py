"""
Quality Tables

Declarative weights, score bands and thresholds consumed by the scorer.
Tuning quality scoring means editing this module only.

A band list is read top to bottom; the first band whose limit admits the
value wins, otherwise the default applies.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Band:
    limit: float
    score: float
    inclusive: bool = False  # True: value <= limit, False: value < limit

    def admits(self, value: float) -> bool:
        return value <= self.limit if self.inclusive else value < self.limit


def band_score(value: float, bands: tuple[Band, ...], default: float) -> float:
    for band in bands:
        if band.admits(value):
            return band.score
    return default


# -----------------------------------------------------------------------------
# Weights
# -----------------------------------------------------------------------------

ENTITY_WEIGHTS: dict[str, float] = {
    "name_length": 0.15,
    "description_length": 0.25,
    "uniqueness": 0.20,
    "context_relevance": 0.25,
    "cross_document_frequency": 0.15,
}

RELATIONSHIP_WEIGHTS: dict[str, float] = {
    "description_quality": 0.30,
    "entity_relevance": 0.25,
    "type_specificity": 0.15,
    "bidirectional_consistency": 0.15,
    "cross_document_support": 0.15,
}

CHUNK_WEIGHTS: dict[str, float] = {
    "content_length": 0.20,
    "entity_density": 0.30,
    "relationship_density": 0.25,
    "structural_integrity": 0.25,
}

# -----------------------------------------------------------------------------
# Bands
# -----------------------------------------------------------------------------

NAME_LENGTH_BANDS = (
    Band(2, 0.1),
    Band(4, 0.4),
    Band(50, 1.0, inclusive=True),
    Band(100, 0.8, inclusive=True),
)
NAME_LENGTH_DEFAULT = 0.6

DESCRIPTION_LENGTH_BANDS = (
    Band(10, 0.2),
    Band(20, 0.5),
    Band(200, 1.0, inclusive=True),
    Band(500, 0.9, inclusive=True),
)
DESCRIPTION_LENGTH_DEFAULT = 0.7

# similar-name count -> score
UNIQUENESS_BANDS = (
    Band(0, 1.0, inclusive=True),
    Band(1, 0.8, inclusive=True),
    Band(3, 0.6, inclusive=True),
)
UNIQUENESS_DEFAULT = 0.3
UNIQUENESS_SIMILARITY = 0.8

# document count -> score
CROSS_DOCUMENT_BANDS = (
    Band(0, 0.3, inclusive=True),
    Band(1, 0.5, inclusive=True),
    Band(3, 0.8, inclusive=True),
    Band(10, 1.0, inclusive=True),
)
CROSS_DOCUMENT_DEFAULT = 0.9

# chunk length / target length -> score
CONTENT_LENGTH_TARGET = 4000
CONTENT_LENGTH_BANDS = (
    Band(0.1, 0.2),
    Band(0.3, 0.6),
    Band(1.0, 1.0, inclusive=True),
    Band(1.5, 0.8, inclusive=True),
)
CONTENT_LENGTH_DEFAULT = 0.5

# entities per 1000 characters -> score
ENTITY_DENSITY_BANDS = (
    Band(0.5, 0.3),
    Band(2.0, 1.0, inclusive=True),
    Band(5.0, 0.8, inclusive=True),
)
ENTITY_DENSITY_DEFAULT = 0.5

# relationships per entity -> score
RELATIONSHIP_RATIO_BANDS = (
    Band(0.1, 0.4),
    Band(0.5, 1.0, inclusive=True),
    Band(1.0, 0.9, inclusive=True),
)
RELATIONSHIP_RATIO_DEFAULT = 0.6
RELATIONSHIP_RATIO_NO_ENTITIES = 0.7
RELATIONSHIP_RATIO_ORPHANED = 0.3

# -----------------------------------------------------------------------------
# Relationship types
# -----------------------------------------------------------------------------

SPECIFIC_RELATIONSHIP_TYPES = frozenset({
    "works_for", "part_of", "implements", "extends", "uses", "depends_on",
    "located_in", "created_by", "owns", "manages",
})
GENERIC_RELATIONSHIP_TYPES = frozenset({
    "related", "related_to", "connected", "connected_to", "associated",
    "associated_with", "linked", "linked_to",
})
TYPE_SCORE_SPECIFIC = 1.0
TYPE_SCORE_GENERIC = 0.4
TYPE_SCORE_COMPOUND = 0.8
TYPE_SCORE_OTHER = 0.6

BIDIRECTIONAL_UNIDIRECTIONAL = 0.8
BIDIRECTIONAL_CONFIRMED = 1.0
BIDIRECTIONAL_UNCONFIRMED = 0.5

ENTITY_RELEVANCE_BOTH_KNOWN = 0.7
ENTITY_RELEVANCE_UNKNOWN = 0.3

# -----------------------------------------------------------------------------
# Structural integrity
# -----------------------------------------------------------------------------

STRUCTURE_BASE = 0.5
STRUCTURE_HAS_SENTENCES = 0.2
STRUCTURE_STARTS_UPPERCASE = 0.1
STRUCTURE_CLEAN_EDGES = 0.2

# -----------------------------------------------------------------------------
# Defaults when no context is supplied
# -----------------------------------------------------------------------------

NO_CONTEXT_DEFAULTS: dict[str, float] = {
    "uniqueness": 0.7,
    "context_relevance": 0.6,
    "cross_document_frequency": 0.5,
    "entity_relevance": 0.6,
    "bidirectional_consistency": 0.7,
    "cross_document_support": 0.5,
}

# -----------------------------------------------------------------------------
# Categories and recommendations
# -----------------------------------------------------------------------------

# (exclusive upper bound, category); the last category has no bound
CATEGORY_CUTOFFS = (
    (0.4, "poor"),
    (0.6, "fair"),
    (0.8, "good"),
)
TOP_CATEGORY = "excellent"

RECOMMENDATION_THRESHOLD = 0.5

RECOMMENDATIONS: dict[str, str] = {
    "name_length": "Consider using a more descriptive name",
    "description_length": "Add more detailed description",
    "uniqueness": "Check for potential duplicates or merge candidates",
    "context_relevance": "Verify the entity is actually discussed in its source text",
    "cross_document_frequency": "Entity is only weakly supported across documents",
    "description_quality": "Improve relationship description clarity",
    "entity_relevance": "Check that both relationship endpoints are known entities",
    "type_specificity": "Use more specific relationship type",
    "bidirectional_consistency": "Confirm the reverse direction of bidirectional relationships",
    "cross_document_support": "Relationship is only weakly supported across documents",
    "content_length": "Optimize chunk size for better processing",
    "entity_density": "Chunk has an unusual number of entities for its length",
    "relationship_density": "Chunk has an unusual relationship-to-entity ratio",
    "structural_integrity": "Improve text coherence and completeness",
}

# Scores below these are counted as below threshold in batch reports
MIN_ENTITY_QUALITY = 0.3
MIN_RELATIONSHIP_QUALITY = 0.3

TOP_N = 10
