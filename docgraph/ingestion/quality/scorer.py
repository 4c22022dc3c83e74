"""
Quality Scorer

Weighted multi-factor scoring for entities, relationships and chunks.

Each artifact kind has a set of factor functions returning a score in
[0, 1]; the weights come from docgraph.ingestion.quality.tables. The
final score is the clamped sum of score * weight, the confidence is
1 - variance of the factor scores (floored at 0.1), and every factor
below 0.5 yields a recommendation.

All scoring is pure: the same artifact and context always produce the
same analysis.

Example:
    >>> scorer = QualityScorer()
    >>> analysis = scorer.score_entity(entity, QualityContext(text=chunk.text))
    >>> analysis.category
    'good'
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from docgraph.ingestion.quality import tables as t
from docgraph.types import (
    BatchQualityResult,
    DocumentChunk,
    Entity,
    QualityAnalysis,
    QualityCategory,
    QualityFactor,
    Relationship,
)
from docgraph.utils.text import name_similarity, tokenize_words

_SENTENCE = re.compile(r"[.!?](\s|$)")


@dataclass
class QualityContext:
    """
    Surrounding information that sharpens scoring.

    Attributes:
        entities: Other entities in scope (for uniqueness and endpoint checks)
        relationships: Other relationships in scope (for reverse-edge checks)
        text: Source text the artifact was extracted from
        document_counts: Entity id -> number of documents mentioning it
        target_chunk_size: Ideal chunk length in characters
    """

    entities: Sequence[Entity] = ()
    relationships: Sequence[Relationship] = ()
    text: str | None = None
    document_counts: Mapping[str, int] = field(default_factory=dict)
    target_chunk_size: int = t.CONTENT_LENGTH_TARGET


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------


def categorize(score: float) -> QualityCategory:
    for upper, category in t.CATEGORY_CUTOFFS:
        if score < upper:
            return QualityCategory(category)
    return QualityCategory(t.TOP_CATEGORY)


def evaluate(
    factor_scores: dict[str, tuple[float, str]],
    weights: Mapping[str, float],
) -> QualityAnalysis:
    """Combine factor scores with their weights into a QualityAnalysis."""
    factors: dict[str, QualityFactor] = {}
    for name, weight in weights.items():
        raw, details = factor_scores[name]
        score = min(1.0, max(0.0, raw))
        factors[name] = QualityFactor(
            score=score, weight=weight, contribution=score * weight, details=details
        )

    total = min(1.0, max(0.0, sum(f.contribution for f in factors.values())))

    scores = [f.score for f in factors.values()]
    mean = sum(scores) / len(scores) if scores else 0.0
    variance = sum((s - mean) ** 2 for s in scores) / len(scores) if scores else 0.0
    confidence = max(0.1, 1.0 - variance)

    recommendations = [
        t.RECOMMENDATIONS[name]
        for name, f in factors.items()
        if f.score < t.RECOMMENDATION_THRESHOLD and name in t.RECOMMENDATIONS
    ]

    return QualityAnalysis(
        score=total,
        confidence=min(1.0, confidence),
        factors=factors,
        category=categorize(total),
        recommendations=recommendations,
    )


# -----------------------------------------------------------------------------
# Entity factors
# -----------------------------------------------------------------------------


def _entity_name_length(e: Entity, ctx: QualityContext | None) -> tuple[float, str]:
    n = len(e.name.strip())
    return t.band_score(n, t.NAME_LENGTH_BANDS, t.NAME_LENGTH_DEFAULT), f"{n} chars"


def _entity_description_length(e: Entity, ctx: QualityContext | None) -> tuple[float, str]:
    n = len(e.description.strip())
    return (
        t.band_score(n, t.DESCRIPTION_LENGTH_BANDS, t.DESCRIPTION_LENGTH_DEFAULT),
        f"{n} chars",
    )


def _entity_uniqueness(e: Entity, ctx: QualityContext | None) -> tuple[float, str]:
    if ctx is None or not ctx.entities:
        return t.NO_CONTEXT_DEFAULTS["uniqueness"], "no context"
    similar = sum(
        1
        for other in ctx.entities
        if other.id != e.id and name_similarity(other.name, e.name) > t.UNIQUENESS_SIMILARITY
    )
    return (
        t.band_score(similar, t.UNIQUENESS_BANDS, t.UNIQUENESS_DEFAULT),
        f"{similar} similar names",
    )


def _entity_context_relevance(e: Entity, ctx: QualityContext | None) -> tuple[float, str]:
    if ctx is None or not ctx.text:
        return t.NO_CONTEXT_DEFAULTS["context_relevance"], "no context"
    name_words = tokenize_words(e.name)
    if not name_words:
        return 0.0, "name has no words"
    text_words = tokenize_words(ctx.text)
    matched = len(name_words & text_words)
    return matched / len(name_words), f"{matched}/{len(name_words)} name words in text"


def _entity_cross_document(e: Entity, ctx: QualityContext | None) -> tuple[float, str]:
    if ctx is None:
        return t.NO_CONTEXT_DEFAULTS["cross_document_frequency"], "no context"
    count = ctx.document_counts.get(e.id, len(e.source_document_ids))
    return t.band_score(count, t.CROSS_DOCUMENT_BANDS, t.CROSS_DOCUMENT_DEFAULT), f"{count} documents"


_ENTITY_FACTORS: dict[str, Callable[[Entity, QualityContext | None], tuple[float, str]]] = {
    "name_length": _entity_name_length,
    "description_length": _entity_description_length,
    "uniqueness": _entity_uniqueness,
    "context_relevance": _entity_context_relevance,
    "cross_document_frequency": _entity_cross_document,
}

# -----------------------------------------------------------------------------
# Relationship factors
# -----------------------------------------------------------------------------


def _rel_description(r: Relationship, ctx: QualityContext | None) -> tuple[float, str]:
    n = len(r.description.strip())
    return (
        t.band_score(n, t.DESCRIPTION_LENGTH_BANDS, t.DESCRIPTION_LENGTH_DEFAULT),
        f"{n} chars",
    )


def _rel_entity_relevance(r: Relationship, ctx: QualityContext | None) -> tuple[float, str]:
    if r.source_entity_id == r.target_entity_id:
        return t.ENTITY_RELEVANCE_UNKNOWN, "self-loop"
    if ctx is None or not ctx.entities:
        return t.NO_CONTEXT_DEFAULTS["entity_relevance"], "no context"
    known = {e.id for e in ctx.entities}
    if r.source_entity_id in known and r.target_entity_id in known:
        return t.ENTITY_RELEVANCE_BOTH_KNOWN, "both endpoints known"
    return t.ENTITY_RELEVANCE_UNKNOWN, "endpoint not in scope"


def _rel_type_specificity(r: Relationship, ctx: QualityContext | None) -> tuple[float, str]:
    rel_type = r.type.strip().lower()
    if rel_type in t.SPECIFIC_RELATIONSHIP_TYPES:
        return t.TYPE_SCORE_SPECIFIC, "specific"
    if rel_type in t.GENERIC_RELATIONSHIP_TYPES:
        return t.TYPE_SCORE_GENERIC, "generic"
    if "_" in rel_type or " " in rel_type:
        return t.TYPE_SCORE_COMPOUND, "compound"
    return t.TYPE_SCORE_OTHER, "other"


def _rel_bidirectional(r: Relationship, ctx: QualityContext | None) -> tuple[float, str]:
    if not r.bidirectional:
        return t.BIDIRECTIONAL_UNIDIRECTIONAL, "unidirectional"
    if ctx is None or not ctx.relationships:
        return t.NO_CONTEXT_DEFAULTS["bidirectional_consistency"], "no context"
    has_reverse = any(
        other.source_entity_id == r.target_entity_id
        and other.target_entity_id == r.source_entity_id
        for other in ctx.relationships
    )
    if has_reverse:
        return t.BIDIRECTIONAL_CONFIRMED, "reverse edge present"
    return t.BIDIRECTIONAL_UNCONFIRMED, "reverse edge missing"


def _rel_cross_document(r: Relationship, ctx: QualityContext | None) -> tuple[float, str]:
    if ctx is None:
        return t.NO_CONTEXT_DEFAULTS["cross_document_support"], "no context"
    count = len(r.source_document_ids)
    return t.band_score(count, t.CROSS_DOCUMENT_BANDS, t.CROSS_DOCUMENT_DEFAULT), f"{count} documents"


_RELATIONSHIP_FACTORS: dict[
    str, Callable[[Relationship, QualityContext | None], tuple[float, str]]
] = {
    "description_quality": _rel_description,
    "entity_relevance": _rel_entity_relevance,
    "type_specificity": _rel_type_specificity,
    "bidirectional_consistency": _rel_bidirectional,
    "cross_document_support": _rel_cross_document,
}

# -----------------------------------------------------------------------------
# Chunk factors
# -----------------------------------------------------------------------------


def _chunk_content_length(c: DocumentChunk, ctx: QualityContext | None) -> tuple[float, str]:
    target = ctx.target_chunk_size if ctx else t.CONTENT_LENGTH_TARGET
    ratio = len(c.text) / target if target else 0.0
    return (
        t.band_score(ratio, t.CONTENT_LENGTH_BANDS, t.CONTENT_LENGTH_DEFAULT),
        f"{len(c.text)} chars ({ratio:.0%} of target)",
    )


def _chunk_entity_density(c: DocumentChunk, ctx: QualityContext | None) -> tuple[float, str]:
    if not c.text:
        return 0.0, "empty"
    density = len(c.entity_ids) / len(c.text) * 1000
    return (
        t.band_score(density, t.ENTITY_DENSITY_BANDS, t.ENTITY_DENSITY_DEFAULT),
        f"{density:.2f} entities per 1000 chars",
    )


def _chunk_relationship_density(c: DocumentChunk, ctx: QualityContext | None) -> tuple[float, str]:
    n_entities = len(c.entity_ids)
    n_rels = len(c.relationship_ids)
    if n_entities == 0:
        if n_rels == 0:
            return t.RELATIONSHIP_RATIO_NO_ENTITIES, "no entities"
        return t.RELATIONSHIP_RATIO_ORPHANED, "relationships without entities"
    ratio = n_rels / n_entities
    return (
        t.band_score(ratio, t.RELATIONSHIP_RATIO_BANDS, t.RELATIONSHIP_RATIO_DEFAULT),
        f"{ratio:.2f} relationships per entity",
    )


def _chunk_structure(c: DocumentChunk, ctx: QualityContext | None) -> tuple[float, str]:
    text = c.text.strip()
    if not text:
        return 0.0, "empty"
    score = t.STRUCTURE_BASE
    notes = []
    if _SENTENCE.search(text):
        score += t.STRUCTURE_HAS_SENTENCES
        notes.append("sentences")
    if text[0].isupper():
        score += t.STRUCTURE_STARTS_UPPERCASE
        notes.append("capitalized")
    if not (text[0].islower() or text[-1].islower()):
        score += t.STRUCTURE_CLEAN_EDGES
        notes.append("clean edges")
    return min(1.0, score), ", ".join(notes) or "fragment"


_CHUNK_FACTORS: dict[str, Callable[[DocumentChunk, QualityContext | None], tuple[float, str]]] = {
    "content_length": _chunk_content_length,
    "entity_density": _chunk_entity_density,
    "relationship_density": _chunk_relationship_density,
    "structural_integrity": _chunk_structure,
}

# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------


def _checked_weights(
    kind: str, weights: Mapping[str, float], factors: Mapping[str, object]
) -> dict[str, float]:
    unknown = sorted(set(weights) - set(factors))
    if unknown:
        raise ValueError(
            f"Unknown {kind} quality factor(s): {', '.join(unknown)}; "
            f"expected some of {', '.join(sorted(factors))}"
        )
    return dict(weights)


class QualityScorer:
    """Scores entities, relationships and chunks using the weight tables."""

    def __init__(
        self,
        entity_weights: Mapping[str, float] | None = None,
        relationship_weights: Mapping[str, float] | None = None,
        chunk_weights: Mapping[str, float] | None = None,
    ):
        self.entity_weights = _checked_weights(
            "entity", entity_weights or t.ENTITY_WEIGHTS, _ENTITY_FACTORS
        )
        self.relationship_weights = _checked_weights(
            "relationship", relationship_weights or t.RELATIONSHIP_WEIGHTS, _RELATIONSHIP_FACTORS
        )
        self.chunk_weights = _checked_weights(
            "chunk", chunk_weights or t.CHUNK_WEIGHTS, _CHUNK_FACTORS
        )

    def score_entity(self, entity: Entity, context: QualityContext | None = None) -> QualityAnalysis:
        return evaluate(
            {name: fn(entity, context) for name, fn in _ENTITY_FACTORS.items()},
            self.entity_weights,
        )

    def score_relationship(
        self, relationship: Relationship, context: QualityContext | None = None
    ) -> QualityAnalysis:
        return evaluate(
            {name: fn(relationship, context) for name, fn in _RELATIONSHIP_FACTORS.items()},
            self.relationship_weights,
        )

    def score_chunk(
        self, chunk: DocumentChunk, context: QualityContext | None = None
    ) -> QualityAnalysis:
        return evaluate(
            {name: fn(chunk, context) for name, fn in _CHUNK_FACTORS.items()},
            self.chunk_weights,
        )

    def analyze_batch(
        self,
        entities: Sequence[Entity],
        relationships: Sequence[Relationship],
        text: str | None = None,
    ) -> BatchQualityResult:
        """
        Score a batch with the batch itself as context.

        Returns the average score, a per-category distribution, the top
        entities and relationships, and how many fell below the minimum.
        """
        context = QualityContext(entities=entities, relationships=relationships, text=text)
        result = BatchQualityResult()

        entity_scores = [(e.name, self.score_entity(e, context)) for e in entities]
        rel_scores = [(r.id, self.score_relationship(r, context)) for r in relationships]

        for _, analysis in entity_scores + rel_scores:
            result.distribution[QualityCategory(analysis.category).value] += 1

        all_scores = [a.score for _, a in entity_scores + rel_scores]
        if all_scores:
            result.average_score = sum(all_scores) / len(all_scores)

        result.below_threshold = sum(
            1 for _, a in entity_scores if a.score < t.MIN_ENTITY_QUALITY
        ) + sum(1 for _, a in rel_scores if a.score < t.MIN_RELATIONSHIP_QUALITY)

        result.top_entities = sorted(
            ((name, a.score) for name, a in entity_scores), key=lambda x: -x[1]
        )[: t.TOP_N]
        result.top_relationships = sorted(
            ((rid, a.score) for rid, a in rel_scores), key=lambda x: -x[1]
        )[: t.TOP_N]
        return result
