"""
Entity Matchers

Decide whether an incoming entity is the same as one already accepted.

Entity ids are normalized names, so equal ids always match. Matchers
only differ in what else they accept:

    ExactNameMatcher: nothing else (case/punctuation-insensitive name equality)
    EditDistanceMatcher: names whose edit-distance similarity reaches a threshold
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from docgraph.types import Entity
from docgraph.utils.text import name_similarity


class EntityMatcher(ABC):
    """Strategy for finding the surviving entity an incoming one merges into."""

    @abstractmethod
    def find_match(self, entity: Entity, accepted: Mapping[str, Entity]) -> Entity | None:
        """
        Return the accepted entity that `entity` duplicates, or None.

        Args:
            entity: Incoming entity
            accepted: Surviving entities by id, in acceptance order
        """
        ...


class ExactNameMatcher(EntityMatcher):
    """Match on normalized name only. The default."""

    def find_match(self, entity: Entity, accepted: Mapping[str, Entity]) -> Entity | None:
        return accepted.get(entity.id)


class EditDistanceMatcher(EntityMatcher):
    """
    Match on normalized name, then on name similarity.

    The most similar accepted entity at or above the threshold wins; ties
    go to the earliest accepted. Optionally requires equal entity types.
    """

    def __init__(self, threshold: float = 0.9, same_type_only: bool = True):
        if not 0.0 < threshold <= 1.0:
            raise ValueError("threshold must be in (0, 1]")
        self.threshold = threshold
        self.same_type_only = same_type_only

    def find_match(self, entity: Entity, accepted: Mapping[str, Entity]) -> Entity | None:
        exact = accepted.get(entity.id)
        if exact is not None:
            return exact

        best: Entity | None = None
        best_score = self.threshold
        for candidate in accepted.values():
            if self.same_type_only and candidate.type.lower() != entity.type.lower():
                continue
            score = name_similarity(candidate.name, entity.name)
            if score > best_score or (best is None and score >= best_score):
                best, best_score = candidate, score
        return best


def build_matcher(strategy: str, threshold: float = 0.9) -> EntityMatcher:
    """Create a matcher from a config strategy name ("exact" or "fuzzy")."""
    if strategy == "exact":
        return ExactNameMatcher()
    if strategy == "fuzzy":
        return EditDistanceMatcher(threshold)
    raise ValueError(f"Unknown dedup strategy: {strategy}. Use 'exact' or 'fuzzy'.")
