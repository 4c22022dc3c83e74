"""
Entity Resolution

Modules:
    dedup: DeduplicationEngine (cross-document merge against a store snapshot)
    matchers: ExactNameMatcher (default) and EditDistanceMatcher
"""

from docgraph.ingestion.resolution.dedup import DeduplicationEngine
from docgraph.ingestion.resolution.matchers import (
    EditDistanceMatcher,
    EntityMatcher,
    ExactNameMatcher,
    build_matcher,
)

__all__ = [
    "DeduplicationEngine",
    "EditDistanceMatcher",
    "EntityMatcher",
    "ExactNameMatcher",
    "build_matcher",
]
