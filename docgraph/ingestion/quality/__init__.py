"""
Quality Scoring

Modules:
    tables: Declarative weights, bands and thresholds
    scorer: QualityScorer and the weighted-factor evaluator
"""

from docgraph.ingestion.quality.scorer import QualityContext, QualityScorer, categorize

__all__ = ["QualityContext", "QualityScorer", "categorize"]
