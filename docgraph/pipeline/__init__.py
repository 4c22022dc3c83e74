"""
Ingestion Pipeline

Modules:
    orchestrator: PipelineOrchestrator state machine and CancellationToken
"""

from docgraph.pipeline.orchestrator import (
    ALLOWED_TRANSITIONS,
    CancellationToken,
    PipelineOrchestrator,
)

__all__ = ["ALLOWED_TRANSITIONS", "CancellationToken", "PipelineOrchestrator"]
