"""
Public API Layer

Modules:
    knowledge_graph: KnowledgeGraph class - main entry point

Design Principles:
    - Single entry point (KnowledgeGraph) for most operations
    - Async-first with sync wrappers (_sync suffix)
    - Lazy initialization - don't open storage until needed
    - Context manager support for resource cleanup
"""

from docgraph.api.knowledge_graph import KnowledgeGraph

__all__ = ["KnowledgeGraph"]
