"""
Configuration System

Manages configuration for docgraph with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to KGConfig() or with_overrides())
    2. Config file (KGConfig.from_file)
    3. Environment variables (DOCGRAPH_* prefix, .env loaded by the CLI)
    4. Built-in defaults
"""

from docgraph.config.settings import KGConfig

__all__ = ["KGConfig"]
