"""
Ingestion Pipeline Components

Modules:
    classify: Content type detection
    validation: Document sanity checks and text sanitizing
    chunking: Content-aware chunking
    extraction: Oracle-based entity and relationship extraction
    quality: Multi-factor quality scoring
    resolution: Cross-document deduplication
"""
