"""
Extraction Prompts

System prompt and user template for the extraction oracle. The oracle is
asked for a single JSON object; the parser tolerates fences and minor
syntax errors.
"""

from __future__ import annotations

from collections.abc import Sequence

from docgraph.types import DocumentChunk, Entity

EXTRACTION_SYSTEM_PROMPT = """\
You are building a knowledge graph from documents.

## Your Task
Extract the named entities in the text and the relationships between them.

## Rules
- Entities must be NAMES of specific things (people, organizations,
  technologies, concepts, places, events), not descriptions of unnamed things.
- Use only the allowed entity types.
- Reuse the exact name of a known entity when the text refers to it.
- Relationships must connect two entities you extracted or known entities.
- Relationship types are short snake_case verbs (uses, part_of, works_for).
- confidence and weight are numbers between 0 and 1.
- Respond with a single JSON object and nothing else."""

EXTRACTION_USER_TEMPLATE = """\
DOCUMENT: {title} ({content_type})
SECTION: {heading}

ALLOWED ENTITY TYPES: {entity_types}

KNOWN ENTITIES:
{known_entities}

TEXT:
{text}

Respond in this JSON format:
{{
  "entities": [
    {{"name": "...", "type": "...", "description": "...", "confidence": 0.9}}
  ],
  "relationships": [
    {{"source": "...", "target": "...", "type": "...", "description": "...",
      "weight": 0.8, "bidirectional": false, "confidence": 0.8}}
  ]
}}"""


def format_known_entities(entities: Sequence[Entity], limit: int) -> str:
    if limit <= 0 or not entities:
        return "(none)"
    lines = [f"- {e.name} ({e.type})" for e in list(entities)[:limit]]
    return "\n".join(lines)


def build_extraction_prompt(
    chunk: DocumentChunk,
    *,
    title: str,
    entity_types: Sequence[str],
    known_entities: Sequence[Entity] = (),
    known_limit: int = 20,
) -> str:
    """Render the user prompt for one chunk."""
    return EXTRACTION_USER_TEMPLATE.format(
        title=title or "(untitled)",
        content_type=chunk.content_type,
        heading=chunk.header_path or chunk.heading or "(No section)",
        entity_types=", ".join(entity_types),
        known_entities=format_known_entities(known_entities, known_limit),
        text=chunk.text,
    )
