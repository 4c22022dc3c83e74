"""
JSON and XML Chunkers

JSON:
    Array roots accumulate elements, object roots accumulate top-level
    keys. A batch is flushed when its indented serialization would exceed
    max_chunk_size; the chunk text is that serialization while offsets
    cover the batch's source range. A single oversized element is split
    from its source slice like code.

XML:
    Top-level `<tag>...</tag>` elements become chunks, text between them
    becomes "XML Fragment" chunks, oversized elements are split with
    overlap.

Both return None when the content does not have the expected shape so
the engine can fall back to plain text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from docgraph.ingestion.chunking.splitter import (
    Span,
    code_break,
    split_region,
    trim_span,
    xml_break,
)
from docgraph.types import ChunkingConfig

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()
_WS_CHARS = " \t\n\r"
_XML_ELEMENT = re.compile(r"<([A-Za-z_][\w:.-]*)\b[^>]*>[\s\S]*?</\1\s*>")

# -----------------------------------------------------------------------------
# JSON
# -----------------------------------------------------------------------------


def chunk_json(content: str, config: ChunkingConfig) -> list[Span] | None:
    """Chunk JSON content; None if it is not an array or object document."""
    start, end = trim_span(content, 0, len(content))
    if start >= end or content[start] not in "[{":
        return None

    try:
        items, is_object = _top_level_items(content, start)
    except (ValueError, IndexError) as e:
        logger.debug(f"JSON chunking fell back to plain text: {e}")
        return None

    spans: list[Span] = []
    # (index, start, end, value)
    batch: list[tuple[int, int, int, Any]] = []

    def serialize(entries: list[tuple[int, int, int, Any]]) -> str:
        if is_object:
            return json.dumps(dict(e[3] for e in entries), indent=2, ensure_ascii=False)
        return json.dumps([e[3] for e in entries], indent=2, ensure_ascii=False)

    def flush() -> None:
        if not batch:
            return
        spans.append(
            Span(
                start=batch[0][1],
                end=batch[-1][2],
                heading=_json_heading(batch, is_object),
                text=serialize(batch),
                metadata={"items": len(batch)},
            )
        )
        batch.clear()

    for index, (item_start, item_end, value) in enumerate(items):
        entry = (index, item_start, item_end, value)
        if len(serialize([entry])) > config.max_chunk_size:
            flush()
            label = f'"{value[0]}"' if is_object else f"[{index}]"
            pieces = split_region(content, item_start, item_end, config, code_break)
            for part, (s, e) in enumerate(pieces):
                spans.append(
                    Span(
                        start=s,
                        end=e,
                        heading=f"{label} (part {part + 1})",
                        metadata={"part": part, "split": True},
                    )
                )
            continue

        if batch and len(serialize([*batch, entry])) > config.max_chunk_size:
            flush()
        batch.append(entry)

    flush()
    return spans


def _json_heading(batch: list[tuple[int, int, int, Any]], is_object: bool) -> str:
    if is_object:
        keys = [str(e[3][0]) for e in batch]
        heading = ", ".join(keys[:5])
        if len(keys) > 5:
            heading += f", ... (+{len(keys) - 5})"
        return heading
    first, last = batch[0][0], batch[-1][0]
    return f"[{first}]" if first == last else f"[{first}..{last}]"


def _top_level_items(content: str, start: int) -> tuple[list[tuple[int, int, Any]], bool]:
    """
    Locate the top-level elements of a JSON array or object.

    Returns:
        ([(start, end, value)], is_object). For objects the value is a
        (key, value) pair and the span covers the key through the value.

    Raises:
        ValueError: If the content is not valid JSON or has trailing data
    """
    is_object = content[start] == "{"
    closer = "}" if is_object else "]"
    items: list[tuple[int, int, Any]] = []

    pos = _skip_ws(content, start + 1)
    if content[pos] == closer:
        return items, is_object

    while True:
        item_start = pos
        if is_object:
            key, pos = _DECODER.raw_decode(content, pos)
            if not isinstance(key, str):
                raise ValueError("Object key must be a string")
            pos = _skip_ws(content, pos)
            if content[pos] != ":":
                raise ValueError(f"Expected ':' at offset {pos}")
            pos = _skip_ws(content, pos + 1)
            value, pos = _DECODER.raw_decode(content, pos)
            items.append((item_start, pos, (key, value)))
        else:
            value, pos = _DECODER.raw_decode(content, pos)
            items.append((item_start, pos, value))

        pos = _skip_ws(content, pos)
        if content[pos] == ",":
            pos = _skip_ws(content, pos + 1)
            continue
        if content[pos] == closer:
            break
        raise ValueError(f"Unexpected character {content[pos]!r} at offset {pos}")

    if content[pos + 1:].strip():
        raise ValueError("Trailing data after JSON document")
    return items, is_object


def _skip_ws(content: str, pos: int) -> int:
    while pos < len(content) and content[pos] in _WS_CHARS:
        pos += 1
    return pos


# -----------------------------------------------------------------------------
# XML
# -----------------------------------------------------------------------------


def chunk_xml(content: str, config: ChunkingConfig) -> list[Span] | None:
    """Chunk XML/HTML content; None if no complete elements are found."""
    matches = list(_XML_ELEMENT.finditer(content))
    if not matches:
        return None

    spans: list[Span] = []
    cursor = 0

    for match in matches:
        _add_fragment(content, cursor, match.start(), config, spans)

        tag = match.group(1)
        start, end = trim_span(content, match.start(), match.end())
        pieces = split_region(content, start, end, config, xml_break)
        if len(pieces) == 1:
            spans.append(Span(start=start, end=end, heading=f"<{tag}> element"))
        else:
            for part, (s, e) in enumerate(pieces):
                spans.append(
                    Span(
                        start=s,
                        end=e,
                        heading=f"<{tag}> element (part {part + 1})",
                        metadata={"part": part, "split": True},
                    )
                )
        cursor = match.end()

    _add_fragment(content, cursor, len(content), config, spans)
    return spans


def _add_fragment(
    content: str, start: int, end: int, config: ChunkingConfig, spans: list[Span]
) -> None:
    start, end = trim_span(content, start, end)
    if start >= end:
        return
    for s, e in split_region(content, start, end, config, xml_break):
        spans.append(Span(start=s, end=e, heading="XML Fragment"))
