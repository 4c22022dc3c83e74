"""
Windowed Region Splitter

Shared by every chunking strategy to cut a region of the document that
is longer than max_chunk_size into overlapping pieces.

Algorithm (per piece):
    1. window = max_chunk_size - overlap_size
    2. Ask the strategy's break finder for the last preferred break in
       [pos + window // 2, pos + window]
    3. Otherwise cut after the last whitespace in that range
    4. Otherwise hard-cut at pos + window
    5. The next piece starts overlap_size characters before the cut,
       nudged forward to a word start within the first half of the overlap

Pieces are (start, end) offsets into the original content, so chunk text
is always an exact slice.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from docgraph.types import ChunkingConfig

BreakFinder = Callable[[str, int, int], "int | None"]
"""(content, floor, limit) -> cut offset in (floor, limit], or None"""

_WS = re.compile(r"\s")
_SENTENCE_END = re.compile(r"[.!?]+\s+")
_HEADING_LINE = re.compile(r"^#{1,6}\s")
_LIST_LINE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s")


@dataclass
class Span:
    """A candidate chunk before ids are assigned."""

    start: int
    end: int
    heading: str | None = None
    header_path: str = ""
    text: str | None = None  # set when the chunk text is not a plain slice
    complete_section: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


def split_region(
    content: str,
    start: int,
    end: int,
    config: ChunkingConfig,
    break_finder: BreakFinder | None = None,
) -> list[tuple[int, int]]:
    """
    Split content[start:end] into pieces no longer than max_chunk_size.

    Returns:
        (start, end) offset pairs in increasing order. Consecutive pieces
        overlap by at most overlap_size characters.
    """
    max_size = config.max_chunk_size
    overlap = config.overlap_size

    if end - start <= max_size:
        return [(start, end)]

    window = max_size - overlap
    pieces: list[tuple[int, int]] = []
    pos = start

    while pos < end:
        if end - pos <= max_size:
            pieces.append((pos, end))
            break

        limit = pos + window
        floor = pos + window // 2

        cut = break_finder(content, floor, limit) if break_finder else None
        if cut is None:
            cut = word_boundary(content, floor, limit)
        if cut is None:
            cut = limit

        pieces.append((pos, cut))

        next_pos = _overlap_start(content, cut, overlap)
        if next_pos <= pos:
            next_pos = cut
        pos = next_pos

    return pieces


def _overlap_start(content: str, cut: int, overlap: int) -> int:
    """Start of the next piece: cut - overlap, moved to a word start if one is near."""
    if overlap <= 0:
        return cut
    pos = cut - overlap
    if pos > 0 and content[pos - 1].isspace():
        return pos
    match = _WS.search(content, pos, pos + overlap // 2)
    if match:
        return match.end()
    return pos


# -----------------------------------------------------------------------------
# Break finders
# -----------------------------------------------------------------------------


def word_boundary(content: str, floor: int, limit: int) -> int | None:
    """Cut after the last whitespace character in [floor, limit)."""
    for i in range(limit - 1, floor - 1, -1):
        if content[i].isspace():
            return i + 1
    return None


def line_break(content: str, floor: int, limit: int) -> int | None:
    """Cut after the last newline in [floor, limit)."""
    idx = content.rfind("\n", floor, limit)
    if idx == -1:
        return None
    return idx + 1


def code_break(content: str, floor: int, limit: int) -> int | None:
    """Prefer blank lines between blocks, then any line boundary."""
    idx = content.rfind("\n\n", floor, limit)
    if idx != -1:
        return idx + 2
    return line_break(content, floor, limit)


def sentence_break(content: str, floor: int, limit: int) -> int | None:
    """Prefer paragraph breaks, then the last sentence end in range."""
    idx = content.rfind("\n\n", floor, limit)
    if idx != -1:
        return idx + 2
    last = None
    for match in _SENTENCE_END.finditer(content, floor, limit):
        last = match.end()
    return last


def markdown_break(content: str, floor: int, limit: int) -> int | None:
    """
    Cut after a blank line, a heading line or a list-item line, or just
    before a heading.
    """
    search_end = limit
    while True:
        idx = content.rfind("\n", floor, search_end)
        if idx == -1:
            return None
        cut = idx + 1
        line_start = content.rfind("\n", 0, idx) + 1
        line = content[line_start:idx]
        next_end = content.find("\n", cut)
        next_line = content[cut: next_end if next_end != -1 else len(content)]
        if (
            not line.strip()
            or _HEADING_LINE.match(line)
            or _LIST_LINE.match(line)
            or _HEADING_LINE.match(next_line)
        ):
            return cut
        search_end = idx


def xml_break(content: str, floor: int, limit: int) -> int | None:
    """Prefer line boundaries, then the end of the last tag in range."""
    cut = line_break(content, floor, limit)
    if cut is not None:
        return cut
    idx = content.rfind(">", floor, limit)
    if idx == -1:
        return None
    return idx + 1


def trim_span(content: str, start: int, end: int) -> tuple[int, int]:
    """Shrink (start, end) so the slice has no leading or trailing whitespace."""
    while start < end and content[start].isspace():
        start += 1
    while end > start and content[end - 1].isspace():
        end -= 1
    return start, end
