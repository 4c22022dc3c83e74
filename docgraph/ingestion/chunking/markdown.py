"""
Markdown Chunker

Section-based markdown chunking with header breadcrumbs.

Algorithm:
    1. Parse markdown into sections at heading lines (fenced code ignored)
    2. Each section keeps its heading line and its breadcrumb path
    3. Sections longer than max_chunk_size are split, preferring breaks
       after blank lines, headings and list items
"""

import re
from dataclasses import dataclass

from docgraph.ingestion.chunking.splitter import Span, markdown_break, split_region, trim_span
from docgraph.types import ChunkingConfig

_HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")


@dataclass
class _Section:
    """A parsed section from markdown."""

    start: int
    end: int
    header_path: str
    header_level: int  # 1 for #, 2 for ##, etc. (0 = no header/preamble)
    title: str | None
    has_body: bool = False


def chunk_markdown(content: str, config: ChunkingConfig) -> list[Span]:
    """
    Split markdown into spans by section.

    Args:
        content: Raw markdown text
        config: Size limits

    Returns:
        Spans in document order; whole sections are flagged as complete
    """
    spans: list[Span] = []

    for section in _parse_sections(content):
        start, end = trim_span(content, section.start, section.end)
        if start >= end:
            continue

        pieces = split_region(content, start, end, config, markdown_break)
        is_split = len(pieces) > 1
        for part, (piece_start, piece_end) in enumerate(pieces):
            spans.append(
                Span(
                    start=piece_start,
                    end=piece_end,
                    heading=section.title,
                    header_path=section.header_path,
                    complete_section=(
                        not is_split and section.title is not None and section.has_body
                    ),
                    metadata={"part": part, "split": True} if is_split else {},
                )
            )

    return spans


def _parse_sections(content: str) -> list[_Section]:
    """
    Parse markdown into sections based on headers.

    Tracks header hierarchy to build breadcrumb paths like "Intro > Background".
    Content before the first header gets an empty header_path.
    """
    sections: list[_Section] = []

    # Track header stack: [(level, title), ...]
    header_stack: list[tuple[int, str]] = []
    current = _Section(start=0, end=0, header_path="", header_level=0, title=None)
    in_fence = False
    offset = 0

    for line in content.splitlines(keepends=True):
        line_start = offset
        offset += len(line)
        text = line.rstrip("\r\n")

        if _FENCE_PATTERN.match(text):
            in_fence = not in_fence

        match = None if in_fence else _HEADER_PATTERN.match(text)
        if match:
            current.end = line_start
            if current.end > current.start:
                sections.append(current)

            hashes, title = match.groups()
            level = len(hashes)

            # Pop headers at same or deeper level
            while header_stack and header_stack[-1][0] >= level:
                header_stack.pop()
            header_stack.append((level, title))

            current = _Section(
                start=line_start,
                end=line_start,
                header_path=" > ".join(h[1] for h in header_stack),
                header_level=level,
                title=title,
            )
        elif text.strip():
            current.has_body = True

    current.end = len(content)
    if current.end > current.start:
        sections.append(current)

    return sections
