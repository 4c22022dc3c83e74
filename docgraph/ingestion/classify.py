"""
Content Type Classification

Decides which chunking strategy a document gets.

Order of precedence:
    1. File extension (metadata.filename, falling back to the title)
    2. metadata.content_type hint (ContentType value or MIME type)
    3. Content sniffing: JSON, XML, then any markdown marker, then any code marker
    4. Plain text

Example:
    >>> doc = Document(id="d1", content="# Title", metadata=DocumentMetadata(title="notes"))
    >>> classify(doc)
    <ContentType.MARKDOWN: 'markdown'>
"""

from __future__ import annotations

import json
import re
from pathlib import PurePath

from docgraph.types import ContentType, Document

_EXTENSIONS: dict[str, ContentType] = {
    ".md": ContentType.MARKDOWN,
    ".markdown": ContentType.MARKDOWN,
    ".json": ContentType.JSON,
    ".xml": ContentType.XML,
    ".html": ContentType.XML,
    ".htm": ContentType.XML,
    ".xhtml": ContentType.XML,
    ".svg": ContentType.XML,
    ".txt": ContentType.PLAIN_TEXT,
    ".text": ContentType.PLAIN_TEXT,
}

_CODE_EXTENSIONS = {
    ".py", ".js", ".ts", ".tsx", ".jsx", ".java", ".c", ".h", ".cpp", ".hpp",
    ".cs", ".go", ".rs", ".rb", ".php", ".css", ".sql", ".sh", ".kt", ".swift",
}

_MIME_TYPES: dict[str, ContentType] = {
    "text/markdown": ContentType.MARKDOWN,
    "text/x-markdown": ContentType.MARKDOWN,
    "application/json": ContentType.JSON,
    "application/xml": ContentType.XML,
    "text/xml": ContentType.XML,
    "text/html": ContentType.XML,
    "application/xhtml+xml": ContentType.XML,
    "text/plain": ContentType.PLAIN_TEXT,
}

_MARKDOWN_MARKERS = [
    re.compile(r"^#{1,6}\s", re.MULTILINE),     # headers
    re.compile(r"\*\*[^*\n]+\*\*"),             # bold
    re.compile(r"\[[^\]\n]+\]\([^)\n]+\)"),     # links
    re.compile(r"^\s*[-*+]\s", re.MULTILINE),   # bullet lists
    re.compile(r"^\s*\d+\.\s", re.MULTILINE),   # numbered lists
    re.compile(r"^>\s", re.MULTILINE),          # blockquotes
    re.compile(r"^```", re.MULTILINE),          # fenced code
]

_CODE_MARKERS = [
    re.compile(r"^\s*(async\s+)?def\s+\w+\s*\(", re.MULTILINE),
    re.compile(r"^\s*class\s+\w+", re.MULTILINE),
    re.compile(r"\bfunction\s+\w+\s*\("),
    re.compile(r"^\s*import\s+[\w{}*,\s]+\s+from\s+['\"]", re.MULTILINE),
    re.compile(r"^\s*(from\s+[\w.]+\s+)?import\s+[\w.]+", re.MULTILINE),
    re.compile(r"^\s*(public|private|protected)\s+(static\s+)?\w+", re.MULTILINE),
    re.compile(r"^\s*#include\s*[<\"]", re.MULTILINE),
    re.compile(r"\)\s*\{\s*$", re.MULTILINE),
    re.compile(r";\s*$", re.MULTILINE),
]


def classify(document: Document) -> ContentType:
    """Return the content type of a document. Pure and deterministic."""
    meta = document.metadata

    for name in (meta.filename, meta.title):
        if name:
            by_extension = _classify_extension(name)
            if by_extension is not None:
                return by_extension

    if meta.content_type:
        by_hint = _classify_hint(meta.content_type)
        if by_hint is not None:
            return by_hint

    return sniff_content(document.content)


def sniff_content(content: str) -> ContentType:
    """Classify raw text by its shape alone."""
    stripped = content.strip()
    if not stripped:
        return ContentType.PLAIN_TEXT

    if stripped[0] in "{[" and _is_json(stripped):
        return ContentType.JSON

    if stripped.startswith("<") and ">" in stripped:
        return ContentType.XML

    if _any_match(_MARKDOWN_MARKERS, stripped):
        return ContentType.MARKDOWN

    if _any_match(_CODE_MARKERS, stripped):
        return ContentType.CODE

    return ContentType.PLAIN_TEXT


def _classify_extension(name: str) -> ContentType | None:
    suffix = PurePath(name).suffix.lower()
    if not suffix:
        return None
    if suffix in _CODE_EXTENSIONS:
        return ContentType.CODE
    return _EXTENSIONS.get(suffix)


def _classify_hint(hint: str) -> ContentType | None:
    hint = hint.strip().lower()
    try:
        return ContentType(hint)
    except ValueError:
        pass
    mime = hint.split(";", 1)[0].strip()
    if mime in _MIME_TYPES:
        return _MIME_TYPES[mime]
    if mime.endswith("+json"):
        return ContentType.JSON
    if mime.endswith("+xml"):
        return ContentType.XML
    return None


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def _any_match(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)
