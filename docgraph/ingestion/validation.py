"""
Document Validation

Pre-chunking checks that reject documents the pipeline cannot handle,
plus the text sanitizer applied to raw input before a Document is built.
"""

from __future__ import annotations

import logging
import re

from docgraph.exceptions import ValidationError
from docgraph.types import Document, ProcessingOptions

logger = logging.getLogger(__name__)


def sanitize_text(text: str) -> str:
    """
    Normalize raw input text.

    Removes NUL characters, converts CRLF/CR line endings to LF, collapses
    runs of spaces and tabs, and reduces three or more newlines to two.
    """
    text = text.replace("\x00", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def non_printable_ratio(text: str) -> float:
    """Fraction of characters that are neither printable nor whitespace."""
    if not text:
        return 0.0
    bad = sum(1 for ch in text if not (ch.isprintable() or ch.isspace()))
    return bad / len(text)


def validate_document(document: Document, options: ProcessingOptions) -> None:
    """
    Validate a document before processing.

    Raises:
        ValidationError: If the content is empty, too large, looks binary,
            or the document has no title.
    """
    content = document.content

    if not content or not content.strip():
        raise ValidationError("Document content is empty")

    size = len(content.encode("utf-8"))
    if size > options.max_document_bytes:
        raise ValidationError(
            f"Document is {size} bytes, exceeding the limit of {options.max_document_bytes}"
        )

    if not document.metadata.title or not document.metadata.title.strip():
        raise ValidationError("Document title is required")

    if "\x00" in content:
        raise ValidationError("Document appears to be binary (contains NUL bytes)")

    ratio = non_printable_ratio(content)
    if ratio > options.binary_ratio_threshold:
        raise ValidationError(
            f"Document appears to be binary ({ratio:.0%} non-printable characters)"
        )

    logger.debug(f"Document {document.id} passed validation ({size} bytes)")
