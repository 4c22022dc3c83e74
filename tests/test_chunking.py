"""
Tests for content classification, validation and chunking.

Tests cover:
- Content type precedence (extension, hint, sniffing)
- Document validation and text sanitizing
- Markdown section chunking and splitting with overlap
- Plain text, JSON and XML strategies and their fallbacks
- Undersized chunk filtering and determinism
"""

import json

import pytest

from docgraph.exceptions import ValidationError
from docgraph.ingestion.chunking import ChunkingEngine
from docgraph.ingestion.classify import classify, sniff_content
from docgraph.ingestion.validation import sanitize_text, validate_document
from docgraph.types import (
    ChunkingConfig,
    ContentType,
    Document,
    DocumentMetadata,
    ProcessingOptions,
)


def _doc(content: str, title: str = "notes", **meta) -> Document:
    return Document(
        id="doc_test",
        content=content,
        metadata=DocumentMetadata(title=title, **meta),
    )


class TestClassify:
    """Tests for content type detection."""

    def test_extension_wins_over_content(self):
        """Test that a .md filename classifies as markdown even for plain content."""
        doc = _doc("just words", filename="readme.md")
        assert classify(doc) == ContentType.MARKDOWN

    def test_title_extension_used_without_filename(self):
        """Test that the title extension is used when no filename is given."""
        assert classify(_doc("{}", title="data.json")) == ContentType.JSON

    def test_code_extension(self):
        """Test that source file extensions classify as code."""
        assert classify(_doc("x = 1", filename="script.py")) == ContentType.CODE

    def test_mime_hint(self):
        """Test that MIME type hints are honoured."""
        assert classify(_doc("anything", content_type="text/markdown")) == ContentType.MARKDOWN
        assert classify(_doc("anything", content_type="application/ld+json")) == ContentType.JSON

    def test_unknown_extension_falls_through(self):
        """Test that an unrecognised extension defers to sniffing."""
        doc = _doc('{"a": 1}', title="report.v2")
        assert classify(doc) == ContentType.JSON

    def test_sniff_json(self):
        """Test that valid JSON is sniffed as JSON."""
        assert sniff_content('[{"id": 1}]') == ContentType.JSON

    def test_sniff_invalid_json_is_not_json(self):
        """Test that brace-prefixed non-JSON is not classified as JSON."""
        assert sniff_content("{not json") != ContentType.JSON

    def test_sniff_xml(self):
        """Test that tag-prefixed content is sniffed as XML."""
        assert sniff_content("<root><a>1</a></root>") == ContentType.XML

    def test_sniff_markdown_heading(self):
        """Test that a single heading is enough for markdown."""
        assert sniff_content("# Title\n\nSome text.") == ContentType.MARKDOWN

    def test_sniff_markdown_single_marker(self):
        """Test that one link or one bold span is enough for markdown."""
        assert sniff_content(
            "Read the [docs](http://x.io) before you start."
        ) == ContentType.MARKDOWN
        assert sniff_content("This is **important** to know.") == ContentType.MARKDOWN

    def test_sniff_code(self):
        """Test that code markers classify as code."""
        content = "import os\n\ndef main():\n    return os.getcwd()\n"
        assert sniff_content(content) == ContentType.CODE

    def test_sniff_code_single_marker(self):
        """Test that a single statement ending in a semicolon is code."""
        assert sniff_content("x = compute(a, b);") == ContentType.CODE

    def test_sniff_plain_text(self):
        """Test the plain text default."""
        assert sniff_content("Just a sentence about nothing.") == ContentType.PLAIN_TEXT
        assert sniff_content("   ") == ContentType.PLAIN_TEXT


class TestValidation:
    """Tests for document validation."""

    def test_valid_document_passes(self):
        """Test that a normal document passes validation."""
        validate_document(_doc("Hello world."), ProcessingOptions())

    def test_empty_content_rejected(self):
        """Test that whitespace-only content is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document(_doc("   \n "), ProcessingOptions())
        assert exc_info.value.stage == "validating"
        assert "empty" in exc_info.value.message

    def test_oversized_rejected(self):
        """Test that content above max_document_bytes is rejected."""
        options = ProcessingOptions(max_document_bytes=10)
        with pytest.raises(ValidationError, match="exceeding the limit"):
            validate_document(_doc("x" * 11), options)

    def test_missing_title_rejected(self):
        """Test that a blank title is rejected."""
        with pytest.raises(ValidationError, match="title"):
            validate_document(_doc("content", title="  "), ProcessingOptions())

    def test_nul_bytes_rejected(self):
        """Test that NUL bytes mark the document as binary."""
        with pytest.raises(ValidationError, match="binary"):
            validate_document(_doc("abc\x00def"), ProcessingOptions())

    def test_non_printable_ratio_rejected(self):
        """Test that mostly non-printable content is rejected."""
        with pytest.raises(ValidationError, match="non-printable"):
            validate_document(_doc("\x01\x02\x03abc"), ProcessingOptions())

    def test_sanitize_text(self):
        """Test line ending, NUL, space and blank line normalization."""
        raw = "a\r\nb\x00  \tc\n\n\n\nd  "
        assert sanitize_text(raw) == "a\nb c\n\nd"


class TestChunkingConfig:
    """Tests for ChunkingConfig validation."""

    def test_min_above_max_rejected(self):
        """Test that min_chunk_size > max_chunk_size is invalid."""
        with pytest.raises(ValueError):
            ChunkingConfig(max_chunk_size=100, min_chunk_size=200, overlap_size=10)

    def test_overlap_must_be_under_half(self):
        """Test that overlap of half the max size or more is invalid."""
        with pytest.raises(ValueError):
            ChunkingConfig(max_chunk_size=100, min_chunk_size=10, overlap_size=50)


class TestMarkdownChunking:
    """Tests for heading-aware markdown chunking."""

    CONTENT = "# Intro\nHello world.\n# Details\n" + "x" * 9000

    def _chunk(self):
        config = ChunkingConfig(max_chunk_size=8000, min_chunk_size=100, overlap_size=200)
        return ChunkingEngine(config).chunk(_doc(self.CONTENT, title="notes.md"))

    def test_short_section_kept_and_long_section_split(self):
        """Test that a short complete section survives and an oversized one splits once.

        The document has two sections but yields three chunks: "Intro" is kept
        whole even though it is below min size, and "Details" (9000 chars) is
        cut into two overlapping pieces.
        """
        result = self._chunk()

        assert result.content_type == "markdown"
        assert [c.heading for c in result.chunks] == ["Intro", "Details", "Details"]
        assert result.chunks[0].text == "# Intro\nHello world."
        assert result.warnings == []

    def test_split_offsets_and_overlap(self):
        """Test that the continuation starts 200 characters before the cut."""
        result = self._chunk()
        first, second = result.chunks[1], result.chunks[2]

        assert first.start_offset == 21
        assert first.end_offset == 21 + 7800
        assert second.start_offset == first.end_offset - 200
        assert second.end_offset == len(self.CONTENT)
        assert first.metadata == {"part": 0, "split": True}
        assert second.metadata == {"part": 1, "split": True}
        assert result.stats.overlap_count == 1

    def test_chunks_are_slices_of_content(self):
        """Test that every markdown chunk is an exact slice of the document."""
        for chunk in self._chunk().chunks:
            assert chunk.text == self.CONTENT[chunk.start_offset:chunk.end_offset]
            assert len(chunk.text) <= 8000

    def test_ids_are_sequential(self):
        """Test deterministic ids and sequence indexes."""
        result = self._chunk()
        assert [c.sequence_index for c in result.chunks] == [0, 1, 2]
        assert [c.id for c in result.chunks] == [
            "doc_test_chunk_0000",
            "doc_test_chunk_0001",
            "doc_test_chunk_0002",
        ]

    def test_chunking_is_deterministic(self):
        """Test that chunking the same document twice gives identical results."""
        assert self._chunk().model_dump() == self._chunk().model_dump()

    def test_header_path_breadcrumbs(self):
        """Test that nested headings build a breadcrumb path."""
        content = (
            "# Guide\nOverview paragraph for the guide.\n"
            "## Install\nRun the installer and follow the prompts.\n"
        )
        config = ChunkingConfig(max_chunk_size=1000, min_chunk_size=10, overlap_size=50)
        result = ChunkingEngine(config).chunk(_doc(content, title="guide.md"))

        assert [c.header_path for c in result.chunks] == ["Guide", "Guide > Install"]

    def test_headings_inside_fences_ignored(self):
        """Test that '#' lines inside fenced code do not start sections."""
        content = "# Script\nExample:\n```\n# not a heading\necho hi\n```\n"
        config = ChunkingConfig(max_chunk_size=1000, min_chunk_size=10, overlap_size=50)
        result = ChunkingEngine(config).chunk(_doc(content, title="script.md"))

        assert len(result.chunks) == 1
        assert result.chunks[0].heading == "Script"

    def test_undersized_section_dropped_with_warning(self):
        """Test that a heading-only section below min size is dropped."""
        content = "# Empty\n# Full\n" + "Body sentence here. " * 8
        config = ChunkingConfig(max_chunk_size=1000, min_chunk_size=100, overlap_size=50)
        result = ChunkingEngine(config).chunk(_doc(content, title="notes.md"))

        assert [c.heading for c in result.chunks] == ["Full"]
        assert result.chunks[0].sequence_index == 0
        assert len(result.warnings) == 1
        assert "Dropped undersized chunk" in result.warnings[0]


class TestPlainTextChunking:
    """Tests for plain text chunking."""

    def test_single_short_document_kept(self):
        """Test that a document fitting in one chunk is kept below min size."""
        result = ChunkingEngine().chunk(_doc("Tiny note.", title="note.txt"))
        assert len(result.chunks) == 1
        assert result.chunks[0].text == "Tiny note."

    def test_long_text_split_with_overlap(self):
        """Test size limits, coverage and overlap for split prose."""
        content = "".join(f"This is sentence number {i}. " for i in range(60)).strip()
        config = ChunkingConfig(max_chunk_size=200, min_chunk_size=10, overlap_size=20)
        result = ChunkingEngine(config).chunk(_doc(content, title="prose.txt"))
        chunks = result.chunks

        assert len(chunks) > 1
        assert chunks[0].start_offset == 0
        assert chunks[-1].end_offset == len(content)
        for chunk in chunks:
            assert len(chunk.text) <= 200
            assert chunk.text == content[chunk.start_offset:chunk.end_offset]
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.start_offset < nxt.start_offset <= prev.end_offset

    def test_prefers_sentence_boundaries(self):
        """Test that split pieces end at sentence boundaries when possible."""
        content = "".join(f"Sentence {i} is here. " for i in range(40)).strip()
        config = ChunkingConfig(max_chunk_size=150, min_chunk_size=10, overlap_size=20)
        result = ChunkingEngine(config).chunk(_doc(content, title="prose.txt"))

        for chunk in result.chunks[:-1]:
            assert chunk.text.rstrip().endswith(".")


class TestStructuredChunking:
    """Tests for JSON and XML chunking."""

    def test_json_array_batches(self):
        """Test that JSON arrays are batched into valid, bounded JSON chunks."""
        items = [{"id": i, "name": f"item {i}"} for i in range(50)]
        content = json.dumps(items)
        config = ChunkingConfig(max_chunk_size=300, min_chunk_size=10, overlap_size=20)
        result = ChunkingEngine(config).chunk(_doc(content, title="data.json"))

        assert result.content_type == "json"
        assert len(result.chunks) > 1
        recovered = []
        for chunk in result.chunks:
            assert len(chunk.text) <= 300
            recovered.extend(json.loads(chunk.text))
        assert recovered == items
        assert result.chunks[0].heading.startswith("[0")

    def test_json_object_batches_by_key(self):
        """Test that object roots are batched by top-level key."""
        content = json.dumps({"alpha": 1, "beta": [1, 2], "gamma": {"x": "y"}})
        config = ChunkingConfig(max_chunk_size=1000, min_chunk_size=5, overlap_size=20)
        result = ChunkingEngine(config).chunk(_doc(content, title="config.json"))

        assert len(result.chunks) == 1
        assert json.loads(result.chunks[0].text) == json.loads(content)
        assert result.chunks[0].heading == "alpha, beta, gamma"

    def test_invalid_json_falls_back_to_plain_text(self):
        """Test that malformed JSON is chunked as plain text."""
        result = ChunkingEngine().chunk(_doc("{not json at all", title="broken.json"))
        assert result.content_type == "plain_text"
        assert len(result.chunks) == 1

    def test_xml_elements(self):
        """Test that top-level XML elements become chunks."""
        content = "<item>First entry text</item>\n<item>Second entry text</item>"
        config = ChunkingConfig(max_chunk_size=1000, min_chunk_size=5, overlap_size=20)
        result = ChunkingEngine(config).chunk(_doc(content, title="feed.xml"))

        assert result.content_type == "xml"
        assert [c.text for c in result.chunks] == [
            "<item>First entry text</item>",
            "<item>Second entry text</item>",
        ]
        assert result.chunks[0].heading == "<item> element"

    def test_xml_without_elements_falls_back(self):
        """Test that XML-classified content without elements is chunked as plain text."""
        result = ChunkingEngine().chunk(_doc("no tags here at all", title="page.xml"))
        assert result.content_type == "plain_text"
