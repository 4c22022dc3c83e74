"""
Document and Chunk Types

Documents are the unit of ingestion; chunks are the contiguous,
offset-addressed segments the extraction oracle sees.

Storage Models:
    - Document: Source content plus metadata and processing status
    - DocumentChunk: Segment of a document with header context

Enums:
    - ContentType: Detected content family driving the chunking strategy
    - DocumentStatus / ChunkStatus: Processing lifecycle
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Content families recognised by the classifier."""

    MARKDOWN = "markdown"
    CODE = "code"
    JSON = "json"
    XML = "xml"
    PLAIN_TEXT = "plain_text"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ChunkStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class DocumentMetadata(BaseModel):
    """
    Descriptive metadata supplied with a document.

    Attributes:
        title: Human-readable title (required for ingestion)
        filename: Original filename, used for extension-based classification
        content_type: Optional hint, either a ContentType value or a MIME type
        size_bytes: UTF-8 size of the content
        tags: Free-form labels
    """

    title: str = ""
    filename: str | None = None
    content_type: str | None = None
    size_bytes: int = 0
    tags: list[str] = Field(default_factory=list)


class Document(BaseModel):
    """
    A source document.

    The content is never modified after creation; the orchestrator only
    moves `status` through its lifecycle.
    """

    id: str
    content: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    status: DocumentStatus = DocumentStatus.PENDING
    created_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)


class DocumentChunk(BaseModel):
    """
    A contiguous segment of a document.

    Attributes:
        id: Deterministic id, "{document_id}_chunk_{sequence:04d}"
        document_id: Parent document id
        text: Chunk text (a slice of the content, or re-serialized JSON)
        start_offset: Inclusive character offset into the document content
        end_offset: Exclusive character offset, always > start_offset
        sequence_index: Position among the document's chunks (0-indexed)
        heading: Nearest heading or element label, if any
        header_path: Breadcrumb of enclosing headings (e.g. "Guide > Install")
        entity_ids: Entities extracted from this chunk
        relationship_ids: Relationships extracted from this chunk
        status: Extraction status
        content_type: Content family the chunk was produced under
        metadata: Free-form annotations (quality score, split flags)
    """

    id: str
    document_id: str
    text: str
    start_offset: int = Field(..., ge=0)
    end_offset: int
    sequence_index: int = Field(..., ge=0)
    heading: str | None = None
    header_path: str = ""
    entity_ids: list[str] = Field(default_factory=list)
    relationship_ids: list[str] = Field(default_factory=list)
    status: ChunkStatus = ChunkStatus.PENDING
    content_type: ContentType = ContentType.PLAIN_TEXT
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)

    @property
    def length(self) -> int:
        return len(self.text)
