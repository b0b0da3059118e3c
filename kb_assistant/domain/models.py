# kb_assistant/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

DocumentType = Literal["pdf", "txt", "docx"]
DocumentStatus = Literal["uploading", "processing", "ready", "error"]
StreamEventKind = Literal["status", "answer"]


@dataclass(frozen=True)
class ChunkMetadata:
    """Where a chunk came from.

    - document_id:  id of the owning document (used for delete-by-document)
    - source:       human-readable document name (used for citations)
    - start_offset: position of the first character in the document text
    - end_offset:   position one past the last character
    - page:         page number when the extractor knows it
    """

    document_id: str
    source: str
    start_offset: int
    end_offset: int
    page: int | None = None


@dataclass(frozen=True)
class Chunk:
    """
    Immutable domain entity that represents a retrievable passage.

    - id:        ``{document_id}_chunk_{index}``, unique within a store
    - content:   the chunk text (never longer than the configured chunk size)
    - metadata:  provenance, see ChunkMetadata

    NOTE: Embeddings are owned by the store entry and never travel with a Chunk.
    """

    id: str
    content: str
    metadata: ChunkMetadata


@dataclass
class DocumentMetadata:
    type: DocumentType
    size: int
    uploaded_at: datetime
    processed_at: datetime | None = None


@dataclass
class Document:
    """A user document moving through extraction and chunking.

    Status goes uploading → processing → ready, or → error on failure.
    """

    id: str
    name: str
    metadata: DocumentMetadata
    content: str = ""
    chunks: list[Chunk] = field(default_factory=list)
    status: DocumentStatus = "uploading"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one query/stream call. ``sources`` holds each name once."""

    id: str
    question: str
    retrieved_context: list[str]
    answer: str
    sources: list[str]
    timestamp: datetime


@dataclass(frozen=True)
class ConversationTurn:
    question: str
    answer: str


@dataclass(frozen=True)
class StreamEvent:
    """Progress notification (``status``) or answer fragment (``answer``)."""

    kind: StreamEventKind
    content: str


@dataclass(frozen=True)
class StoreStats:
    total_chunks: int
    total_documents: int
    avg_chunk_length: float
    sources: list[str]
