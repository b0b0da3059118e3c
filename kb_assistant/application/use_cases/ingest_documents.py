from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from ...domain.errors import DomainError, ExtractionError, UnsupportedTypeError, ValidationError
from ...domain.models import Document, DocumentMetadata
from ...domain.services.chunking import ChunkingParams, build_chunks
from ..dto.ingest_dto import IngestDocumentRequest
from ..ports.text_extractor_port import MAX_FILE_SIZE, SUPPORTED_FILE_TYPES, TextExtractorPort
from ..ports.vector_store_port import VectorStorePort

logger = structlog.get_logger(__name__)


def new_document_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IngestDocuments:
    """Upload → extract → chunk → store.

    Every attempt is recorded in ``documents``, failed ones with status
    ``error``. Extraction failures leave the store untouched; an embedding
    failure keeps the chunks that were stored before it.
    """

    extractor: TextExtractorPort
    vector_store: VectorStorePort
    params: ChunkingParams = field(default_factory=ChunkingParams)
    clock: Callable[[], datetime] = _utcnow
    documents: dict[str, Document] = field(default_factory=dict)

    def execute(self, req: IngestDocumentRequest) -> Document:
        # 1) Upload checks, before any extraction is attempted
        self.validate_upload(req)

        document = Document(
            id=req.document_id or new_document_id(),
            name=req.name,
            metadata=DocumentMetadata(
                type=SUPPORTED_FILE_TYPES[req.mime_type],  # type: ignore[arg-type]
                size=len(req.data),
                uploaded_at=self.clock(),
            ),
            status="processing",
        )
        self.documents[document.id] = document
        log = logger.bind(document_id=document.id, name=req.name)

        # 2) Text extraction (collaborator)
        try:
            text = self.extractor.extract(req.data, req.mime_type)
            if not text.strip():
                raise ExtractionError("No text content found in document")
        except DomainError as ex:
            document.status = "error"
            log.warning("document_extraction_failed", error=str(ex))
            raise
        except Exception as ex:  # noqa: BLE001
            document.status = "error"
            log.warning("document_extraction_failed", error=str(ex))
            raise ExtractionError(f"Failed to extract text: {ex}") from ex

        # 3) Chunk + store
        return self._index(document, text)

    def ingest_text(self, name: str, text: str, document_id: str | None = None) -> Document:
        """Index text that was already extracted elsewhere.

        Raises:
            ValidationError: text is not encodable as UTF-8 (e.g. lone surrogates)
        """
        try:
            size = len(text.encode("utf-8"))
        except UnicodeEncodeError as ex:
            raise ValidationError(f"Text is not valid Unicode: {ex.reason}") from ex

        document = Document(
            id=document_id or new_document_id(),
            name=name,
            metadata=DocumentMetadata(type="txt", size=size, uploaded_at=self.clock()),
            status="processing",
        )
        self.documents[document.id] = document
        return self._index(document, text)

    def validate_upload(self, req: IngestDocumentRequest) -> None:
        if req.mime_type not in SUPPORTED_FILE_TYPES:
            raise UnsupportedTypeError(
                f"Unsupported file type: {req.mime_type}. Supported types: PDF, TXT, DOCX"
            )
        if len(req.data) > MAX_FILE_SIZE:
            raise ValidationError(
                f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)}MB"
            )
        if not req.data:
            raise ValidationError("File is empty")

    def _index(self, document: Document, text: str) -> Document:
        log = logger.bind(document_id=document.id, name=document.name)
        document.content = text
        try:
            document.chunks = build_chunks(document.id, document.name, text, self.params)
            # re-ingesting an id replaces the previous version entirely
            replaced = self.vector_store.delete(document.id)
            if replaced:
                log.info("document_replaced", old_chunks=replaced)
            self.vector_store.add_documents(document.chunks)
        except DomainError as ex:
            document.status = "error"
            log.warning("document_indexing_failed", error=str(ex))
            raise

        document.status = "ready"
        document.metadata.processed_at = self.clock()
        log.info("document_indexed", chunks=len(document.chunks))
        return document
