from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IngestDocumentRequest:
    name: str  # shown in citations
    data: bytes
    mime_type: str  # one of SUPPORTED_FILE_TYPES
    document_id: str | None = None  # generated when omitted
