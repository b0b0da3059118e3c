from __future__ import annotations

from typing import Protocol

MIME_PDF = "application/pdf"
MIME_TXT = "text/plain"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SUPPORTED_FILE_TYPES: dict[str, str] = {
    MIME_PDF: "pdf",
    MIME_TXT: "txt",
    MIME_DOCX: "docx",
}

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB


class TextExtractorPort(Protocol):
    def extract(self, data: bytes, mime_type: str) -> str:
        """Return plain text, or raise UnsupportedTypeError / ExtractionError."""
        ...
