from __future__ import annotations

import io
from dataclasses import dataclass, field

from kb_assistant.application.ports.text_extractor_port import (
    MIME_DOCX,
    MIME_PDF,
    MIME_TXT,
    TextExtractorPort,
)
from kb_assistant.domain.errors import ExtractionError, UnsupportedTypeError


@dataclass
class PlainTextExtractor(TextExtractorPort):
    encoding: str = "utf-8"

    def extract(self, data: bytes, mime_type: str = MIME_TXT) -> str:  # type: ignore[override]
        try:
            return data.decode(self.encoding)
        except UnicodeDecodeError as ex:
            raise ExtractionError(f"TXT decode failed: {ex}") from ex


@dataclass
class PDFTextExtractor(TextExtractorPort):
    def extract(self, data: bytes, mime_type: str = MIME_PDF) -> str:  # type: ignore[override]
        try:
            from pypdf import PdfReader  # lazy import to avoid hard dependency in tests
        except ImportError as ex:  # pragma: no cover
            raise ExtractionError("pypdf is not installed") from ex

        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [p.extract_text() or "" for p in reader.pages]
            return "\n\n".join(pages).strip()
        except Exception as ex:  # noqa: BLE001
            raise ExtractionError(f"Failed to parse PDF: {ex}") from ex


@dataclass
class DocxTextExtractor(TextExtractorPort):
    def extract(self, data: bytes, mime_type: str = MIME_DOCX) -> str:  # type: ignore[override]
        try:
            from docx import Document  # python-docx; lazy import to avoid hard dependency in tests
        except ImportError as ex:  # pragma: no cover
            raise ExtractionError("python-docx is not installed") from ex

        try:
            document = Document(io.BytesIO(data))
            return "\n".join(p.text for p in document.paragraphs).strip()
        except Exception as ex:  # noqa: BLE001
            raise ExtractionError(f"Failed to parse DOCX: {ex}") from ex


@dataclass
class MimeTypeTextExtractor(TextExtractorPort):
    """Dispatches to the extractor registered for the declared MIME type."""

    extractors: dict[str, TextExtractorPort] = field(
        default_factory=lambda: {
            MIME_PDF: PDFTextExtractor(),
            MIME_TXT: PlainTextExtractor(),
            MIME_DOCX: DocxTextExtractor(),
        }
    )

    def extract(self, data: bytes, mime_type: str) -> str:
        extractor = self.extractors.get(mime_type)
        if extractor is None:
            raise UnsupportedTypeError(f"Unsupported file type: {mime_type}")
        return extractor.extract(data, mime_type)
