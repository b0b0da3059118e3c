import pytest

from kb_assistant.application.ports.text_extractor_port import MIME_DOCX, MIME_PDF, MIME_TXT
from kb_assistant.domain.errors import ExtractionError, UnsupportedTypeError
from kb_assistant.infrastructure.parsing.text_extractors import (
    MimeTypeTextExtractor,
    PlainTextExtractor,
)


def test_plain_text_is_decoded():
    assert PlainTextExtractor().extract("Grüße".encode()) == "Grüße"


def test_invalid_utf8_raises_extraction_error():
    with pytest.raises(ExtractionError):
        PlainTextExtractor().extract(b"\xff\xfe\xfa")


def test_dispatch_by_mime_type():
    extractor = MimeTypeTextExtractor()
    assert extractor.extract(b"hello", MIME_TXT) == "hello"


def test_unsupported_type_raises():
    with pytest.raises(UnsupportedTypeError):
        MimeTypeTextExtractor().extract(b"<html/>", "text/html")


@pytest.mark.parametrize("mime_type", [MIME_PDF, MIME_DOCX])
def test_corrupt_binary_documents_raise_extraction_error(mime_type):
    with pytest.raises(ExtractionError):
        MimeTypeTextExtractor().extract(b"definitely not a real document", mime_type)


def test_custom_extractor_registry():
    class Upper:
        def extract(self, data: bytes, mime_type: str) -> str:
            return data.decode().upper()

    extractor = MimeTypeTextExtractor(extractors={"text/x-upper": Upper()})
    assert extractor.extract(b"abc", "text/x-upper") == "ABC"
    with pytest.raises(UnsupportedTypeError):
        extractor.extract(b"abc", MIME_TXT)
