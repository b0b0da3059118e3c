from datetime import datetime, timezone

import pytest

from kb_assistant.application.dto.ingest_dto import IngestDocumentRequest
from kb_assistant.application.ports.text_extractor_port import MAX_FILE_SIZE, MIME_TXT
from kb_assistant.application.use_cases.ingest_documents import IngestDocuments
from kb_assistant.domain.errors import (
    EmbeddingError,
    ExtractionError,
    UnsupportedTypeError,
    ValidationError,
)
from kb_assistant.domain.services.chunking import ChunkingParams
from kb_assistant.infrastructure.embeddings.char_feature_embedding import CharFeatureEmbedding
from kb_assistant.infrastructure.parsing.text_extractors import MimeTypeTextExtractor
from kb_assistant.infrastructure.vectorstore.in_memory_vector_store import InMemoryVectorStore

FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class SometimesFailingEmbedding:
    dimension = 384

    def __init__(self) -> None:
        self._inner = CharFeatureEmbedding()

    def embed(self, text: str):
        if "poison" in text:
            raise RuntimeError("model crashed")
        return self._inner.embed(text)


def _use_case(store=None, params=None) -> IngestDocuments:
    # an empty store is falsy (len 0), so test against None
    if store is None:
        store = InMemoryVectorStore(embedding=CharFeatureEmbedding())
    return IngestDocuments(
        extractor=MimeTypeTextExtractor(),
        vector_store=store,
        params=params or ChunkingParams(),
        clock=lambda: FIXED_NOW,
    )


def test_text_upload_is_indexed():
    uc = _use_case()
    doc = uc.execute(
        IngestDocumentRequest(name="notes.txt", data=b"The sky is blue.", mime_type=MIME_TXT)
    )

    assert doc.status == "ready"
    assert doc.id.startswith("doc_")
    assert doc.metadata.type == "txt"
    assert doc.metadata.size == 16
    assert doc.metadata.processed_at == FIXED_NOW
    assert [c.content for c in doc.chunks] == ["The sky is blue."]
    assert uc.vector_store.get_all_chunks() == doc.chunks
    assert uc.documents[doc.id] is doc


def test_explicit_document_id_is_used():
    doc = _use_case().execute(
        IngestDocumentRequest(name="a.txt", data=b"text", mime_type=MIME_TXT, document_id="doc1")
    )
    assert doc.chunks[0].id == "doc1_chunk_0"


def test_long_text_is_chunked_with_configured_params():
    text = " ".join(f"Line {i} of a long document." for i in range(100)).encode()
    doc = _use_case(params=ChunkingParams(chunk_size=200, chunk_overlap=20)).execute(
        IngestDocumentRequest(name="long.txt", data=text, mime_type=MIME_TXT)
    )
    assert len(doc.chunks) > 1
    assert all(len(c.content) <= 200 for c in doc.chunks)


def test_unsupported_type_is_rejected_before_extraction():
    uc = _use_case()
    with pytest.raises(UnsupportedTypeError):
        uc.execute(IngestDocumentRequest(name="x.html", data=b"<p/>", mime_type="text/html"))
    assert uc.documents == {}


def test_oversized_and_empty_uploads_are_rejected():
    uc = _use_case()
    with pytest.raises(ValidationError, match="File too large"):
        uc.execute(
            IngestDocumentRequest(name="big.txt", data=b"a" * (MAX_FILE_SIZE + 1), mime_type=MIME_TXT)
        )
    with pytest.raises(ValidationError, match="File is empty"):
        uc.execute(IngestDocumentRequest(name="empty.txt", data=b"", mime_type=MIME_TXT))


def test_extraction_failure_marks_document_and_skips_store():
    uc = _use_case()
    with pytest.raises(ExtractionError):
        uc.execute(IngestDocumentRequest(name="bad.txt", data=b"\xff\xfe", mime_type=MIME_TXT))

    (doc,) = uc.documents.values()
    assert doc.status == "error"
    assert uc.vector_store.get_all_chunks() == []


def test_whitespace_only_document_has_no_text():
    uc = _use_case()
    with pytest.raises(ExtractionError, match="No text content"):
        uc.execute(IngestDocumentRequest(name="blank.txt", data=b"  \n\n ", mime_type=MIME_TXT))


def test_embedding_failure_keeps_committed_chunks():
    store = InMemoryVectorStore(embedding=SometimesFailingEmbedding())
    uc = _use_case(store=store, params=ChunkingParams(chunk_size=30, chunk_overlap=0))
    text = ("Good paragraph number one.\n\n" "poison paragraph.\n\n" "Good paragraph two.").encode()

    with pytest.raises(EmbeddingError) as exc:
        uc.execute(IngestDocumentRequest(name="mixed.txt", data=text, mime_type=MIME_TXT))

    (doc,) = uc.documents.values()
    assert doc.status == "error"
    assert len(exc.value.failed_chunk_ids) == 1
    assert len(doc.chunks) == 3
    assert len(store) == 2


def test_ingest_text_skips_extraction():
    doc = _use_case().ingest_text("inline", "Some inline text.")
    assert doc.status == "ready"
    assert doc.metadata.type == "txt"
    assert doc.content == "Some inline text."


def test_reingesting_a_document_id_replaces_its_chunks():
    uc = _use_case(params=ChunkingParams(chunk_size=100, chunk_overlap=10))
    long_text = " ".join(f"Old sentence number {i} about mountains." for i in range(30))
    old = uc.ingest_text("old.txt", long_text, document_id="doc1")
    assert len(old.chunks) > 1

    new = uc.ingest_text("new.txt", "New short text about oceans.", document_id="doc1")

    stored = uc.vector_store.get_all_chunks()
    assert stored == new.chunks
    assert [c.metadata.source for c in stored] == ["new.txt"]
    assert uc.documents["doc1"] is new


def test_text_with_lone_surrogate_is_rejected():
    uc = _use_case()
    with pytest.raises(ValidationError):
        uc.ingest_text("broken", "bad \ud800 text")
    assert uc.vector_store.get_all_chunks() == []
