import pytest

from kb_assistant.domain.errors import EmptyInputError, ValidationError
from kb_assistant.domain.services.chunking import (
    ChunkingParams,
    build_chunks,
    chunk_id,
    split_text,
)


def _long_text() -> str:
    return " ".join(f"Sentence number {i} talks about topic {i % 7}." for i in range(300))


def test_chunks_respect_size_and_overlap():
    text = _long_text()
    spans = split_text(text, chunk_size=1000, chunk_overlap=200)

    assert len(spans) > 1
    for span in spans:
        assert 0 < len(span.text) <= 1000
        assert text[span.start : span.end] == span.text
    for prev, cur in zip(spans, spans[1:]):
        assert cur.start > prev.start
        assert prev.end - cur.start <= 200


def test_chunks_cover_the_whole_text():
    text = _long_text()
    spans = split_text(text, chunk_size=500, chunk_overlap=50)

    assert spans[0].start == 0
    assert spans[-1].end == len(text)
    for prev, cur in zip(spans, spans[1:]):
        # no characters other than whitespace fall between two chunks
        assert text[prev.end : cur.start].strip() == ""


def test_short_text_is_single_chunk():
    spans = split_text("Short text.", chunk_size=100, chunk_overlap=10)
    assert [(s.text, s.start, s.end) for s in spans] == [("Short text.", 0, 11)]


def test_offsets_skip_stripped_whitespace():
    spans = split_text("   hello world  \n", chunk_size=100, chunk_overlap=0)
    assert len(spans) == 1
    assert spans[0].text == "hello world"
    assert (spans[0].start, spans[0].end) == (3, 14)


def test_paragraphs_preferred_over_sentences():
    first = "Alpha beta gamma. " * 4
    second = "Delta epsilon zeta. " * 4
    text = first.strip() + "\n\n" + second.strip()
    spans = split_text(text, chunk_size=100, chunk_overlap=0)

    assert [s.text for s in spans] == [first.strip(), second.strip()]


def test_text_without_separators_falls_back_to_characters():
    text = "a" * 250
    spans = split_text(text, chunk_size=100, chunk_overlap=20)

    assert len(spans) == 3
    assert all(len(s.text) <= 100 for s in spans)
    assert spans[1].start == 80


def test_repeated_content_gets_distinct_offsets():
    text = "Same line here.\n" * 40
    spans = split_text(text, chunk_size=120, chunk_overlap=0)

    starts = [s.start for s in spans]
    assert starts == sorted(set(starts))
    for span in spans:
        assert text[span.start : span.end] == span.text


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
def test_empty_text_raises(text):
    with pytest.raises(EmptyInputError):
        split_text(text)


def test_overlap_must_be_smaller_than_size():
    with pytest.raises(ValidationError):
        split_text("some text", chunk_size=100, chunk_overlap=100)
    with pytest.raises(ValidationError):
        ChunkingParams(chunk_size=100, chunk_overlap=-1).validate()


def test_build_chunks_ids_and_metadata():
    chunks = build_chunks(
        "doc_1", "notes.txt", _long_text(), ChunkingParams(chunk_size=300, chunk_overlap=30)
    )

    assert [c.id for c in chunks] == [chunk_id("doc_1", i) for i in range(len(chunks))]
    assert chunks[0].id == "doc_1_chunk_0"
    assert all(c.metadata.document_id == "doc_1" for c in chunks)
    assert all(c.metadata.source == "notes.txt" for c in chunks)
    assert all(len(c.content) <= 300 for c in chunks)
