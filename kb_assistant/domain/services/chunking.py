from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import EmptyInputError, ValidationError
from ..models import Chunk, ChunkMetadata

# ---------- Value Objects ----------

# Paragraph, line, sentence end, word, character (last resort).
SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", " ", "")


@dataclass(frozen=True)
class TextSpan:
    """A chunk candidate: ``text == source[start:end]``."""

    text: str
    start: int
    end: int


@dataclass(frozen=True)
class ChunkingParams:
    chunk_size: int = 1000
    chunk_overlap: int = 200
    separators: tuple[str, ...] = SEPARATORS

    def validate(self) -> None:
        if self.chunk_size < 1:
            raise ValidationError("chunk_size must be > 0")
        if self.chunk_overlap < 0:
            raise ValidationError("chunk_overlap must be >= 0")
        if self.chunk_overlap >= self.chunk_size:
            raise ValidationError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )


# ---------- Splitting ----------
# Everything below works on (start, end) offsets into the original text so
# that reported offsets are exact, also for repeated content.

_Span = tuple[int, int]


def _pieces(text: str, start: int, end: int, separator: str) -> list[_Span]:
    """Cut text[start:end] after every occurrence of ``separator``."""
    if separator == "":
        return [(i, i + 1) for i in range(start, end)]
    out: list[_Span] = []
    pos = start
    while True:
        idx = text.find(separator, pos, end)
        if idx == -1:
            break
        cut = idx + len(separator)
        out.append((pos, cut))
        pos = cut
    if pos < end:
        out.append((pos, end))
    return out


def _merge(spans: Sequence[_Span], p: ChunkingParams) -> list[_Span]:
    """Pack contiguous small spans up to chunk_size, carrying an overlap tail.

    The tail kept for the next chunk is made of whole spans and totals at
    most chunk_overlap characters.
    """
    merged: list[_Span] = []
    window: deque[_Span] = deque()
    total = 0
    for s, e in spans:
        length = e - s
        if window and total + length > p.chunk_size:
            merged.append((window[0][0], window[-1][1]))
            while window and (total > p.chunk_overlap or total + length > p.chunk_size):
                ws, we = window.popleft()
                total -= we - ws
        window.append((s, e))
        total += length
    if window:
        merged.append((window[0][0], window[-1][1]))
    return merged


def _split_recursive(
    text: str, start: int, end: int, separators: Sequence[str], p: ChunkingParams
) -> list[_Span]:
    separator, rest = "", ()
    for i, sep in enumerate(separators):
        if sep == "" or text.find(sep, start, end) != -1:
            separator, rest = sep, tuple(separators[i + 1 :])
            break

    out: list[_Span] = []
    good: list[_Span] = []
    for s, e in _pieces(text, start, end, separator):
        if e - s <= p.chunk_size:
            good.append((s, e))
            continue
        if good:
            out.extend(_merge(good, p))
            good = []
        out.extend(_split_recursive(text, s, e, rest, p))
    if good:
        out.extend(_merge(good, p))
    return out


def split_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    separators: Sequence[str] = SEPARATORS,
) -> list[TextSpan]:
    """Recursive separator splitting: paragraph → line → sentence → word → char.

    Every returned span is whitespace-stripped, at most ``chunk_size`` long,
    and shares at most ``chunk_overlap`` characters with its predecessor.

    Raises:
        EmptyInputError: text is empty or whitespace only
        ValidationError: invalid size/overlap combination
    """
    if not text or not text.strip():
        raise EmptyInputError("text must not be empty")
    p = ChunkingParams(chunk_size, chunk_overlap, tuple(separators))
    p.validate()

    spans: list[TextSpan] = []
    for s, e in _split_recursive(text, 0, len(text), p.separators, p):
        raw = text[s:e]
        stripped = raw.strip()
        if not stripped:
            continue
        lead = len(raw) - len(raw.lstrip())
        spans.append(TextSpan(stripped, s + lead, s + lead + len(stripped)))
    return spans


def chunk_id(document_id: str, index: int) -> str:
    return f"{document_id}_chunk_{index}"


def build_chunks(
    document_id: str,
    source: str,
    text: str,
    params: ChunkingParams | None = None,
) -> list[Chunk]:
    """Split ``text`` and wrap each span as a Chunk owned by ``document_id``."""
    p = params or ChunkingParams()
    spans = split_text(text, p.chunk_size, p.chunk_overlap, p.separators)
    return [
        Chunk(
            id=chunk_id(document_id, i),
            content=span.text,
            metadata=ChunkMetadata(
                document_id=document_id,
                source=source,
                start_offset=span.start,
                end_offset=span.end,
            ),
        )
        for i, span in enumerate(spans)
    ]


# Properties:
#
# - No I/O, no globals, no NLP libraries.
# - Offsets are exact because splitting never copies text until the end.
# - Overlap is measured in whole pieces, so it can be shorter than requested.
