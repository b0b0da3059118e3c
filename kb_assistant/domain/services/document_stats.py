from __future__ import annotations

import math

from ..models import Document

WORDS_PER_MINUTE = 200


def estimate_reading_time(text: str) -> int:
    """Minutes to read ``text`` at 200 words per minute, rounded up."""
    return math.ceil(len(text.split()) / WORDS_PER_MINUTE)


def get_document_stats(document: Document) -> dict[str, int]:
    return {
        "character_count": len(document.content),
        "word_count": len(document.content.split()),
        "chunk_count": len(document.chunks),
        "reading_time": estimate_reading_time(document.content),
    }
