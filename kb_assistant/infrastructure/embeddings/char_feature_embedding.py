from __future__ import annotations

import zlib
from collections import Counter
from dataclasses import dataclass

from kb_assistant.application.ports.embedding_port import EmbeddingPort
from kb_assistant.domain.errors import EmbeddingError
from kb_assistant.domain.types import Vector

ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789 "
PUNCTUATION = ".!?,:;-()[]{}"
_WORD_FEATURES = 2  # average word length, word density
_FIXED = len(ALPHABET) + _WORD_FEATURES + len(PUNCTUATION)


@dataclass(frozen=True)
class CharFeatureEmbedding(EmbeddingPort):
    """Model-free embedding from character statistics.

    Layout of the vector:
        [0, 37)               character frequency over ``ALPHABET``
        [37, 37 + B)          the ``top_bigrams`` most common bigrams,
                              hashed (CRC32) into B bigram slots
        37 + B                average word length / 20
        37 + B + 1            words per character
        remaining 13 slots    frequency of each ``PUNCTUATION`` symbol

    Every frequency is divided by the text length, so documents of very
    different sizes stay comparable. Pure and deterministic across runs
    and processes (no ``hash()`` randomization involved).
    """

    dim: int = 384
    top_bigrams: int = 100

    def __post_init__(self) -> None:
        if self.dim <= _FIXED:
            raise EmbeddingError(f"dimension must be > {_FIXED}, got {self.dim}")
        if self.top_bigrams < 0:
            raise EmbeddingError("top_bigrams must be >= 0")

    @property
    def dimension(self) -> int:
        return self.dim

    @property
    def bigram_slots(self) -> int:
        return self.dim - _FIXED

    def embed(self, text: str) -> Vector:
        vec = [0.0] * self.dim
        n = len(text)
        if n == 0:
            return tuple(vec)
        lower = text.lower()

        counts = Counter(lower)
        for i, ch in enumerate(ALPHABET):
            vec[i] = counts[ch] / n

        offset = len(ALPHABET)
        bigrams = Counter(lower[i : i + 2] for i in range(n - 1))
        # ties broken alphabetically so the selection is stable
        top = sorted(bigrams.items(), key=lambda kv: (-kv[1], kv[0]))[: self.top_bigrams]
        for bigram, count in top:
            slot = zlib.crc32(bigram.encode("utf-8")) % self.bigram_slots
            vec[offset + slot] += count / n

        offset += self.bigram_slots
        words = text.split()
        avg_len = sum(len(w) for w in words) / len(words) if words else 0.0
        vec[offset] = avg_len / 20
        vec[offset + 1] = len(words) / n

        offset += _WORD_FEATURES
        for i, ch in enumerate(PUNCTUATION):
            vec[offset + i] = text.count(ch) / n

        return tuple(vec)
