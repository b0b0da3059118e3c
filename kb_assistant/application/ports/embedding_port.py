from typing import Protocol, runtime_checkable

from kb_assistant.domain.types import Vector


@runtime_checkable
class EmbeddingPort(Protocol):
    """Deterministic text → fixed-length vector function."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> Vector: ...
