from collections.abc import Sequence
from typing import Protocol, runtime_checkable

# Import domain model and re-export for convenience
from kb_assistant.domain.models import Chunk, StoreStats

__all__ = ["Chunk", "StoreStats", "VectorStorePort"]


@runtime_checkable
class VectorStorePort(Protocol):
    """Chunk store answering similarity queries by text.

    Embeddings are computed and kept inside the store; no method returns them.
    """

    def add_documents(self, chunks: Sequence[Chunk]) -> None: ...

    def similarity_search(self, query: str, k: int = 4) -> list[Chunk]: ...

    def delete(self, document_id: str) -> int: ...

    def clear(self) -> None: ...

    def get_stats(self) -> StoreStats: ...

    def get_all_chunks(self) -> list[Chunk]: ...
