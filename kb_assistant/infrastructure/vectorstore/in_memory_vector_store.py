from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from kb_assistant.application.ports.embedding_port import EmbeddingPort
from kb_assistant.application.ports.vector_store_port import Chunk, StoreStats, VectorStorePort
from kb_assistant.domain.errors import EmbeddingError, RetrievalError, ValidationError
from kb_assistant.domain.similarity import cosine
from kb_assistant.domain.types import Score, Vector

logger = structlog.get_logger(__name__)

DEFAULT_SCORE_THRESHOLD = 0.1
OVERFETCH_FACTOR = 2


@dataclass(frozen=True)
class _Entry:
    chunk: Chunk
    vector: Vector


@dataclass
class InMemoryVectorStore(VectorStorePort):
    """Dict-backed chunk store with brute-force cosine search.

    Writers (add/delete/clear) hold the lock; searches copy the entries under
    the lock and score the copy, so a concurrent delete never changes the
    result set of a search that already started.
    """

    embedding: EmbeddingPort
    score_threshold: float = DEFAULT_SCORE_THRESHOLD
    _entries: dict[str, _Entry] = field(default_factory=dict, init=False, repr=False)
    _by_document: dict[str, set[str]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    # ---------- writes ----------

    def add_documents(self, chunks: Sequence[Chunk]) -> None:
        """Embed and insert ``chunks``.

        A chunk whose embedding fails is skipped; the others are still
        inserted and stay committed. Failures are reported together at the
        end as one EmbeddingError.
        """
        failed: list[str] = []
        reasons: list[str] = []
        for chunk in chunks:
            try:
                vector = self._embed(chunk.content)
            except EmbeddingError as ex:
                logger.warning("chunk_embedding_failed", chunk_id=chunk.id, error=str(ex))
                failed.append(chunk.id)
                reasons.append(f"{chunk.id}: {ex}")
                continue
            with self._lock:
                self._remove_locked(chunk.id)
                self._entries[chunk.id] = _Entry(chunk=chunk, vector=vector)
                self._by_document.setdefault(chunk.metadata.document_id, set()).add(chunk.id)

        logger.debug("chunks_added", added=len(chunks) - len(failed), failed=len(failed))
        if failed:
            raise EmbeddingError(
                f"Failed to embed {len(failed)} chunk(s): {'; '.join(reasons)}",
                failed_chunk_ids=failed,
            )

    def delete(self, document_id: str) -> int:
        """Remove every chunk of ``document_id`` (exact match). Returns the count."""
        with self._lock:
            ids = self._by_document.pop(document_id, set())
            for cid in ids:
                self._entries.pop(cid, None)
        logger.debug("document_deleted", document_id=document_id, chunks=len(ids))
        return len(ids)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._by_document.clear()

    # ---------- reads ----------

    def similarity_search_with_scores(self, query: str, k: int = 4) -> list[tuple[Chunk, Score]]:
        """Top-``k`` chunks above the threshold with their cosine scores, best first.

        Raises:
            RetrievalError: the query itself could not be embedded
        """
        if k < 1:
            raise ValidationError("k must be >= 1")
        with self._lock:
            snapshot = list(self._entries.values())
        if not snapshot:
            return []

        try:
            q_vec = self._embed(query)
        except EmbeddingError as ex:
            raise RetrievalError(f"query embedding failed: {ex}") from ex
        scored = [(e.chunk, cosine(q_vec, e.vector)) for e in snapshot]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [(c, s) for c, s in scored if s > self.score_threshold][:k]

    def similarity_search(self, query: str, k: int = 4) -> list[Chunk]:
        return [chunk for chunk, _ in self.similarity_search_with_scores(query, k)]

    def advanced_search(
        self,
        query: str,
        k: int = 4,
        min_similarity: float = DEFAULT_SCORE_THRESHOLD,
        source_filter: Sequence[str] | None = None,
        max_chunk_length: int | None = None,
    ) -> list[Chunk]:
        """Filtered search over ``2k`` raw candidates, truncated to ``k``.

        The over-fetch is a heuristic: heavy filtering can leave fewer than
        ``k`` results even when more matching chunks exist.
        """
        candidates = self.similarity_search_with_scores(query, k * OVERFETCH_FACTOR)
        results = [c for c, score in candidates if score >= min_similarity]
        if source_filter:
            allowed = set(source_filter)
            results = [c for c in results if c.metadata.source in allowed]
        if max_chunk_length:
            results = [c for c in results if len(c.content) <= max_chunk_length]
        return results[:k]

    def get_all_chunks(self) -> list[Chunk]:
        with self._lock:
            return [e.chunk for e in self._entries.values()]

    def get_chunks_by_source(self, source: str) -> list[Chunk]:
        return [c for c in self.get_all_chunks() if c.metadata.source == source]

    def get_stats(self) -> StoreStats:
        chunks = self.get_all_chunks()
        sources = list(dict.fromkeys(c.metadata.source for c in chunks))
        avg = sum(len(c.content) for c in chunks) / len(chunks) if chunks else 0.0
        return StoreStats(
            total_chunks=len(chunks),
            total_documents=len(sources),
            avg_chunk_length=avg,
            sources=sources,
        )

    def is_empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ---------- internals ----------

    def _embed(self, text: str) -> Vector:
        try:
            vector = tuple(self.embedding.embed(text))
        except EmbeddingError:
            raise
        except Exception as ex:  # noqa: BLE001
            raise EmbeddingError(f"embedding failed: {ex}") from ex
        if len(vector) != self.embedding.dimension:
            raise EmbeddingError(
                f"expected dimension {self.embedding.dimension}, got {len(vector)}"
            )
        return vector

    def _remove_locked(self, chunk_id: str) -> None:
        old = self._entries.pop(chunk_id, None)
        if old is None:
            return
        doc_ids = self._by_document.get(old.chunk.metadata.document_id)
        if doc_ids is not None:
            doc_ids.discard(chunk_id)
            if not doc_ids:
                del self._by_document[old.chunk.metadata.document_id]
