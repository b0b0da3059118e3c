"""RAG pipeline orchestrator.

Why: One object owns the configuration, the shared store, the conversation
memory and the generation backend, and keeps them consistent across
ingestion, querying and reconfiguration.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from kb_assistant.application.dto.ingest_dto import IngestDocumentRequest
from kb_assistant.application.dto.query_dto import QueryResult, QueryStream
from kb_assistant.application.ports.llm_port import LLMPort
from kb_assistant.application.ports.text_extractor_port import TextExtractorPort
from kb_assistant.application.ports.vector_store_port import StoreStats, VectorStorePort
from kb_assistant.application.use_cases.ingest_documents import IngestDocuments
from kb_assistant.application.use_cases.query_knowledge_base import QueryKnowledgeBase
from kb_assistant.domain.config import RAGConfig, merge_config, validate_config
from kb_assistant.domain.errors import ConfigurationError, DomainError, GenerationError
from kb_assistant.domain.memory import ConversationMemory
from kb_assistant.domain.models import ConversationTurn, Document
from kb_assistant.domain.services.chunking import ChunkingParams
from kb_assistant.domain.types import Result

logger = structlog.get_logger(__name__)

LLMFactory = Callable[[RAGConfig], LLMPort]

# Changing any of these requires a new backend client.
_LLM_FIELDS = ("model", "credential")


def _chunking_params(config: RAGConfig) -> ChunkingParams:
    return ChunkingParams(chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)


@dataclass(frozen=True)
class PipelineStats:
    documents: StoreStats
    conversations: int
    config: dict[str, Any]


class RAGPipeline:
    """Facade over ingestion and querying with a validated configuration.

    Build it once at startup (see ``config.composition.create_rag_pipeline``).
    """

    def __init__(
        self,
        config: RAGConfig,
        llm_factory: LLMFactory,
        vector_store: VectorStorePort,
        extractor: TextExtractorPort,
        memory: ConversationMemory | None = None,
    ) -> None:
        errors = validate_config(config)
        if errors:
            raise ConfigurationError(errors)

        self._config = config
        self._llm_factory = llm_factory
        self._config_lock = threading.Lock()
        self.vector_store = vector_store
        self.ingestion = IngestDocuments(
            extractor=extractor,
            vector_store=vector_store,
            params=_chunking_params(config),
        )
        self.querying = QueryKnowledgeBase(
            vector_store=vector_store,
            llm=llm_factory(config),
            config=config,
            memory=memory,
        )

    @property
    def llm(self) -> LLMPort:
        return self.querying.llm

    # ---------- knowledge base ----------

    def add_document(self, name: str, data: bytes, mime_type: str) -> Document:
        """Extract, chunk and index an uploaded file.

        Raises:
            UnsupportedTypeError / ValidationError: upload rejected before extraction
            ExtractionError: store untouched, document recorded with status ``error``
            EmbeddingError: chunks embedded before the failure stay indexed
        """
        return self.ingestion.execute(
            IngestDocumentRequest(name=name, data=data, mime_type=mime_type)
        )

    def add_text(self, name: str, text: str, document_id: str | None = None) -> Document:
        return self.ingestion.ingest_text(name, text, document_id=document_id)

    def remove_document(self, document_id: str) -> int:
        removed = self.vector_store.delete(document_id)
        self.ingestion.documents.pop(document_id, None)
        logger.info("document_removed", document_id=document_id, chunks=removed)
        return removed

    def list_documents(self) -> list[Document]:
        return list(self.ingestion.documents.values())

    def clear_knowledge_base(self) -> None:
        self.vector_store.clear()
        self.ingestion.documents.clear()
        self.querying.clear_history()
        logger.info("knowledge_base_cleared")

    # ---------- querying ----------

    def query(self, question: str) -> Result[QueryResult, DomainError]:
        return self.querying.execute(question)

    def stream_query(self, question: str) -> QueryStream:
        return self.querying.stream(question)

    def clear_history(self) -> None:
        self.querying.clear_history()

    def get_conversation_history(self) -> list[ConversationTurn]:
        return self.querying.history()

    # ---------- configuration & lifecycle ----------

    def get_config(self) -> RAGConfig:
        return self._config

    def update_config(self, updates: Mapping[str, Any] | None = None, **kwargs: Any) -> RAGConfig:
        """Merge, validate and apply a partial update atomically.

        Raises:
            ConfigurationError: every invalid field; the current config stays active
        """
        changes = {**(updates or {}), **kwargs}
        with self._config_lock:
            new_config = merge_config(self._config, changes)
            llm = self.querying.llm
            if any(getattr(new_config, f) != getattr(self._config, f) for f in _LLM_FIELDS):
                llm = self._llm_factory(new_config)

            self._config = new_config
            self.querying.config = new_config
            self.querying.llm = llm
            self.ingestion.params = _chunking_params(new_config)

        logger.info("config_updated", fields=sorted(changes))
        return new_config

    def test_pipeline(self) -> Result[bool, DomainError]:
        """Single connectivity check against the generation backend."""
        try:
            ok = self.llm.test_connection()
        except Exception as ex:  # noqa: BLE001
            return Result.failure(GenerationError(f"{ex}"))
        if not ok:
            return Result.failure(GenerationError("LLM connection failed"))
        return Result.success(True)

    def get_stats(self) -> PipelineStats:
        return PipelineStats(
            documents=self.vector_store.get_stats(),
            conversations=len(self.get_conversation_history()),
            config=self._config.redacted(),
        )
