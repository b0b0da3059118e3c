# kb_assistant/application/use_cases/query_knowledge_base.py
from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Generator, Sequence
from datetime import datetime, timezone
from enum import Enum

import structlog

from kb_assistant.application.dto.query_dto import QueryResult, QueryStream, StreamEvent
from kb_assistant.application.ports.llm_port import LLMPort
from kb_assistant.application.ports.vector_store_port import Chunk, VectorStorePort
from kb_assistant.domain.config import RAGConfig
from kb_assistant.domain.errors import (
    DomainError,
    GenerationError,
    ValidationError,
)
from kb_assistant.domain.memory import ConversationMemory
from kb_assistant.domain.models import ConversationTurn
from kb_assistant.domain.services.prompting import (
    create_conversation_prompt,
    format_context_chunks,
)
from kb_assistant.domain.types import Result

logger = structlog.get_logger(__name__)

FALLBACK_ANSWER = (
    "I don't have any relevant information in my knowledge base to answer your "
    "question. Please try uploading relevant documents first."
)
SEARCHING_MESSAGE = "Searching knowledge base..."


class QueryStage(str, Enum):
    INIT = "init"
    RETRIEVING = "retrieving"
    EMPTY = "empty"
    FOUND = "found"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


def new_query_id() -> str:
    return f"query_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryKnowledgeBase:
    """
    Application Use-Case: question → retrieval → prompt → generation.

    Stages per call: INIT → RETRIEVING → (EMPTY → DONE | FOUND → GENERATING
    → DONE); ERROR from any of them. Retrieval failures degrade to the
    fallback answer. Conversation memory is written only after a complete,
    uncancelled answer.
    """

    def __init__(
        self,
        vector_store: VectorStorePort,
        llm: LLMPort,
        config: RAGConfig,
        memory: ConversationMemory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.vector_store = vector_store
        self.llm = llm
        self.config = config
        self.memory = memory if memory is not None else ConversationMemory()
        self.clock = clock
        self._memory_lock = threading.Lock()

    # ---------- synchronous ----------

    def execute(self, question: str) -> Result[QueryResult, DomainError]:
        if not question or not question.strip():
            return Result.failure(ValidationError("question must not be empty"))

        query_id = new_query_id()
        log = logger.bind(query_id=query_id)
        log.debug("query_stage", stage=QueryStage.INIT.value)

        # 1) Retrieve (failures degrade to empty context)
        chunks = self._retrieve(question, log)
        if not chunks:
            log.info("query_stage", stage=QueryStage.EMPTY.value)
            return Result.success(self._fallback_result(query_id, question))

        # 2) Prompt with citations + recent turns
        log.debug("query_stage", stage=QueryStage.FOUND.value, chunks=len(chunks))
        prompt = self._build_prompt(question, chunks)

        # 3) Generate once; no retry
        log.debug("query_stage", stage=QueryStage.GENERATING.value)
        try:
            answer = self.llm.generate(
                prompt, temperature=self.config.temperature, max_tokens=self.config.max_tokens
            )
        except Exception as ex:  # noqa: BLE001
            err = ex if isinstance(ex, GenerationError) else GenerationError(f"{ex}")
            log.error("query_stage", stage=QueryStage.ERROR.value, error=str(err))
            return Result.failure(err)

        result = self._build_result(query_id, question, chunks, answer)
        self._remember(question, answer)
        log.info("query_stage", stage=QueryStage.DONE.value, sources=len(result.sources))
        return Result.success(result)

    # ---------- streaming ----------

    def stream(self, question: str) -> QueryStream:
        """Start a pull-based streaming query.

        Raises:
            ValidationError: empty question (raised immediately)

        Iterating the returned stream raises GenerationError if the backend
        fails mid-answer.
        """
        if not question or not question.strip():
            raise ValidationError("question must not be empty")
        return QueryStream(self._stream_events(question))

    def _stream_events(self, question: str) -> Generator[StreamEvent, None, QueryResult]:
        query_id = new_query_id()
        log = logger.bind(query_id=query_id, streaming=True)
        log.debug("query_stage", stage=QueryStage.INIT.value)

        yield StreamEvent("status", SEARCHING_MESSAGE)
        chunks = self._retrieve(question, log)
        if not chunks:
            log.info("query_stage", stage=QueryStage.EMPTY.value)
            yield StreamEvent("answer", FALLBACK_ANSWER)
            return self._fallback_result(query_id, question)

        log.debug("query_stage", stage=QueryStage.FOUND.value, chunks=len(chunks))
        yield StreamEvent(
            "status", f"Found {len(chunks)} relevant chunk(s). Generating response..."
        )
        prompt = self._build_prompt(question, chunks)

        log.debug("query_stage", stage=QueryStage.GENERATING.value)
        fragments: list[str] = []
        backend = None
        try:
            backend = self.llm.stream(
                prompt, temperature=self.config.temperature, max_tokens=self.config.max_tokens
            )
            for fragment in backend:
                fragments.append(fragment)
                yield StreamEvent("answer", fragment)
        except GeneratorExit:
            log.info("query_cancelled", fragments=len(fragments))
            raise
        except GenerationError as ex:
            log.error("query_stage", stage=QueryStage.ERROR.value, error=str(ex))
            raise
        except Exception as ex:  # noqa: BLE001
            log.error("query_stage", stage=QueryStage.ERROR.value, error=str(ex))
            raise GenerationError(f"Stream query failed: {ex}") from ex
        finally:
            close = getattr(backend, "close", None)
            if callable(close):
                close()

        answer = "".join(fragments)
        result = self._build_result(query_id, question, chunks, answer)
        self._remember(question, answer)
        log.info("query_stage", stage=QueryStage.DONE.value, sources=len(result.sources))
        return result

    # ---------- history ----------

    def history(self) -> list[ConversationTurn]:
        with self._memory_lock:
            return self.memory.turns()

    def clear_history(self) -> None:
        with self._memory_lock:
            self.memory.clear()

    # ---------- internals ----------

    def _retrieve(self, question: str, log: structlog.typing.FilteringBoundLogger) -> list[Chunk]:
        log.debug("query_stage", stage=QueryStage.RETRIEVING.value)
        try:
            return list(self.vector_store.similarity_search(question, self.config.top_k))
        except Exception as ex:  # noqa: BLE001
            log.warning("retrieval_degraded", error=str(ex), error_type=type(ex).__name__)
            return []

    def _build_prompt(self, question: str, chunks: Sequence[Chunk]) -> str:
        with self._memory_lock:
            recent = self.memory.turns()
        return create_conversation_prompt(question, format_context_chunks(chunks), recent)

    def _build_result(
        self, query_id: str, question: str, chunks: Sequence[Chunk], answer: str
    ) -> QueryResult:
        return QueryResult(
            id=query_id,
            question=question,
            retrieved_context=[c.content for c in chunks],
            answer=answer,
            sources=list(dict.fromkeys(c.metadata.source for c in chunks)),
            timestamp=self.clock(),
        )

    def _fallback_result(self, query_id: str, question: str) -> QueryResult:
        return QueryResult(
            id=query_id,
            question=question,
            retrieved_context=[],
            answer=FALLBACK_ANSWER,
            sources=[],
            timestamp=self.clock(),
        )

    def _remember(self, question: str, answer: str) -> None:
        with self._memory_lock:
            self.memory.append(question, answer)
