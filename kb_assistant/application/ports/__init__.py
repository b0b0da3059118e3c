"""Application ports package.

Re-exports the Protocols the use cases depend on.
"""

from kb_assistant.application.ports.embedding_port import EmbeddingPort
from kb_assistant.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_assistant.application.ports.text_extractor_port import (
    MAX_FILE_SIZE,
    SUPPORTED_FILE_TYPES,
    TextExtractorPort,
)
from kb_assistant.application.ports.vector_store_port import Chunk, StoreStats, VectorStorePort

__all__ = [
    "EmbeddingPort",
    "LLMPort",
    "ChatMessage",
    "LLMResponse",
    "TextExtractorPort",
    "SUPPORTED_FILE_TYPES",
    "MAX_FILE_SIZE",
    "Chunk",
    "StoreStats",
    "VectorStorePort",
]
