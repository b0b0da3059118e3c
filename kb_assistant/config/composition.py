from kb_assistant.application.pipeline import RAGPipeline
from kb_assistant.application.ports.embedding_port import EmbeddingPort
from kb_assistant.application.ports.llm_port import LLMPort
from kb_assistant.application.ports.text_extractor_port import TextExtractorPort
from kb_assistant.application.ports.vector_store_port import VectorStorePort
from kb_assistant.config.settings import AppSettings
from kb_assistant.domain.config import RAGConfig
from kb_assistant.infrastructure.embeddings.char_feature_embedding import CharFeatureEmbedding
from kb_assistant.infrastructure.llm.openai_compatible_adapter import OpenAICompatibleLLMAdapter
from kb_assistant.infrastructure.parsing.text_extractors import MimeTypeTextExtractor
from kb_assistant.infrastructure.vectorstore.in_memory_vector_store import InMemoryVectorStore


def build_embedding(settings: AppSettings) -> EmbeddingPort:
    return CharFeatureEmbedding(
        dim=settings.embedding_dimension,
        top_bigrams=settings.embedding_top_bigrams,
    )


def build_vector_store(settings: AppSettings, embedding: EmbeddingPort | None = None) -> VectorStorePort:
    return InMemoryVectorStore(
        embedding=embedding or build_embedding(settings),
        score_threshold=settings.score_threshold,
    )


def build_llm(settings: AppSettings, config: RAGConfig) -> LLMPort:
    """Client for ``config.model`` using ``config.credential``.

    No network traffic happens here; the openai client is created lazily.
    """
    return OpenAICompatibleLLMAdapter(
        api_key=config.credential,
        model=config.model,
        base_url=settings.llm_base_url,
        timeout_s=settings.llm_timeout_s,
    )


def build_text_extractor() -> TextExtractorPort:
    return MimeTypeTextExtractor()


def create_rag_pipeline(
    settings: AppSettings | None = None, config: RAGConfig | None = None
) -> RAGPipeline:
    """Build the pipeline once at startup.

    Args:
        settings: environment settings (read now when omitted)
        config: explicit pipeline config; derived from ``settings`` when omitted

    Raises:
        ConfigurationError: aggregated config problems, before anything is built
    """
    settings = settings or AppSettings()
    config = config or settings.to_rag_config()
    return RAGPipeline(
        config=config,
        llm_factory=lambda cfg: build_llm(settings, cfg),
        vector_store=build_vector_store(settings),
        extractor=build_text_extractor(),
    )
