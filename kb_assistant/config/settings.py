"""Application settings with environment-driven configuration.

Why: Single place that reads the environment; everything else receives a
validated RAGConfig via dependency injection.
"""

import os
from dataclasses import dataclass, field

from kb_assistant.domain.config import RAGConfig, validate_config
from kb_assistant.domain.errors import ConfigurationError

# Numeric variables read at construction (not part of RAGConfig).
_NUMERIC_SETTINGS = {
    "llm_timeout_s": ("LLM_TIMEOUT_S", "60", float),
    "embedding_dimension": ("EMBEDDING_DIMENSION", "384", int),
    "embedding_top_bigrams": ("EMBEDDING_TOP_BIGRAMS", "100", int),
    "score_threshold": ("RAG_SCORE_THRESHOLD", "0.1", float),
}


def _env_number(name: str, default: str, cast: type, errors: list[str]) -> float:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        errors.append(f"{name} must be a number, got {raw!r}")
        return cast(default)


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from environment variables.

    This is the ONLY place where environment variables are read.
    Numeric fields left unset are parsed in ``__post_init__``; bad values
    there are all reported in one ConfigurationError. The ``RAG_*`` numbers
    are parsed in ``to_rag_config`` together with the config validation.
    """

    # ===== LLM Configuration =====
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1")
    )
    llm_api_key: str = field(
        default_factory=lambda: os.getenv("GROQ_API_KEY", os.getenv("LLM_API_KEY", ""))
    )
    llm_model: str = field(default_factory=lambda: os.getenv("RAG_MODEL", "llama-3.1-8b-instant"))
    llm_timeout_s: float = None  # type: ignore[assignment]  # parsed in __post_init__

    # ===== Embedding / Store Configuration =====
    embedding_dimension: int = None  # type: ignore[assignment]  # parsed in __post_init__
    embedding_top_bigrams: int = None  # type: ignore[assignment]  # parsed in __post_init__
    score_threshold: float = None  # type: ignore[assignment]  # parsed in __post_init__

    # ===== Logging =====
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_json: bool = field(
        default_factory=lambda: os.getenv("LOG_JSON", "false").lower() == "true"
    )

    def __post_init__(self) -> None:
        errors: list[str] = []
        for attr, (env, default, cast) in _NUMERIC_SETTINGS.items():
            if getattr(self, attr) is None:
                object.__setattr__(self, attr, _env_number(env, default, cast, errors))
        if errors:
            raise ConfigurationError(errors)

    def to_rag_config(self) -> RAGConfig:
        """Build and validate the pipeline config from ``RAG_*`` variables.

        Raises:
            ConfigurationError: with every invalid value
        """
        errors: list[str] = []
        cfg = RAGConfig(
            credential=self.llm_api_key,
            model=self.llm_model,
            temperature=_env_number("RAG_TEMPERATURE", "0.1", float, errors),
            max_tokens=int(_env_number("RAG_MAX_TOKENS", "1024", int, errors)),
            top_k=int(_env_number("RAG_TOP_K", "4", int, errors)),
            chunk_size=int(_env_number("RAG_CHUNK_SIZE", "1000", int, errors)),
            chunk_overlap=int(_env_number("RAG_CHUNK_OVERLAP", "200", int, errors)),
        )
        errors.extend(validate_config(cfg))
        if errors:
            raise ConfigurationError(errors)
        return cfg
