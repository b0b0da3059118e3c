"""Typed pipeline configuration with aggregate validation.

Why: Config is checked as a unit before anything is built from it; every
invalid field is reported together, and partial updates are atomic.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from .errors import ConfigurationError


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: str
    context_length: int


MODEL_CATALOG: tuple[ModelInfo, ...] = (
    ModelInfo(
        "llama-3.1-8b-instant",
        "Llama 3.1 8B",
        "Fast and efficient for quick responses",
        128000,
    ),
    ModelInfo(
        "mixtral-8x7b-32768",
        "Mixtral 8x7B",
        "Best overall performance for most tasks",
        32768,
    ),
    ModelInfo(
        "llama-3.1-70b-versatile",
        "Llama 3.1 70B",
        "Excellent reasoning and versatile performance",
        128000,
    ),
)

SUPPORTED_MODELS: tuple[str, ...] = tuple(m.id for m in MODEL_CATALOG)


def get_available_models() -> list[ModelInfo]:
    return list(MODEL_CATALOG)


MIN_CHUNK_SIZE = 100


@dataclass(frozen=True)
class RAGConfig:
    credential: str = ""
    model: str = "llama-3.1-8b-instant"
    temperature: float = 0.1
    max_tokens: int = 1024
    top_k: int = 4
    chunk_size: int = 1000
    chunk_overlap: int = 200

    def redacted(self) -> dict[str, Any]:
        """Field mapping safe for logs and API responses."""
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["credential"] = "***" if self.credential else ""
        return out


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_config(cfg: RAGConfig) -> list[str]:
    """Return every violation in ``cfg`` (empty list means valid)."""
    errors: list[str] = []

    if not isinstance(cfg.credential, str) or not cfg.credential.strip():
        errors.append("API credential is required")

    if cfg.model not in SUPPORTED_MODELS:
        errors.append(f"Model must be one of: {', '.join(SUPPORTED_MODELS)}")

    if not _is_number(cfg.temperature) or not 0.0 <= cfg.temperature <= 1.0:
        errors.append("Temperature must be between 0 and 1")

    if not _is_int(cfg.max_tokens) or cfg.max_tokens < 1:
        errors.append("Max tokens must be greater than 0")

    if not _is_int(cfg.top_k) or cfg.top_k < 1:
        errors.append("Top K must be greater than 0")

    size_ok = _is_int(cfg.chunk_size) and cfg.chunk_size >= MIN_CHUNK_SIZE
    if not size_ok:
        errors.append(f"Chunk size must be at least {MIN_CHUNK_SIZE} characters")

    if not _is_int(cfg.chunk_overlap) or cfg.chunk_overlap < 0:
        errors.append("Chunk overlap must be a non-negative integer")
    elif size_ok and cfg.chunk_overlap >= cfg.chunk_size:
        errors.append("Chunk overlap must be smaller than chunk size")

    return errors


def merge_config(base: RAGConfig, updates: Mapping[str, Any]) -> RAGConfig:
    """Merge ``updates`` into ``base`` field by field and validate the result.

    Raises:
        ConfigurationError: with all violations (including unknown keys);
            ``base`` is never modified.
    """
    known = {f.name for f in fields(RAGConfig)}
    unknown = sorted(set(updates) - known)
    errors = [f"Unknown configuration option: {key}" for key in unknown]

    merged = replace(base, **{k: v for k, v in updates.items() if k in known})
    errors.extend(validate_config(merged))
    if errors:
        raise ConfigurationError(errors)
    return merged


def build_config(**overrides: Any) -> RAGConfig:
    """Defaults + ``overrides``, validated as a whole."""
    return merge_config(RAGConfig(), overrides)


def validate_rag_config(updates: Mapping[str, Any]) -> tuple[bool, list[str]]:
    """Check a partial config against the defaults without raising."""
    try:
        build_config(**updates)
    except ConfigurationError as ex:
        return False, ex.errors
    return True, []
