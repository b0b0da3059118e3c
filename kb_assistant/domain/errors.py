"""Domain errors (typed).

Why: Unified error family for the Application layer, without Infra leaks.
Adapters translate third-party exceptions into these at the boundary.
"""

from collections.abc import Sequence


class DomainError(Exception):
    """Base class for domain-specific errors."""


class ValidationError(DomainError):
    """Invalid input/domain state."""


class EmptyInputError(ValidationError):
    """Text to be chunked or embedded is empty or whitespace only."""


class ConfigurationError(DomainError):
    """One or more configuration fields are invalid.

    Carries every violation found, never just the first one.
    """

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("Configuration errors: " + ", ".join(self.errors))


class DocumentError(DomainError):
    """Document loading/parsing failed."""


class UnsupportedTypeError(DocumentError):
    """Declared MIME type is not one of the supported document types."""


class ExtractionError(DocumentError):
    """Text could not be extracted from an otherwise supported document."""


class EmbeddingError(DomainError):
    """Embedding failed for one or more chunks.

    ``failed_chunk_ids`` names the chunks that were not inserted; chunks
    embedded successfully in the same batch remain committed.
    """

    def __init__(self, message: str, failed_chunk_ids: Sequence[str] = ()) -> None:
        self.failed_chunk_ids = list(failed_chunk_ids)
        super().__init__(message)


class RetrievalError(DomainError):
    """Generic retrieval failure (after infra errors were mapped)."""


class GenerationError(DomainError):
    """Generation backend failed or is misconfigured."""
