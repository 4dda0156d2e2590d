"""Custom exception hierarchy for bookrag.

All application exceptions inherit from :class:`BookRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "gemini") caused the failure.

The hierarchy is organized by pipeline stage:

    BookRAGError  (base -- catch-all for any bookrag error)
    +-- ExtractionError          (download / PDF parse failure)
    +-- EmptyContentError        (document yielded no usable text)
    +-- EmbeddingError           (embedding API failure, retries exhausted)
    +-- StoreError               (vector store create / insert / delete)
    +-- LLMError                 (chat completion failure)
    +-- ConfigurationError       (unknown provider / missing credentials)

Ingestion treats every error except :class:`LLMError` as fatal.  The
answer synthesizer absorbs :class:`LLMError` and returns a fallback
answer instead.
"""


class BookRAGError(Exception):
    """Base exception for all bookrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai_embedding] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(BookRAGError):
    """Raised when a document cannot be downloaded or parsed."""

    def __init__(
        self,
        message: str = "Document extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyContentError(BookRAGError):
    """Raised when a document parses cleanly but contains no usable text."""

    def __init__(
        self,
        message: str = "Document contains no extractable text",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(BookRAGError):
    """Raised when embedding generation fails after all retries."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(BookRAGError):
    """Raised when a vector store operation fails or would break an invariant."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Query errors
# ---------------------------------------------------------------------------

class LLMError(BookRAGError):
    """Raised when a chat completion call fails or returns nothing usable."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Startup errors
# ---------------------------------------------------------------------------

class ConfigurationError(BookRAGError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
