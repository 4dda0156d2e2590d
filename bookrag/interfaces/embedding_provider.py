"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap Google Gemini ``text-embedding-004`` or OpenAI
``text-embedding-3-small`` (and OpenAI-compatible endpoints).  The provider is chosen by ``Settings.embedding_provider`` so
callers never depend on a specific SDK.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   GeminiEmbeddingProvider  -- text-embedding-004 via google-genai (default)
#   OpenAIEmbeddingProvider  -- text-embedding-3-small (requires API key)
# Located in: bookrag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the knowledge base.

    Retry, batching delay and dimension correction are layered on top by
    :class:`~bookrag.services.embedding_service.EmbeddingService`; adapters
    make a single attempt per call.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        bookrag.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            The embedding vector.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the model's embedding vectors.

        Used as the dimension of newly created collections.  Example
        values: ``768`` (``text-embedding-004``), ``1536``
        (``text-embedding-3-small``).
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the embedding model identifier, e.g. ``"text-embedding-004"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable.

        Implementations should verify that credentials (if any) are present
        without generating an actual embedding.
        """
