"""Google Gemini embedding provider adapter.

Wraps the ``google-genai`` async client to implement
:class:`IEmbeddingProvider`.  Uses ``text-embedding-004`` (768 dims) by
default; ``embedding_model`` overrides it.
"""

from __future__ import annotations

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors

from bookrag.config.settings import Settings
from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-004"
_DEFAULT_DIMENSION = 768

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-004": 768,
    "embedding-001": 768,
    "gemini-embedding-001": 3072,
}


class GeminiEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Gemini embeddings API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.gemini_api_key
        self._client = genai.Client(api_key=self._api_key) if self._api_key else None
        self._model = settings.embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, _DEFAULT_DIMENSION)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts in one request."""
        if not texts:
            return []
        if self._client is None:
            raise EmbeddingError(
                message="GEMINI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        try:
            response = await self._client.aio.models.embed_content(
                model=self._model,
                contents=texts,
            )
        except genai_errors.APIError as exc:
            raise EmbeddingError(
                message=f"Gemini embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingError(
                message=f"Gemini embedding request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        embeddings = response.embeddings or []
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                message=(
                    f"Gemini returned {len(embeddings)} embeddings "
                    f"for {len(texts)} inputs"
                ),
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "gemini_embedding_batch",
            model=self._model,
            batch_size=len(texts),
        )
        return [list(item.values or []) for item in embeddings]

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "gemini_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
