"""Embedding policy layered over an :class:`IEmbeddingProvider`.

Provider adapters make exactly one API attempt per call.  This service adds
the two policies the pipeline needs:

* **Ingestion** (:meth:`EmbeddingService.embed_batch`) -- strict.  Texts are
  sent in sub-batches with a short pause between them; each sub-batch is
  retried with linearly increasing backoff, and when the retries run out
  the whole operation fails with :class:`EmbeddingError`.  No placeholder
  vector is ever returned, because a stored placeholder can never be
  retrieved yet looks like an ordinary low-relevance chunk.

* **Query** (:meth:`EmbeddingService.embed_one`) -- lenient.  A single
  attempt; on failure a zero vector is returned together with a
  ``degraded`` flag so the caller can still answer (with every similarity
  at 0) and report that retrieval was degraded.

Both policies correct vector length to the collection dimension by
truncating or zero-padding.  That correction keeps the store consistent
but does not make vectors from different models comparable.
"""

from __future__ import annotations

import asyncio

import structlog

from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 100
_DEFAULT_BATCH_DELAY = 0.1
_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_BACKOFF = 1.0


class EmbeddingService:
    """Batching, retry and dimension correction for embeddings.

    Parameters
    ----------
    provider:
        The embedding backend selected by configuration.
    batch_size:
        Texts per provider call.
    batch_delay:
        Seconds to wait between consecutive sub-batches.
    max_retries:
        Attempts per sub-batch before giving up.
    retry_backoff:
        Base backoff in seconds; attempt *n* waits ``retry_backoff * n``.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        batch_delay: float = _DEFAULT_BATCH_DELAY,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_backoff: float = _DEFAULT_RETRY_BACKOFF,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_retries <= 0:
            raise ValueError(f"max_retries must be positive, got {max_retries}")
        self._provider = provider
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    @property
    def model_name(self) -> str:
        return self._provider.get_model_name()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_batch(self, texts: list[str], dimension: int) -> list[list[float]]:
        """Embed *texts* for storage; every vector has length *dimension*.

        Raises
        ------
        EmbeddingError
            If any sub-batch still fails after ``max_retries`` attempts, or
            the provider returns the wrong number of vectors.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        total_batches = (len(texts) + self._batch_size - 1) // self._batch_size

        for batch_number, start in enumerate(range(0, len(texts), self._batch_size), start=1):
            if batch_number > 1 and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

            batch = texts[start : start + self._batch_size]
            batch_vectors = await self._embed_with_retry(batch, batch_number)
            vectors.extend(self._fit_dimension(v, dimension) for v in batch_vectors)

            logger.debug(
                "embedding_batch_complete",
                batch=batch_number,
                total_batches=total_batches,
                batch_size=len(batch),
            )

        logger.info(
            "embedding_complete",
            texts=len(texts),
            batches=total_batches,
            dimension=dimension,
            provider=self._provider.get_provider_name(),
        )
        return vectors

    async def embed_one(self, text: str, dimension: int) -> tuple[list[float], bool]:
        """Embed a query string with a single attempt.

        Returns
        -------
        tuple[list[float], bool]
            The vector and a ``degraded`` flag.  On failure the vector is all
            zeros and ``degraded`` is ``True``.
        """
        try:
            vector = await self._provider.embed_single(text)
        except EmbeddingError as exc:
            logger.warning(
                "query_embedding_fallback",
                error=str(exc),
                provider=self._provider.get_provider_name(),
                dimension=dimension,
            )
            return [0.0] * dimension, True
        return self._fit_dimension(vector, dimension), False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_with_retry(self, batch: list[str], batch_number: int) -> list[list[float]]:
        last_error: EmbeddingError | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                vectors = await self._provider.embed(batch)
            except EmbeddingError as exc:
                last_error = exc
                logger.warning(
                    "embedding_retry",
                    batch=batch_number,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    error=str(exc),
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_backoff * attempt)
                continue

            if len(vectors) != len(batch):
                raise EmbeddingError(
                    message=(
                        f"Provider returned {len(vectors)} vectors for "
                        f"{len(batch)} texts in batch {batch_number}"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            return vectors

        raise EmbeddingError(
            message=(
                f"Failed to generate embeddings for batch {batch_number} "
                f"after {self._max_retries} attempts: {last_error}"
            ),
            provider_name=self._provider.get_provider_name(),
        )

    @staticmethod
    def _fit_dimension(vector: list[float], dimension: int) -> list[float]:
        """Truncate or zero-pad *vector* to *dimension*."""
        if len(vector) == dimension:
            return list(vector)
        logger.warning(
            "embedding_dimension_corrected",
            actual=len(vector),
            expected=dimension,
        )
        if len(vector) > dimension:
            return list(vector[:dimension])
        return list(vector) + [0.0] * (dimension - len(vector))
