"""Question-time retrieval by cosine similarity.

The retriever fetches a bounded candidate set from one book, embeds the
question once, scores every candidate with :func:`cosine_similarity` and
returns the best ``max_context_chunks``.  Ties keep fetch order because
Python's sort is stable.

Access policy: a caller who is authenticated *and* asks for owner-scoped
retrieval sees only their own chunks; everyone else sees only chunks that
are public (``is_public`` or ``access_level == "public"``).
"""

from __future__ import annotations

import math

import structlog

from bookrag.models.knowledge import (
    CollectionHandle,
    KnowledgeChunk,
    RankedChunk,
    RetrievalFilter,
    RetrievalResult,
)
from bookrag.services.embedding_service import EmbeddingService
from bookrag.services.knowledge_store import DEFAULT_CANDIDATE_LIMIT, KnowledgeStore

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CONTEXT_CHUNKS = 5


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    Defined as 0.0 when either vector is empty, the lengths differ, or
    either norm is zero.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class Retriever:
    """Ranks a book's chunks against a question.

    Parameters
    ----------
    store:
        Source of candidate chunks.
    embedding_service:
        Embeds the question with the lenient single-attempt policy.
    max_context_chunks:
        Number of top-ranked chunks returned.
    candidate_limit:
        Upper bound on chunks fetched and scored per question.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_service: EmbeddingService,
        max_context_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> None:
        self._store = store
        self._embedding_service = embedding_service
        self._max_context_chunks = max_context_chunks
        self._candidate_limit = candidate_limit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def retrieve(
        self,
        handle: CollectionHandle,
        book_id: str,
        question: str,
        retrieval_filter: RetrievalFilter | None = None,
    ) -> RetrievalResult:
        """Return up to ``max_context_chunks`` chunks ranked by similarity.

        An empty candidate set yields an empty result; the question is not
        embedded in that case.
        """
        candidates = await self.fetch_candidates(handle, book_id, retrieval_filter)
        if not candidates:
            return RetrievalResult()
        return await self.rank_candidates(handle, question, candidates)

    async def fetch_candidates(
        self,
        handle: CollectionHandle,
        book_id: str,
        retrieval_filter: RetrievalFilter | None = None,
    ) -> list[KnowledgeChunk]:
        """Fetch at most ``candidate_limit`` chunks the caller may see.

        Anonymous callers see public chunks only; a caller with a ``user_id``
        also sees the chunks they own.

        Raises
        ------
        ValueError
            If ``require_auth`` is set but no ``user_id`` was supplied.
        """
        retrieval_filter = retrieval_filter or RetrievalFilter()
        user_id = retrieval_filter.user_id
        if retrieval_filter.require_auth and user_id is None:
            raise ValueError("require_auth needs a user_id")

        candidates = await self._store.find_candidates(
            handle,
            book_id,
            file_name=retrieval_filter.file_name,
            public_only=user_id is None,
            visible_to=user_id,
            limit=self._candidate_limit,
        )
        if not candidates:
            logger.info("retrieval_no_candidates", collection=handle.name, book_id=book_id)
        return candidates

    async def rank_candidates(
        self,
        handle: CollectionHandle,
        question: str,
        candidates: list[KnowledgeChunk],
    ) -> RetrievalResult:
        """Embed *question* once and rank *candidates* against it."""
        question_vector, degraded = await self._embedding_service.embed_one(
            question, handle.dimension
        )
        ranked = self.rank(question_vector, candidates)

        logger.info(
            "retrieval_complete",
            collection=handle.name,
            candidates=len(candidates),
            returned=len(ranked),
            top_similarity=ranked[0].similarity if ranked else 0.0,
            degraded=degraded,
        )
        return RetrievalResult(
            chunks=ranked,
            candidates_considered=len(candidates),
            degraded=degraded,
        )

    def rank(
        self, question_vector: list[float], candidates: list[KnowledgeChunk]
    ) -> list[RankedChunk]:
        """Score *candidates* against *question_vector* and keep the top ones."""
        scored = [
            RankedChunk(chunk=chunk, similarity=cosine_similarity(question_vector, chunk.vector))
            for chunk in candidates
        ]
        scored.sort(key=lambda rc: rc.similarity, reverse=True)
        return scored[: self._max_context_chunks]
