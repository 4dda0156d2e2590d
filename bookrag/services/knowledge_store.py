"""CRUD over one book collection's chunks.

:class:`KnowledgeStore` wraps :class:`IVectorStoreProvider` with the
operations the orchestrator needs, always scoped by a
:class:`CollectionHandle`: an existence check, bulk insert with dimension
validation, delete, a bounded candidate fetch for retrieval, and aggregate
status.  It never deduplicates; idempotency is the orchestrator's job.
"""

from __future__ import annotations

import structlog

from bookrag.interfaces.vector_store_provider import IVectorStoreProvider
from bookrag.models.knowledge import (
    ChunkFilter,
    CollectionHandle,
    ExistenceStatus,
    KnowledgeBaseStatus,
    KnowledgeChunk,
)
from bookrag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CANDIDATE_LIMIT = 50
# Rough words-to-tokens ratio for English prose.
TOKENS_PER_WORD = 1.33


def estimate_tokens(word_count: int) -> int:
    """Estimate embedding tokens from a word count."""
    return round(word_count * TOKENS_PER_WORD)


class KnowledgeStore:
    """Chunk persistence for per-book collections."""

    def __init__(self, vector_store: IVectorStoreProvider) -> None:
        self._vector_store = vector_store

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def exists(
        self,
        handle: CollectionHandle,
        book_id: str,
        file_name: str | None = None,
        owner_id: str | None = None,
    ) -> ExistenceStatus:
        """Report whether chunks exist for ``(book_id, file_name[, owner_id])``."""
        chunk_filter = ChunkFilter(book_id=book_id, file_name=file_name, owner_id=owner_id)
        chunks = await self._vector_store.find(
            handle.name, chunk_filter, limit=None, include_vectors=False
        )
        status = ExistenceStatus(
            exists=bool(chunks),
            count=len(chunks),
            file_names=sorted({c.file_name for c in chunks}),
            total_words=sum(c.word_count for c in chunks),
            collection_name=handle.name,
        )
        logger.debug(
            "existence_checked",
            collection=handle.name,
            book_id=book_id,
            file_name=file_name,
            exists=status.exists,
            count=status.count,
        )
        return status

    async def find_candidates(
        self,
        handle: CollectionHandle,
        book_id: str,
        file_name: str | None = None,
        owner_id: str | None = None,
        public_only: bool = False,
        visible_to: str | None = None,
        limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> list[KnowledgeChunk]:
        """Fetch at most *limit* chunks (with vectors) for ranking."""
        chunk_filter = ChunkFilter(
            book_id=book_id,
            file_name=file_name,
            owner_id=owner_id,
            public_only=public_only,
            visible_to=visible_to,
        )
        return await self._vector_store.find(
            handle.name, chunk_filter, limit=limit, include_vectors=True
        )

    async def status(
        self,
        handle: CollectionHandle,
        book_id: str,
        owner_id: str | None = None,
        model_used: str = "",
        chat_available: bool = False,
    ) -> KnowledgeBaseStatus:
        """Summarize the book's stored chunks."""
        existence = await self.exists(handle, book_id, owner_id=owner_id)
        return KnowledgeBaseStatus(
            book_id=book_id,
            collection_name=handle.name,
            total_embeddings=existence.count,
            unique_files=existence.file_names,
            file_count=len(existence.file_names),
            total_words=existence.total_words,
            tokens_used=estimate_tokens(existence.total_words),
            has_embeddings=existence.exists,
            chat_available=chat_available and existence.exists,
            vector_size=handle.dimension,
            model_used=model_used,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def insert_chunks(self, handle: CollectionHandle, chunks: list[KnowledgeChunk]) -> int:
        """Insert *chunks*; every vector must match ``handle.dimension``.

        Raises
        ------
        StoreError
            If any chunk's vector length differs from the collection
            dimension.  Nothing is written in that case.
        """
        for chunk in chunks:
            if len(chunk.vector) != handle.dimension:
                raise StoreError(
                    message=(
                        f"Chunk {chunk.chunk_index} of {chunk.file_name} has a "
                        f"{len(chunk.vector)}-dim vector; collection {handle.name} "
                        f"requires {handle.dimension}"
                    ),
                    provider_name=self._vector_store.get_provider_name(),
                )
        inserted = await self._vector_store.insert_many(handle.name, chunks)
        logger.info("chunks_inserted", collection=handle.name, count=inserted)
        return inserted

    async def delete_chunks(
        self,
        handle: CollectionHandle,
        book_id: str,
        file_name: str,
        owner_id: str | None = None,
    ) -> int:
        """Delete every chunk of ``(book_id, file_name[, owner_id])``."""
        chunk_filter = ChunkFilter(book_id=book_id, file_name=file_name, owner_id=owner_id)
        deleted = await self._vector_store.delete_many(handle.name, chunk_filter)
        logger.info(
            "chunks_deleted",
            collection=handle.name,
            book_id=book_id,
            file_name=file_name,
            deleted_count=deleted,
        )
        return deleted
