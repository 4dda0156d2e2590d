"""Central orchestrator for per-book ingestion and question answering.

Composes the document source, text chunker, embedding service, collection
registry, knowledge store, retriever and answer synthesizer into two
request flows plus a few maintenance operations.

Ingestion::

    received → extracting → idempotency_checked → chunking → embedding → storing → done
                                               ╰─ (already embedded, no force) → done

Query::

    received → retrieving → ranking → synthesizing → done
                          ╰─ (no candidates) → done

Any stage may end in ``failed``; the exception is re-raised to the caller
after the transition is recorded.

Concurrency: the existence check, optional delete, embedding and insert of
one ``(book_id, file_name, owner_id)`` run under a per-key lock, so two
concurrent first-time ingestions of the same file in this process store
exactly one set of chunks.  Different files proceed in parallel.  Every
request resolves its own :class:`CollectionHandle` and passes it down
explicitly; the pipeline holds no per-request state.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from bookrag.models.knowledge import (
    ANONYMOUS_OWNER,
    AccessLevel,
    DeletionResult,
    ExistenceStatus,
    IngestionResult,
    IngestionStage,
    IngestionTiming,
    KnowledgeBaseStatus,
    KnowledgeChunk,
    QueryResult,
    QueryStage,
    QueryTiming,
    RetrievalFilter,
)
from bookrag.pipeline.progress_tracker import ProgressTracker
from bookrag.services.knowledge_store import estimate_tokens
from bookrag.utils.concurrency import KeyedLock
from bookrag.utils.confidence import DEFAULT_CONFIDENCE_FLOOR, answer_confidence
from bookrag.utils.logging import get_logger
from bookrag.utils.text_normalizer import count_words

if TYPE_CHECKING:
    from bookrag.interfaces.document_source import IDocumentSource
    from bookrag.interfaces.item_record_store import IItemRecordStore
    from bookrag.services.answer_synthesizer import AnswerSynthesizer
    from bookrag.services.chunker import TextChunker
    from bookrag.services.collection_registry import CollectionRegistry
    from bookrag.services.embedding_service import EmbeddingService
    from bookrag.services.knowledge_store import KnowledgeStore
    from bookrag.services.retriever import Retriever

NO_DOCUMENTS_ANSWER = "No relevant documents found in this book's knowledge base."
METHOD_NO_DOCUMENTS = "no-documents"


class KnowledgeBasePipeline:
    """Ingests PDFs into per-book collections and answers questions on them.

    All collaborators are injected at construction time; see
    :func:`bookrag.main.build_pipeline` for the production wiring.
    ``item_records`` is optional: when present and an ``item_id`` is
    supplied, the parent item's embedding status is updated after
    ingestion and deletion.
    """

    def __init__(
        self,
        registry: CollectionRegistry,
        store: KnowledgeStore,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        document_source: IDocumentSource,
        progress_tracker: ProgressTracker | None = None,
        item_records: IItemRecordStore | None = None,
        confidence_floor: int = DEFAULT_CONFIDENCE_FLOOR,
    ) -> None:
        self._registry = registry
        self._store = store
        self._chunker = chunker
        self._embedding_service = embedding_service
        self._retriever = retriever
        self._synthesizer = synthesizer
        self._document_source = document_source
        self._tracker = progress_tracker or ProgressTracker()
        self._item_records = item_records
        self._confidence_floor = confidence_floor
        self._file_locks = KeyedLock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def progress_tracker(self) -> ProgressTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_url(
        self,
        book_id: str,
        file_name: str,
        url: str,
        owner_id: str | None = None,
        is_public: bool | None = None,
        access_level: AccessLevel | None = None,
        force: bool = False,
        item_id: str | None = None,
        metadata: dict[str, str | int | float | bool] | None = None,
    ) -> IngestionResult:
        """Download *url* and ingest it; see :meth:`ingest_bytes`."""
        return await self._ingest(
            book_id,
            file_name,
            data=None,
            url=url,
            owner_id=owner_id,
            is_public=is_public,
            access_level=access_level,
            force=force,
            item_id=item_id,
            metadata=metadata,
        )

    async def ingest_bytes(
        self,
        book_id: str,
        file_name: str,
        data: bytes,
        owner_id: str | None = None,
        is_public: bool | None = None,
        access_level: AccessLevel | None = None,
        force: bool = False,
        item_id: str | None = None,
        metadata: dict[str, str | int | float | bool] | None = None,
    ) -> IngestionResult:
        """Ingest one PDF into *book_id*'s knowledge base.

        Parameters
        ----------
        book_id, file_name:
            Identify the document; re-ingesting the same pair (for the same
            owner) without *force* returns the existing summary.
        data:
            Raw PDF bytes.
        owner_id:
            Uploading user; ``None`` stores the chunks as ``"anonymous"``.
        is_public, access_level:
            Visibility; default is public for anonymous uploads and private
            for owned ones.
        force:
            Re-embed and replace any existing chunks for the document.  The
            old chunks are deleted only once the new vectors are ready.
        item_id:
            Parent item record to mark as embedded.
        metadata:
            Extra scalar metadata stored on every chunk.

        Raises
        ------
        ExtractionError, EmptyContentError, EmbeddingError, StoreError
            Nothing is written when any of these is raised before storing.
        """
        return await self._ingest(
            book_id,
            file_name,
            data=data,
            url=None,
            owner_id=owner_id,
            is_public=is_public,
            access_level=access_level,
            force=force,
            item_id=item_id,
            metadata=metadata,
        )

    async def _ingest(
        self,
        book_id: str,
        file_name: str,
        *,
        data: bytes | None,
        url: str | None,
        owner_id: str | None,
        is_public: bool | None,
        access_level: AccessLevel | None,
        force: bool,
        item_id: str | None,
        metadata: dict[str, str | int | float | bool] | None,
    ) -> IngestionResult:
        if not book_id or not file_name:
            raise ValueError("book_id and file_name are required for ingestion")

        task_id = str(uuid.uuid4())
        owner = owner_id or ANONYMOUS_OWNER
        public = is_public if is_public is not None else owner_id is None
        level = access_level or (AccessLevel.PUBLIC if public else AccessLevel.PRIVATE)

        with structlog.contextvars.bound_contextvars(
            task_id=task_id, book_id=book_id, file_name=file_name
        ):
            await self._tracker.advance(task_id, IngestionStage.RECEIVED)
            try:
                await self._tracker.advance(task_id, IngestionStage.EXTRACTING)
                if url is not None:
                    data = await self._document_source.fetch(url)
                document = await self._document_source.extract(data or b"")
                handle = await self._registry.resolve(book_id)

                async with self._file_locks.hold((book_id, file_name, owner)):
                    existing = await self._store.exists(
                        handle, book_id, file_name=file_name, owner_id=owner
                    )
                    await self._tracker.advance(
                        task_id,
                        IngestionStage.IDEMPOTENCY_CHECKED,
                        f"{existing.count} existing chunks",
                    )

                    if existing.exists and not force:
                        await self._tracker.advance(task_id, IngestionStage.DONE, "already embedded")
                        await self._report_embedded(item_id, existing.count)
                        return IngestionResult(
                            task_id=task_id,
                            book_id=book_id,
                            file_name=file_name,
                            collection_name=handle.name,
                            chunks_inserted=existing.count,
                            total_words=existing.total_words,
                            total_pages=document.page_count,
                            tokens_used=estimate_tokens(existing.total_words),
                            vector_size=handle.dimension,
                            model_used=self._embedding_service.model_name,
                            already_exists=True,
                            timing=self._ingestion_timing(task_id),
                        )

                    await self._tracker.advance(task_id, IngestionStage.CHUNKING)
                    texts = self._chunker.chunk(document.text)

                    await self._tracker.advance(
                        task_id, IngestionStage.EMBEDDING, f"{len(texts)} chunks"
                    )
                    vectors = await self._embedding_service.embed_batch(texts, handle.dimension)

                    await self._tracker.advance(task_id, IngestionStage.STORING)
                    processed_at = datetime.now(timezone.utc)
                    chunks = [
                        KnowledgeChunk(
                            chunk_id=str(uuid.uuid4()),
                            book_id=book_id,
                            file_name=file_name,
                            owner_id=owner,
                            text=text,
                            vector=vector,
                            chunk_index=index,
                            word_count=count_words(text),
                            char_count=len(text),
                            processed_at=processed_at,
                            is_public=public,
                            access_level=level,
                            extra_metadata=dict(metadata or {}),
                        )
                        for index, (text, vector) in enumerate(zip(texts, vectors, strict=True))
                    ]
                    # Old chunks survive until the replacement vectors exist.
                    if existing.exists:
                        deleted = await self._store.delete_chunks(
                            handle, book_id, file_name, owner_id=owner
                        )
                        self._logger.info("force_reembed_deleted", deleted_count=deleted)
                    inserted = await self._store.insert_chunks(handle, chunks)

                await self._tracker.advance(task_id, IngestionStage.DONE, f"{inserted} chunks")
                await self._report_embedded(item_id, inserted)
            except Exception as exc:
                await self._tracker.advance(task_id, IngestionStage.FAILED, str(exc))
                self._tracker.finish(task_id)
                raise

            total_words = sum(c.word_count for c in chunks)
            result = IngestionResult(
                task_id=task_id,
                book_id=book_id,
                file_name=file_name,
                collection_name=handle.name,
                chunks_inserted=inserted,
                total_words=total_words,
                total_pages=document.page_count,
                tokens_used=estimate_tokens(total_words),
                vector_size=handle.dimension,
                model_used=self._embedding_service.model_name,
                already_exists=False,
                timing=self._ingestion_timing(task_id),
            )
            self._logger.info(
                "ingestion_complete",
                chunks_inserted=inserted,
                total_words=total_words,
                total_ms=result.timing.total_ms,
            )
            return result

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def ask(
        self,
        book_id: str,
        question: str,
        file_name: str | None = None,
        user_id: str | None = None,
        require_auth: bool = False,
    ) -> QueryResult:
        """Answer *question* from *book_id*'s knowledge base.

        A book without visible chunks returns :data:`NO_DOCUMENTS_ANSWER`
        with ``confidence=0`` and ``sources=0`` rather than raising.

        Anonymous callers see public chunks; a ``user_id`` adds that user's
        own chunks.  ``require_auth`` without a ``user_id`` is a ``ValueError``.
        """
        if not book_id:
            raise ValueError("book_id is required to ask a question")
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        if require_auth and not user_id:
            raise ValueError("require_auth needs a user_id")

        task_id = str(uuid.uuid4())
        retrieval_filter = RetrievalFilter(
            file_name=file_name, user_id=user_id, require_auth=require_auth
        )

        with structlog.contextvars.bound_contextvars(task_id=task_id, book_id=book_id):
            await self._tracker.advance(task_id, QueryStage.RECEIVED)
            try:
                await self._tracker.advance(task_id, QueryStage.RETRIEVING)
                handle = await self._registry.resolve(book_id)
                candidates = await self._retriever.fetch_candidates(
                    handle, book_id, retrieval_filter
                )

                if not candidates:
                    await self._tracker.advance(task_id, QueryStage.DONE, "no candidates")
                    return QueryResult(
                        book_id=book_id,
                        question=question,
                        answer=NO_DOCUMENTS_ANSWER,
                        confidence=0,
                        sources=0,
                        tokens_used=0,
                        model_used=self._synthesizer.model_name,
                        method=METHOD_NO_DOCUMENTS,
                        timing=self._query_timing(task_id),
                    )

                await self._tracker.advance(
                    task_id, QueryStage.RANKING, f"{len(candidates)} candidates"
                )
                retrieval = await self._retriever.rank_candidates(handle, question, candidates)

                await self._tracker.advance(task_id, QueryStage.SYNTHESIZING)
                synthesized = await self._synthesizer.synthesize(question, retrieval.chunks)

                await self._tracker.advance(task_id, QueryStage.DONE, synthesized.method)
            except Exception as exc:
                await self._tracker.advance(task_id, QueryStage.FAILED, str(exc))
                self._tracker.finish(task_id)
                raise

            confidence = answer_confidence(
                [rc.similarity for rc in retrieval.chunks],
                floor=self._confidence_floor,
            )
            result = QueryResult(
                book_id=book_id,
                question=question,
                answer=synthesized.answer,
                confidence=confidence,
                sources=len(synthesized.chunk_details),
                tokens_used=synthesized.tokens_used,
                model_used=synthesized.model_used,
                method=synthesized.method,
                chunk_details=synthesized.chunk_details,
                degraded_retrieval=retrieval.degraded,
                timing=self._query_timing(task_id),
            )
            self._logger.info(
                "query_complete",
                sources=result.sources,
                confidence=confidence,
                method=result.method,
                total_ms=result.timing.total_ms,
            )
            return result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def check(
        self,
        book_id: str,
        file_name: str | None = None,
        owner_id: str | None = None,
    ) -> ExistenceStatus:
        """Report whether a book (or one of its files) already has chunks."""
        handle = await self._registry.resolve(book_id)
        return await self._store.exists(handle, book_id, file_name=file_name, owner_id=owner_id)

    async def status(self, book_id: str, owner_id: str | None = None) -> KnowledgeBaseStatus:
        """Summarize a book's knowledge base."""
        handle = await self._registry.resolve(book_id)
        return await self._store.status(
            handle,
            book_id,
            owner_id=owner_id,
            model_used=self._embedding_service.model_name,
            chat_available=self._synthesizer.is_available(),
        )

    async def delete(
        self,
        book_id: str,
        file_name: str,
        owner_id: str | None = None,
        item_id: str | None = None,
    ) -> DeletionResult:
        """Delete a document's chunks and reset its item record."""
        if not book_id or not file_name:
            raise ValueError("book_id and file_name are required for deletion")

        handle = await self._registry.resolve(book_id)
        async with self._file_locks.hold((book_id, file_name, owner_id or ANONYMOUS_OWNER)):
            deleted = await self._store.delete_chunks(
                handle, book_id, file_name, owner_id=owner_id
            )

        if item_id and self._item_records is not None:
            await self._item_records.mark_not_embedded(item_id)

        return DeletionResult(
            book_id=book_id,
            file_name=file_name,
            collection_name=handle.name,
            deleted_count=deleted,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _report_embedded(self, item_id: str | None, count: int) -> None:
        if not item_id or self._item_records is None:
            return
        await self._item_records.mark_embedded(
            item_id,
            embedding_count=count,
            embedded_at=datetime.now(timezone.utc),
        )

    def _ingestion_timing(self, task_id: str) -> IngestionTiming:
        timing = IngestionTiming(
            extraction_ms=self._tracker.duration_ms(task_id, IngestionStage.EXTRACTING),
            chunking_ms=self._tracker.duration_ms(task_id, IngestionStage.CHUNKING),
            embedding_ms=self._tracker.duration_ms(task_id, IngestionStage.EMBEDDING),
            storage_ms=self._tracker.duration_ms(task_id, IngestionStage.STORING),
            total_ms=self._tracker.total_ms(task_id),
        )
        self._tracker.finish(task_id)
        return timing

    def _query_timing(self, task_id: str) -> QueryTiming:
        timing = QueryTiming(
            retrieval_ms=self._tracker.duration_ms(task_id, QueryStage.RETRIEVING)
            + self._tracker.duration_ms(task_id, QueryStage.RANKING),
            synthesis_ms=self._tracker.duration_ms(task_id, QueryStage.SYNTHESIZING),
            total_ms=self._tracker.total_ms(task_id),
        )
        self._tracker.finish(task_id)
        return timing
