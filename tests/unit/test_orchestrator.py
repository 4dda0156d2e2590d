"""Unit tests for the KnowledgeBasePipeline request flows."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from bookrag.models.knowledge import AccessLevel, IngestionStage, QueryStage
from bookrag.pipeline.orchestrator import METHOD_NO_DOCUMENTS, NO_DOCUMENTS_ANSWER
from bookrag.services.answer_synthesizer import (
    FALLBACK_ANSWER,
    METHOD_ERROR_FALLBACK,
    METHOD_RAG,
)
from bookrag.utils.errors import EmbeddingError, ExtractionError
from tests.conftest import EMBEDDING_DIM, MockEmbeddingProvider

_COLLECTION = "book_knowledge_base_book_book_1"


class _BrokenEmbeddingProvider(MockEmbeddingProvider):
    """Embeds queries but fails every batch request."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError(message="provider down", provider_name="mock-embedding")


class _BrokenQueryEmbeddingProvider(MockEmbeddingProvider):
    """Embeds batches but fails single-text requests."""

    async def embed_single(self, text: str) -> list[float]:
        raise EmbeddingError(message="provider down", provider_name="mock-embedding")


def _stages(pipeline) -> list:
    recorded: list = []
    pipeline.progress_tracker.register_global_listener(
        lambda task_id, stage, message: recorded.append(stage)
    )
    return recorded


# ======================================================================
# Ingestion
# ======================================================================


class TestIngest:
    @pytest.mark.asyncio
    async def test_ingest_stores_chunks(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        result = await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        stored = mock_vector_store.all_chunks()
        assert result.already_exists is False
        assert result.chunks_inserted == len(stored) > 1
        assert result.collection_name == _COLLECTION
        assert result.vector_size == EMBEDDING_DIM
        assert result.model_used == "mock-embed-v1"
        assert result.total_words == sum(c.word_count for c in stored)
        assert result.tokens_used > 0
        assert sorted(c.chunk_index for c in stored) == list(range(len(stored)))
        assert len({c.chunk_id for c in stored}) == len(stored)

    @pytest.mark.asyncio
    async def test_anonymous_upload_is_public(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        await build_test_pipeline().ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        for chunk in mock_vector_store.all_chunks():
            assert chunk.owner_id == "anonymous"
            assert chunk.is_public is True
            assert chunk.access_level == AccessLevel.PUBLIC

    @pytest.mark.asyncio
    async def test_owned_upload_is_private_by_default(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        await build_test_pipeline().ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), owner_id="alice"
        )
        for chunk in mock_vector_store.all_chunks():
            assert chunk.owner_id == "alice"
            assert chunk.is_public is False
            assert chunk.access_level == AccessLevel.PRIVATE

    @pytest.mark.asyncio
    async def test_metadata_copied_to_every_chunk(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        await build_test_pipeline().ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), metadata={"edition": "1851"}
        )
        assert all(
            c.extra_metadata == {"edition": "1851"} for c in mock_vector_store.all_chunks()
        )

    @pytest.mark.asyncio
    async def test_ingest_url_fetches_first(
        self, build_test_pipeline, mock_document_source, mock_vector_store, sample_book_text
    ) -> None:
        mock_document_source.url_payloads["https://files.example/moby.pdf"] = (
            sample_book_text.encode()
        )
        result = await build_test_pipeline().ingest_url(
            "book-1", "moby.pdf", "https://files.example/moby.pdf"
        )
        assert result.chunks_inserted == len(mock_vector_store.all_chunks())

    @pytest.mark.asyncio
    async def test_stage_sequence(self, build_test_pipeline, sample_book_text) -> None:
        pipeline = build_test_pipeline()
        stages = _stages(pipeline)
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        assert stages == [
            IngestionStage.RECEIVED,
            IngestionStage.EXTRACTING,
            IngestionStage.IDEMPOTENCY_CHECKED,
            IngestionStage.CHUNKING,
            IngestionStage.EMBEDDING,
            IngestionStage.STORING,
            IngestionStage.DONE,
        ]

    @pytest.mark.asyncio
    async def test_missing_identifiers_rejected(self, build_test_pipeline) -> None:
        pipeline = build_test_pipeline()
        with pytest.raises(ValueError):
            await pipeline.ingest_bytes("", "moby.pdf", b"text")
        with pytest.raises(ValueError):
            await pipeline.ingest_bytes("book-1", "", b"text")


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_ingest_returns_existing(
        self, build_test_pipeline, mock_vector_store, mock_embedding_provider, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        first = await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        calls_after_first = len(mock_embedding_provider.calls)

        second = await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        assert second.already_exists is True
        assert second.chunks_inserted == first.chunks_inserted
        assert second.total_words == first.total_words
        assert len(mock_vector_store.all_chunks()) == first.chunks_inserted
        assert len(mock_embedding_provider.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_force_replaces_chunks(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        old_ids = {c.chunk_id for c in mock_vector_store.all_chunks()}

        result = await pipeline.ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), force=True
        )

        new_ids = {c.chunk_id for c in mock_vector_store.all_chunks()}
        assert result.already_exists is False
        assert len(new_ids) == result.chunks_inserted
        assert old_ids.isdisjoint(new_ids)

    @pytest.mark.asyncio
    async def test_different_owners_do_not_collide(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode(), owner_id="a")
        result = await pipeline.ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), owner_id="b"
        )
        assert result.already_exists is False
        assert {c.owner_id for c in mock_vector_store.all_chunks()} == {"a", "b"}


class TestItemRecords:
    @pytest.mark.asyncio
    async def test_item_marked_embedded(
        self, build_test_pipeline, mock_item_records, sample_book_text
    ) -> None:
        result = await build_test_pipeline().ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), item_id="item-7"
        )
        status = mock_item_records.records["item-7"]
        assert status.is_embedded is True
        assert status.embedding_count == result.chunks_inserted

    @pytest.mark.asyncio
    async def test_delete_resets_item(
        self, build_test_pipeline, mock_item_records, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), item_id="item-7"
        )
        await pipeline.delete("book-1", "moby.pdf", item_id="item-7")
        assert mock_item_records.records["item-7"].is_embedded is False


class TestIngestFailure:
    @pytest.mark.asyncio
    async def test_embedding_failure_writes_nothing(
        self, build_test_pipeline, mock_vector_store, mock_item_records, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline(embedding_provider=_BrokenEmbeddingProvider())
        stages = _stages(pipeline)

        with pytest.raises(EmbeddingError):
            await pipeline.ingest_bytes(
                "book-1", "moby.pdf", sample_book_text.encode(), item_id="item-1"
            )

        assert mock_vector_store.all_chunks() == []
        assert "item-1" not in mock_item_records.records
        assert stages[-1] == IngestionStage.FAILED

    @pytest.mark.asyncio
    async def test_failed_force_reembed_keeps_existing_chunks(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        first = await build_test_pipeline().ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode()
        )
        original_ids = {c.chunk_id for c in mock_vector_store.all_chunks()}

        broken = build_test_pipeline(embedding_provider=_BrokenEmbeddingProvider())
        stages = _stages(broken)
        with pytest.raises(EmbeddingError):
            await broken.ingest_bytes(
                "book-1", "moby.pdf", sample_book_text.encode(), force=True
            )

        remaining = mock_vector_store.all_chunks()
        assert len(remaining) == first.chunks_inserted
        assert {c.chunk_id for c in remaining} == original_ids
        assert stages[-1] == IngestionStage.FAILED

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, build_test_pipeline) -> None:
        pipeline = build_test_pipeline()
        stages = _stages(pipeline)

        with pytest.raises(ExtractionError, match="Download failed"):
            await pipeline.ingest_url("book-1", "x.pdf", "https://missing.example")

        assert stages[-1] == IngestionStage.FAILED


# ======================================================================
# Query
# ======================================================================


class TestAsk:
    @pytest.mark.asyncio
    async def test_empty_book_returns_no_documents(
        self, build_test_pipeline, mock_llm_provider
    ) -> None:
        result = await build_test_pipeline().ask("book-empty", "Who is the narrator?")

        assert result.answer == NO_DOCUMENTS_ANSWER
        assert result.method == METHOD_NO_DOCUMENTS
        assert result.confidence == 0
        assert result.sources == 0
        assert mock_llm_provider.prompts == []

    @pytest.mark.asyncio
    async def test_answer_with_sources(
        self, build_test_pipeline, mock_llm_provider, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        result = await pipeline.ask("book-1", "Who is the narrator?")

        assert result.answer == "The narrator is Ishmael."
        assert result.method == METHOD_RAG
        assert 1 <= result.sources <= 5
        assert result.sources == len(result.chunk_details)
        assert 75 <= result.confidence <= 100
        assert result.model_used == "mock-chat-v1"
        assert result.degraded_retrieval is False
        assert "Who is the narrator?" in mock_llm_provider.prompts[0]

    @pytest.mark.asyncio
    async def test_chunk_details_sorted_by_similarity(
        self, build_test_pipeline, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        result = await pipeline.ask("book-1", "Who is the narrator?")

        similarities = [d.similarity for d in result.chunk_details]
        assert similarities == sorted(similarities, reverse=True)

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(
        self, build_test_pipeline, failing_llm_provider, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline(llm_provider=failing_llm_provider)
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        result = await pipeline.ask("book-1", "Who is the narrator?")

        assert result.answer == FALLBACK_ANSWER
        assert result.method == METHOD_ERROR_FALLBACK
        assert result.tokens_used == 0
        assert result.sources > 0

    @pytest.mark.asyncio
    async def test_query_embedding_failure_is_degraded(
        self, build_test_pipeline, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline(embedding_provider=_BrokenQueryEmbeddingProvider())
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        result = await pipeline.ask("book-1", "Who is the narrator?")

        assert result.degraded_retrieval is True
        assert all(d.similarity == 0.0 for d in result.chunk_details)
        # Floor applies whenever context was used.
        assert result.confidence == 75

    @pytest.mark.asyncio
    async def test_query_stage_sequence(self, build_test_pipeline, sample_book_text) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        stages = _stages(pipeline)

        await pipeline.ask("book-1", "Who is the narrator?")

        assert stages == [
            QueryStage.RECEIVED,
            QueryStage.RETRIEVING,
            QueryStage.RANKING,
            QueryStage.SYNTHESIZING,
            QueryStage.DONE,
        ]

    @pytest.mark.asyncio
    async def test_private_chunks_visible_to_owner_only(
        self, build_test_pipeline, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes(
            "book-1", "moby.pdf", sample_book_text.encode(), owner_id="alice"
        )

        anonymous = await pipeline.ask("book-1", "Who is the narrator?")
        stranger = await pipeline.ask("book-1", "Who is the narrator?", user_id="bob")
        owner = await pipeline.ask("book-1", "Who is the narrator?", user_id="alice")
        owner_auth = await pipeline.ask(
            "book-1", "Who is the narrator?", user_id="alice", require_auth=True
        )

        assert anonymous.method == METHOD_NO_DOCUMENTS
        assert stranger.method == METHOD_NO_DOCUMENTS
        assert owner.method == METHOD_RAG
        assert owner.sources > 0
        assert owner_auth.method == METHOD_RAG

    @pytest.mark.asyncio
    async def test_require_auth_without_user_rejected(self, build_test_pipeline) -> None:
        pipeline = build_test_pipeline()
        with pytest.raises(ValueError, match="user_id"):
            await pipeline.ask("book-1", "Who is the narrator?", require_auth=True)

    @pytest.mark.asyncio
    async def test_file_filter(self, build_test_pipeline, sample_book_text) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        await pipeline.ingest_bytes("book-1", "other.pdf", sample_book_text.encode())

        result = await pipeline.ask("book-1", "Who is the narrator?", file_name="other.pdf")

        assert {d.file_name for d in result.chunk_details} == {"other.pdf"}

    @pytest.mark.asyncio
    async def test_validation(self, build_test_pipeline) -> None:
        pipeline = build_test_pipeline()
        with pytest.raises(ValueError):
            await pipeline.ask("", "question")
        with pytest.raises(ValueError):
            await pipeline.ask("book-1", "   ")

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_failed(self, build_test_pipeline) -> None:
        pipeline = build_test_pipeline()
        pipeline._retriever.fetch_candidates = MagicMock(side_effect=RuntimeError("boom"))
        stages = _stages(pipeline)

        with pytest.raises(RuntimeError):
            await pipeline.ask("book-1", "question")
        assert stages[-1] == QueryStage.FAILED


# ======================================================================
# Maintenance
# ======================================================================


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_check_and_status(self, build_test_pipeline, sample_book_text) -> None:
        pipeline = build_test_pipeline()
        assert (await pipeline.check("book-1")).exists is False

        ingested = await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())

        check = await pipeline.check("book-1", file_name="moby.pdf")
        assert check.exists is True
        assert check.count == ingested.chunks_inserted

        status = await pipeline.status("book-1")
        assert status.has_embeddings is True
        assert status.unique_files == ["moby.pdf"]
        assert status.file_count == 1
        assert status.total_embeddings == ingested.chunks_inserted
        assert status.chat_available is True
        assert status.vector_size == EMBEDDING_DIM

    @pytest.mark.asyncio
    async def test_status_of_empty_book(self, build_test_pipeline) -> None:
        status = await build_test_pipeline().status("book-empty")
        assert status.has_embeddings is False
        assert status.chat_available is False

    @pytest.mark.asyncio
    async def test_delete_only_target_file(
        self, build_test_pipeline, mock_vector_store, sample_book_text
    ) -> None:
        pipeline = build_test_pipeline()
        await pipeline.ingest_bytes("book-1", "moby.pdf", sample_book_text.encode())
        kept = await pipeline.ingest_bytes("book-1", "keep.pdf", sample_book_text.encode())

        result = await pipeline.delete("book-1", "moby.pdf")

        assert result.deleted_count > 0
        assert result.collection_name == _COLLECTION
        remaining = mock_vector_store.all_chunks()
        assert len(remaining) == kept.chunks_inserted
        assert {c.file_name for c in remaining} == {"keep.pdf"}

    @pytest.mark.asyncio
    async def test_delete_validation(self, build_test_pipeline) -> None:
        with pytest.raises(ValueError):
            await build_test_pipeline().delete("book-1", "")
