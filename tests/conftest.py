"""Shared pytest fixtures for the bookrag test suite."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest

from bookrag.interfaces.document_source import IDocumentSource
from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.interfaces.item_record_store import IItemRecordStore
from bookrag.interfaces.llm_provider import ILLMProvider
from bookrag.interfaces.vector_store_provider import IVectorStoreProvider
from bookrag.models.knowledge import (
    AccessLevel,
    ChunkFilter,
    ExtractedDocument,
    ItemEmbeddingStatus,
    KnowledgeChunk,
)
from bookrag.pipeline.orchestrator import KnowledgeBasePipeline
from bookrag.pipeline.progress_tracker import ProgressTracker
from bookrag.services.answer_synthesizer import AnswerSynthesizer
from bookrag.services.chunker import TextChunker
from bookrag.services.collection_registry import CollectionRegistry
from bookrag.services.embedding_service import EmbeddingService
from bookrag.services.knowledge_store import KnowledgeStore
from bookrag.services.retriever import Retriever
from bookrag.utils.errors import ExtractionError

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length unit vector by hashing *text*.

    Same text always produces the same vector, so a question identical to
    a stored chunk has cosine similarity 1.0 with it.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [byte - 127.5 for byte in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self._dim = dim
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append([text])
        return _hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_model_name(self) -> str:
        return "mock-embed-v1"

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockLLMProvider(ILLMProvider):
    """Chat provider returning a canned answer and recording prompts."""

    def __init__(self, answer: str = "The narrator is Ishmael.") -> None:
        self.answer = answer
        self.prompts: list[str] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 256,
    ) -> str:
        self.prompts.append(user_prompt)
        return self.answer

    def get_model_name(self) -> str:
        return "mock-chat-v1"

    def get_provider_name(self) -> str:
        return "mock-llm"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store honouring :class:`ChunkFilter` semantics.

    Collections are dicts of chunk_id -> chunk in insertion order; ``find``
    returns matches in that order, truncated to *limit*.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, KnowledgeChunk]] = {}
        self.dimensions: dict[str, int] = {}
        self.create_calls = 0

    async def list_collections(self) -> list[str]:
        return list(self.collections)

    async def get_collection_dimension(self, name: str) -> int | None:
        return self.dimensions.get(name)

    async def create_collection(self, name: str, dimension: int, metric: str = "cosine") -> None:
        self.create_calls += 1
        self.collections.setdefault(name, {})
        self.dimensions.setdefault(name, dimension)

    async def find(
        self,
        collection_name: str,
        chunk_filter: ChunkFilter,
        limit: int | None = None,
        include_vectors: bool = True,
    ) -> list[KnowledgeChunk]:
        matches = [
            chunk if include_vectors else chunk.model_copy(update={"vector": []})
            for chunk in self.collections.get(collection_name, {}).values()
            if self._matches(chunk, chunk_filter)
        ]
        return matches if limit is None else matches[:limit]

    async def insert_many(self, collection_name: str, chunks: list[KnowledgeChunk]) -> int:
        collection = self.collections.setdefault(collection_name, {})
        for chunk in chunks:
            collection[chunk.chunk_id] = chunk
        return len(chunks)

    async def count(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        return len(await self.find(collection_name, chunk_filter, include_vectors=False))

    async def delete_many(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        collection = self.collections.get(collection_name, {})
        doomed = [cid for cid, c in collection.items() if self._matches(c, chunk_filter)]
        for cid in doomed:
            del collection[cid]
        return len(doomed)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True

    def all_chunks(self) -> list[KnowledgeChunk]:
        return [c for coll in self.collections.values() for c in coll.values()]

    @staticmethod
    def _matches(chunk: KnowledgeChunk, chunk_filter: ChunkFilter) -> bool:
        if chunk.book_id != chunk_filter.book_id:
            return False
        if chunk_filter.file_name is not None and chunk.file_name != chunk_filter.file_name:
            return False
        if chunk_filter.owner_id is not None and chunk.owner_id != chunk_filter.owner_id:
            return False
        if chunk_filter.public_only and not chunk.is_publicly_visible:
            return False
        if chunk_filter.visible_to is not None and not (
            chunk.is_publicly_visible or chunk.owner_id == chunk_filter.visible_to
        ):
            return False
        return True


class MockDocumentSource(IDocumentSource):
    """Document source that treats the byte payload as UTF-8 text."""

    def __init__(self, url_payloads: dict[str, bytes] | None = None) -> None:
        self.url_payloads = url_payloads or {}

    async def fetch(self, url: str) -> bytes:
        if url not in self.url_payloads:
            raise ExtractionError(
                message=f"Download failed for {url}", provider_name=self.get_provider_name()
            )
        return self.url_payloads[url]

    async def extract(self, data: bytes) -> ExtractedDocument:
        text = data.decode("utf-8")
        return ExtractedDocument(text=text, page_count=1, byte_size=len(data))

    def get_provider_name(self) -> str:
        return "mock-document"


class MockItemRecordStore(IItemRecordStore):
    """Dict-backed item record store."""

    def __init__(self) -> None:
        self.records: dict[str, ItemEmbeddingStatus] = {}

    async def mark_embedded(
        self, item_id: str, embedding_count: int, embedded_at: datetime
    ) -> ItemEmbeddingStatus:
        status = ItemEmbeddingStatus(
            item_id=item_id,
            is_embedded=True,
            embedding_count=embedding_count,
            embedded_at=embedded_at,
        )
        self.records[item_id] = status
        return status

    async def mark_not_embedded(self, item_id: str) -> ItemEmbeddingStatus:
        status = ItemEmbeddingStatus(item_id=item_id)
        self.records[item_id] = status
        return status

    async def get_status(self, item_id: str) -> ItemEmbeddingStatus | None:
        return self.records.get(item_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> MockLLMProvider:
    return MockLLMProvider()


@pytest.fixture
def failing_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider whose complete() always raises LLMError."""
    from bookrag.utils.errors import LLMError

    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.get_model_name.return_value = "mock-chat-v1"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(side_effect=LLMError(message="boom", provider_name="mock-llm"))
    return mock


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def mock_document_source() -> MockDocumentSource:
    return MockDocumentSource()


@pytest.fixture
def mock_item_records() -> MockItemRecordStore:
    return MockItemRecordStore()


@pytest.fixture
def make_chunk():
    """Factory for KnowledgeChunk instances with sensible defaults."""

    def _make(
        text: str = "Call me Ishmael.",
        book_id: str = "book-1",
        file_name: str = "moby.pdf",
        owner_id: str = "anonymous",
        chunk_index: int = 0,
        vector: list[float] | None = None,
        is_public: bool = True,
        access_level: AccessLevel = AccessLevel.PUBLIC,
        chunk_id: str | None = None,
    ) -> KnowledgeChunk:
        return KnowledgeChunk(
            chunk_id=chunk_id or f"{book_id}-{file_name}-{owner_id}-{chunk_index}",
            book_id=book_id,
            file_name=file_name,
            owner_id=owner_id,
            text=text,
            vector=vector if vector is not None else _hash_to_vector(text),
            chunk_index=chunk_index,
            word_count=len(text.split()),
            char_count=len(text),
            processed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            is_public=is_public,
            access_level=access_level,
        )

    return _make


@pytest.fixture
def sample_book_text() -> str:
    """Several paragraphs of prose, long enough to produce many chunks."""
    return (
        "Call me Ishmael. Some years ago, never mind how long precisely, having "
        "little or no money in my purse, and nothing particular to interest me on "
        "shore, I thought I would sail about a little and see the watery part of "
        "the world.\n\n"
        "It is a way I have of driving off the spleen and regulating the "
        "circulation. Whenever I find myself growing grim about the mouth, "
        "whenever it is a damp, drizzly November in my soul, then I account it "
        "high time to get to sea as soon as I can.\n\n"
        "There now is your insular city of the Manhattoes, belted round by "
        "wharves as Indian isles by coral reefs. Commerce surrounds it with her "
        "surf. Right and left, the streets take you waterward."
    )


@pytest.fixture
def sample_pdf_bytes(sample_book_text: str) -> bytes:
    """A small two-page PDF generated with PyMuPDF."""
    doc = fitz.open()
    paragraphs = sample_book_text.split("\n\n")
    for body in (paragraphs[0], " ".join(paragraphs[1:])):
        page = doc.new_page()
        page.insert_textbox(fitz.Rect(72, 72, 540, 720), body, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def build_test_pipeline(
    mock_vector_store: MockVectorStore,
    mock_embedding_provider: MockEmbeddingProvider,
    mock_llm_provider: MockLLMProvider,
    mock_document_source: MockDocumentSource,
    mock_item_records: MockItemRecordStore,
):
    """Factory returning a KnowledgeBasePipeline wired to in-memory fakes."""

    def _build(
        llm_provider: ILLMProvider | None = None,
        embedding_provider: IEmbeddingProvider | None = None,
        chunk_size: int = 200,
        overlap: int = 30,
    ) -> KnowledgeBasePipeline:
        embedder = embedding_provider or mock_embedding_provider
        embedding_service = EmbeddingService(
            provider=embedder, batch_delay=0.0, retry_backoff=0.0
        )
        store = KnowledgeStore(vector_store=mock_vector_store)
        return KnowledgeBasePipeline(
            registry=CollectionRegistry(
                vector_store=mock_vector_store,
                embedding_provider=embedder,
            ),
            store=store,
            chunker=TextChunker(chunk_size=chunk_size, overlap=overlap),
            embedding_service=embedding_service,
            retriever=Retriever(store=store, embedding_service=embedding_service),
            synthesizer=AnswerSynthesizer(llm_provider=llm_provider or mock_llm_provider),
            document_source=mock_document_source,
            progress_tracker=ProgressTracker(),
            item_records=mock_item_records,
        )

    return _build
