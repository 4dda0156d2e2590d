"""Knowledge-base data models for bookrag.

Defines Pydantic v2 models for stored chunks, collection handles, retrieval
results, and the ingestion / query result envelopes returned by
:class:`~bookrag.pipeline.orchestrator.KnowledgeBasePipeline`.  All models
are frozen so that a value handed to one stage cannot be mutated by another.

Overview:

    1. INGESTION: A PDF is downloaded or received as bytes, its text is
       extracted and split into short overlapping chunks.
    2. EMBEDDING: Each chunk is converted into a vector whose length equals
       the book collection's dimension.
    3. STORAGE: Chunks + vectors are written into a per-book collection
       (one collection per ``book_id``).
    4. RETRIEVAL: A question is embedded and compared against a bounded
       candidate set from that book using cosine similarity.
    5. GENERATION: The best chunks become the context of a short chat prompt.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

ANONYMOUS_OWNER = "anonymous"


class AccessLevel(str, Enum):
    """Visibility of a stored chunk to callers other than its owner."""

    PUBLIC = "public"
    PRIVATE = "private"


class IngestionStage(str, Enum):
    """Ordered stages of a single ingestion request."""

    RECEIVED = "received"
    EXTRACTING = "extracting"
    IDEMPOTENCY_CHECKED = "idempotency_checked"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    DONE = "done"
    FAILED = "failed"


class QueryStage(str, Enum):
    """Ordered stages of a single question-answering request."""

    RECEIVED = "received"
    RETRIEVING = "retrieving"
    RANKING = "ranking"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# KnowledgeChunk: one stored vector plus its provenance.
# ---------------------------------------------------------------------------
class KnowledgeChunk(BaseModel):
    """A chunk of a book document together with its embedding vector.

    ``(book_id, file_name, chunk_index)`` identifies a chunk; the
    orchestrator guarantees it is written at most once per ingestion.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    book_id: str = Field(description="Owning book; the tenant partition key.")
    file_name: str = Field(description="Source document identifier within the book.")
    owner_id: str = Field(
        default=ANONYMOUS_OWNER,
        description='Uploading user, or "anonymous" for unauthenticated uploads.',
    )
    text: str = Field(description="The chunk's textual content.")
    vector: list[float] = Field(
        default_factory=list,
        description="Embedding vector; length equals the collection dimension.",
    )
    chunk_index: int = Field(ge=0, description="0-based position in the document's chunk sequence.")
    word_count: int = Field(default=0, ge=0, description="Whitespace-delimited word count.")
    char_count: int = Field(default=0, ge=0, description="Character count of ``text``.")
    processed_at: datetime = Field(description="UTC timestamp of ingestion.")
    is_public: bool = Field(default=False, description="Whether any caller may retrieve this chunk.")
    access_level: AccessLevel = Field(
        default=AccessLevel.PRIVATE,
        description="Visibility level used by the retrieval access filter.",
    )
    extra_metadata: dict[str, str | int | float | bool] = Field(
        default_factory=dict,
        description="Caller-supplied scalar metadata (item_id, file type, size).",
    )

    @property
    def is_publicly_visible(self) -> bool:
        return self.is_public or self.access_level == AccessLevel.PUBLIC


class CollectionHandle(BaseModel):
    """Immutable reference to one book's collection.

    Returned by :meth:`CollectionRegistry.resolve` and passed explicitly to
    every store and retrieval call of the same request.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Physical collection name in the vector store.")
    book_id: str = Field(description="Book the collection belongs to.")
    dimension: int = Field(gt=0, description="Vector length every chunk must have.")
    metric: str = Field(default="cosine", description="Similarity metric of the collection.")
    created: bool = Field(
        default=False,
        description="True when this resolve call created the collection.",
    )


class ChunkFilter(BaseModel):
    """Store-neutral selection of chunks inside one collection."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    file_name: str | None = None
    owner_id: str | None = None
    # Restrict to chunks flagged is_public or with access_level "public".
    public_only: bool = False
    # Public chunks plus those owned by this user.
    visible_to: str | None = None


class ExistenceStatus(BaseModel):
    """Result of an idempotency / existence check."""

    model_config = ConfigDict(frozen=True)

    exists: bool = False
    count: int = Field(default=0, ge=0)
    file_names: list[str] = Field(default_factory=list)
    total_words: int = Field(default=0, ge=0)
    collection_name: str = ""


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------
class RetrievalFilter(BaseModel):
    """Caller identity and scope for a question.

    An anonymous caller sees public chunks only.  A caller with ``user_id``
    sees public chunks plus their own.  ``require_auth`` rejects requests
    that carry no ``user_id``.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str | None = None
    user_id: str | None = None
    require_auth: bool = False


class RankedChunk(BaseModel):
    """A candidate chunk with its cosine similarity to the question."""

    model_config = ConfigDict(frozen=True)

    chunk: KnowledgeChunk
    similarity: float = Field(description="Cosine similarity in [-1.0, 1.0].")


class RetrievalResult(BaseModel):
    """Top-ranked chunks plus whether the question embedding was degraded."""

    model_config = ConfigDict(frozen=True)

    chunks: list[RankedChunk] = Field(default_factory=list)
    candidates_considered: int = Field(default=0, ge=0)
    # True when the question vector is the zero-vector fallback, in which
    # case every similarity is 0 and the order is candidate order.
    degraded: bool = False


class ChunkDetail(BaseModel):
    """Per-source detail reported alongside an answer."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int
    similarity: float
    file_name: str = ""


class SynthesizedAnswer(BaseModel):
    """Output of :class:`AnswerSynthesizer`."""

    model_config = ConfigDict(frozen=True)

    answer: str
    tokens_used: int = Field(default=0, ge=0)
    method: str
    model_used: str = ""
    chunk_details: list[ChunkDetail] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Document extraction
# ---------------------------------------------------------------------------
class ExtractedDocument(BaseModel):
    """Plain text and page count extracted from a PDF."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(default=0, ge=0)
    byte_size: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Result envelopes
# ---------------------------------------------------------------------------
class IngestionTiming(BaseModel):
    """Milliseconds spent per ingestion stage."""

    model_config = ConfigDict(frozen=True)

    extraction_ms: int = 0
    chunking_ms: int = 0
    embedding_ms: int = 0
    storage_ms: int = 0
    total_ms: int = 0


class IngestionResult(BaseModel):
    """Summary of one ingestion request."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    book_id: str
    file_name: str
    collection_name: str
    chunks_inserted: int = Field(ge=0)
    total_words: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    vector_size: int = Field(default=0, ge=0)
    model_used: str = ""
    already_exists: bool = False
    timing: IngestionTiming = Field(default_factory=IngestionTiming)


class QueryTiming(BaseModel):
    """Milliseconds spent per query stage."""

    model_config = ConfigDict(frozen=True)

    retrieval_ms: int = 0
    synthesis_ms: int = 0
    total_ms: int = 0


class QueryResult(BaseModel):
    """Answer to a question against one book's knowledge base."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    question: str
    answer: str
    confidence: int = Field(default=0, ge=0, le=100)
    sources: int = Field(default=0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    model_used: str = ""
    method: str = ""
    chunk_details: list[ChunkDetail] = Field(default_factory=list)
    degraded_retrieval: bool = False
    timing: QueryTiming = Field(default_factory=QueryTiming)


class KnowledgeBaseStatus(BaseModel):
    """Aggregate view of what one book's knowledge base contains."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    collection_name: str
    total_embeddings: int = Field(default=0, ge=0)
    unique_files: list[str] = Field(default_factory=list)
    file_count: int = Field(default=0, ge=0)
    total_words: int = Field(default=0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    has_embeddings: bool = False
    chat_available: bool = False
    vector_size: int = Field(default=0, ge=0)
    model_used: str = ""


class DeletionResult(BaseModel):
    """Outcome of deleting a document's chunks."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    file_name: str
    collection_name: str
    deleted_count: int = Field(default=0, ge=0)


class ItemEmbeddingStatus(BaseModel):
    """Embedding status mirrored onto the caller's parent item record."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    is_embedded: bool = False
    embedding_count: int = Field(default=0, ge=0)
    embedded_at: datetime | None = None
