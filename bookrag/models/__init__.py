"""bookrag domain models; re-exports all public model classes.

Other parts of the codebase import from ``bookrag.models`` rather than
from the individual module files.
"""

from __future__ import annotations

from bookrag.models.knowledge import (
    ANONYMOUS_OWNER,
    AccessLevel,
    ChunkDetail,
    ChunkFilter,
    CollectionHandle,
    DeletionResult,
    ExistenceStatus,
    ExtractedDocument,
    IngestionResult,
    IngestionStage,
    IngestionTiming,
    ItemEmbeddingStatus,
    KnowledgeBaseStatus,
    KnowledgeChunk,
    QueryResult,
    QueryStage,
    QueryTiming,
    RankedChunk,
    RetrievalFilter,
    RetrievalResult,
    SynthesizedAnswer,
)

__all__ = [
    "ANONYMOUS_OWNER",
    "AccessLevel",
    "ChunkDetail",
    "ChunkFilter",
    "CollectionHandle",
    "DeletionResult",
    "ExistenceStatus",
    "ExtractedDocument",
    "IngestionResult",
    "IngestionStage",
    "IngestionTiming",
    "ItemEmbeddingStatus",
    "KnowledgeBaseStatus",
    "KnowledgeChunk",
    "QueryResult",
    "QueryStage",
    "QueryTiming",
    "RankedChunk",
    "RetrievalFilter",
    "RetrievalResult",
    "SynthesizedAnswer",
]
