"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Each book gets its own collection created with cosine distance, and the
vector dimension chosen at creation is recorded in the collection metadata
so it can be adopted on later runs.  Fully local, no external service
required.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

# Disable ChromaDB telemetry before importing chromadb; the env var is read
# at import time by some versions.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from bookrag.interfaces.vector_store_provider import IVectorStoreProvider
from bookrag.models.knowledge import AccessLevel, ChunkFilter, KnowledgeChunk
from bookrag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

# Metadata keys owned by KnowledgeChunk; everything else round-trips
# through ``extra_metadata``.
_RESERVED_KEYS = frozenset(
    {
        "book_id",
        "file_name",
        "owner_id",
        "chunk_index",
        "word_count",
        "char_count",
        "processed_at",
        "is_public",
        "access_level",
    }
)

_DIMENSION_KEY = "dimension"
_SPACE_KEY = "hnsw:space"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    bookrag always passes pre-computed vectors, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "bookrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Pass ``client`` to share an existing ChromaDB client (tests use an
    ``EphemeralClient``); otherwise a ``PersistentClient`` is opened at
    *persist_directory*.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(self) -> list[str]:
        try:
            # Older chromadb releases return Collection objects, newer
            # ones return bare names.
            return [
                c if isinstance(c, str) else c.name
                for c in self._client.list_collections()
            ]
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB list_collections failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_collection_dimension(self, name: str) -> int | None:
        """Return the recorded dimension, or infer it from a stored vector.

        Returns ``None`` when the collection is missing, or when it exists
        without a recorded dimension and holds no vectors yet.
        """
        if name not in await self.list_collections():
            return None
        try:
            collection = self._get_collection(name)
            metadata = collection.metadata or {}
            if _DIMENSION_KEY in metadata:
                return int(metadata[_DIMENSION_KEY])

            sample = collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return None
            return len(embeddings[0])
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB get_collection_dimension failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def create_collection(self, name: str, dimension: int, metric: str = "cosine") -> None:
        metadata = {_SPACE_KEY: metric, _DIMENSION_KEY: dimension}
        try:
            try:
                self._client.get_or_create_collection(
                    name=name,
                    metadata=metadata,
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                # Collection persisted with a different embedding function.
                self._client.get_or_create_collection(name=name, metadata=metadata)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB create_collection failed for {name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "chromadb_collection_created",
            collection=name,
            dimension=dimension,
            metric=metric,
        )

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def find(
        self,
        collection_name: str,
        chunk_filter: ChunkFilter,
        limit: int | None = None,
        include_vectors: bool = True,
    ) -> list[KnowledgeChunk]:
        include = ["documents", "metadatas"]
        if include_vectors:
            include.append("embeddings")

        try:
            collection = self._get_collection(collection_name)
            kwargs: dict[str, Any] = {
                "where": self._translate_filter(chunk_filter),
                "include": include,
            }
            if limit is not None:
                kwargs["limit"] = limit
            page = collection.get(**kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB find failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = page["ids"] or []
        documents = page.get("documents") or [""] * len(ids)
        metadatas = page.get("metadatas") or [{}] * len(ids)
        embeddings = page.get("embeddings") if include_vectors else None
        if embeddings is None:
            embeddings = [None] * len(ids)

        chunks = [
            self._record_to_chunk(chunk_id, doc, meta or {}, vec)
            for chunk_id, doc, meta, vec in zip(ids, documents, metadatas, embeddings, strict=True)
        ]
        logger.debug(
            "chromadb_find",
            collection=collection_name,
            limit=limit,
            results_count=len(chunks),
        )
        return chunks

    async def insert_many(self, collection_name: str, chunks: list[KnowledgeChunk]) -> int:
        if not chunks:
            return 0
        try:
            collection = self._get_collection(collection_name)
            collection.add(
                ids=[c.chunk_id for c in chunks],
                embeddings=[c.vector for c in chunks],
                documents=[c.text for c in chunks],
                metadatas=[self._chunk_to_metadata(c) for c in chunks],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB insert_many failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_insert_many", collection=collection_name, count=len(chunks))
        return len(chunks)

    async def count(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        try:
            collection = self._get_collection(collection_name)
            existing = collection.get(where=self._translate_filter(chunk_filter), include=[])
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    async def delete_many(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        try:
            collection = self._get_collection(collection_name)
            existing = collection.get(where=self._translate_filter(chunk_filter), include=[])
            ids = existing["ids"] or []
            if ids:
                collection.delete(ids=ids)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_many failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_many",
            collection=collection_name,
            book_id=chunk_filter.book_id,
            file_name=chunk_filter.file_name,
            deleted_count=len(ids),
        )
        return len(ids)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client responds to a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_collection(self, name: str) -> Any:
        try:
            return self._client.get_collection(
                name=name,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_collection(name=name)

    @staticmethod
    def _translate_filter(chunk_filter: ChunkFilter) -> dict[str, Any]:
        """Translate a :class:`ChunkFilter` into a ChromaDB ``where`` clause.

        ChromaDB requires ``$and`` whenever more than one condition is present.
        """
        conditions: list[dict[str, Any]] = [{"book_id": {"$eq": chunk_filter.book_id}}]
        if chunk_filter.file_name is not None:
            conditions.append({"file_name": {"$eq": chunk_filter.file_name}})
        if chunk_filter.owner_id is not None:
            conditions.append({"owner_id": {"$eq": chunk_filter.owner_id}})
        if chunk_filter.public_only:
            conditions.append(
                {
                    "$or": [
                        {"is_public": {"$eq": True}},
                        {"access_level": {"$eq": AccessLevel.PUBLIC.value}},
                    ]
                }
            )
        if chunk_filter.visible_to is not None:
            conditions.append(
                {
                    "$or": [
                        {"owner_id": {"$eq": chunk_filter.visible_to}},
                        {"is_public": {"$eq": True}},
                        {"access_level": {"$eq": AccessLevel.PUBLIC.value}},
                    ]
                }
            )
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    @staticmethod
    def _chunk_to_metadata(chunk: KnowledgeChunk) -> dict[str, Any]:
        """Flatten a chunk into ChromaDB metadata (scalars only, no ``None``)."""
        metadata: dict[str, Any] = {
            key: value
            for key, value in chunk.extra_metadata.items()
            if key not in _RESERVED_KEYS
        }
        metadata.update(
            {
                "book_id": chunk.book_id,
                "file_name": chunk.file_name,
                "owner_id": chunk.owner_id,
                "chunk_index": chunk.chunk_index,
                "word_count": chunk.word_count,
                "char_count": chunk.char_count,
                "processed_at": chunk.processed_at.isoformat(),
                "is_public": chunk.is_public,
                "access_level": chunk.access_level.value,
            }
        )
        return metadata

    @staticmethod
    def _record_to_chunk(
        chunk_id: str,
        document: str | None,
        metadata: dict[str, Any],
        vector: Any,
    ) -> KnowledgeChunk:
        extra = {k: v for k, v in metadata.items() if k not in _RESERVED_KEYS}
        # Embeddings come back as numpy arrays on recent chromadb releases.
        values = [float(x) for x in vector] if vector is not None else []
        return KnowledgeChunk(
            chunk_id=chunk_id,
            book_id=str(metadata.get("book_id", "")),
            file_name=str(metadata.get("file_name", "")),
            owner_id=str(metadata.get("owner_id", "anonymous")),
            text=document or "",
            vector=values,
            chunk_index=int(metadata.get("chunk_index", 0)),
            word_count=int(metadata.get("word_count", 0)),
            char_count=int(metadata.get("char_count", 0)),
            processed_at=datetime.fromisoformat(str(metadata["processed_at"]))
            if metadata.get("processed_at")
            else datetime.min,
            is_public=bool(metadata.get("is_public", False)),
            access_level=AccessLevel(metadata.get("access_level", AccessLevel.PRIVATE.value)),
            extra_metadata=extra,
        )
