"""Per-book collection resolution with dimension negotiation.

Every book's chunks live in their own collection named
``{base}_book_{sanitized_book_id}``.  :meth:`CollectionRegistry.resolve`
adopts an existing collection with whatever dimension it was created with,
or creates a new cosine collection sized for the configured embedding
model.  It returns a fresh immutable :class:`CollectionHandle` per call
rather than remembering a "current" collection, so concurrent requests for
different books cannot observe each other's state.
"""

from __future__ import annotations

import re

import structlog

from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.interfaces.vector_store_provider import IVectorStoreProvider
from bookrag.models.knowledge import CollectionHandle
from bookrag.utils.concurrency import KeyedLock

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BASE_COLLECTION_NAME = "book_knowledge_base"
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_book_id(book_id: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", book_id)


def collection_name_for(book_id: str, base_name: str = DEFAULT_BASE_COLLECTION_NAME) -> str:
    """Return the physical collection name for *book_id*."""
    return f"{base_name}_book_{sanitize_book_id(book_id)}"


class CollectionRegistry:
    """Resolves book ids to collection handles.

    Parameters
    ----------
    vector_store:
        Backend holding the collections.
    embedding_provider:
        Supplies the dimension for newly created collections.
    base_name:
        Prefix shared by every book collection.
    metric:
        Similarity metric for new collections.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider,
        base_name: str = DEFAULT_BASE_COLLECTION_NAME,
        metric: str = "cosine",
    ) -> None:
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._base_name = base_name
        self._metric = metric
        # Serializes first-time creation per collection name.
        self._creation_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def collection_name(self, book_id: str) -> str:
        return collection_name_for(book_id, self._base_name)

    async def resolve(self, book_id: str) -> CollectionHandle:
        """Return a handle for *book_id*'s collection, creating it if needed.

        Raises
        ------
        ValueError
            If *book_id* is empty.
        bookrag.utils.errors.StoreError
            If the store cannot list or create collections.
        """
        if not book_id or not str(book_id).strip():
            raise ValueError("book_id is required to resolve a collection")

        name = self.collection_name(book_id)
        configured_dimension = self._embedding_provider.get_dimension()

        async with self._creation_locks.hold(name):
            if name in await self._vector_store.list_collections():
                existing = await self._vector_store.get_collection_dimension(name)
                dimension = existing or configured_dimension
                if dimension != configured_dimension:
                    logger.warning(
                        "collection_dimension_adopted",
                        collection=name,
                        existing_dimension=dimension,
                        model_dimension=configured_dimension,
                        model=self._embedding_provider.get_model_name(),
                    )
                return CollectionHandle(
                    name=name,
                    book_id=book_id,
                    dimension=dimension,
                    metric=self._metric,
                )

            await self._vector_store.create_collection(
                name,
                dimension=configured_dimension,
                metric=self._metric,
            )

        logger.info(
            "collection_created",
            collection=name,
            book_id=book_id,
            dimension=configured_dimension,
        )
        return CollectionHandle(
            name=name,
            book_id=book_id,
            dimension=configured_dimension,
            metric=self._metric,
            created=True,
        )
