"""Abstract base class for vector-store service providers.

Defines the contract for per-book collections of embedded chunks:
listing and creating collections, and finding, inserting, counting and
deleting chunks inside one of them.  Similarity ranking happens in
:class:`~bookrag.services.retriever.Retriever`, so stores only need
filtered fetches, not nearest-neighbour search.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrag.models.knowledge import ChunkFilter, KnowledgeChunk


# Concrete implementation: ChromaDBProvider (bookrag/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the knowledge base.

    **Filter semantics** (:class:`ChunkFilter`):

    * ``book_id`` -- always applied.
    * ``file_name`` / ``owner_id`` -- applied when not ``None``.
    * ``public_only`` -- keeps chunks whose ``is_public`` is true OR whose
      ``access_level`` is ``"public"``.
    * ``visible_to`` -- keeps public chunks (as above) plus chunks whose
      ``owner_id`` equals the given user.

    Concrete providers translate the filter into their own query language.
    """

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the names of all existing collections."""

    @abstractmethod
    async def get_collection_dimension(self, name: str) -> int | None:
        """Return the vector dimension a collection was created with.

        Returns ``None`` if the collection does not exist.
        """

    @abstractmethod
    async def create_collection(self, name: str, dimension: int, metric: str = "cosine") -> None:
        """Create a collection with a fixed vector dimension and metric.

        Raises
        ------
        bookrag.utils.errors.StoreError
            If the backend rejects the creation.
        """

    @abstractmethod
    async def find(
        self,
        collection_name: str,
        chunk_filter: ChunkFilter,
        limit: int | None = None,
        include_vectors: bool = True,
    ) -> list[KnowledgeChunk]:
        """Return chunks matching *chunk_filter*.

        Parameters
        ----------
        collection_name:
            Collection to read from.
        chunk_filter:
            Selection criteria.
        limit:
            Maximum number of chunks returned; ``None`` means all.
        include_vectors:
            When ``False`` the returned chunks carry an empty ``vector``.
        """

    @abstractmethod
    async def insert_many(self, collection_name: str, chunks: list[KnowledgeChunk]) -> int:
        """Insert *chunks* and return the number written.

        No deduplication is performed.
        """

    @abstractmethod
    async def count(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        """Return the number of chunks matching *chunk_filter*."""

    @abstractmethod
    async def delete_many(self, collection_name: str, chunk_filter: ChunkFilter) -> int:
        """Delete chunks matching *chunk_filter* and return how many were removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
