"""Abstract base class for parent item record stores.

After a document is embedded, its owning item (the upload record the
caller keeps for the file) is updated with ``is_embedded``,
``embedding_count`` and ``embedded_at`` so the caller can show whether
chat is available for it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from bookrag.models.knowledge import ItemEmbeddingStatus


# Concrete implementation: SQLiteItemRecordStore (bookrag/providers/item_record/)
class IItemRecordStore(ABC):
    """Contract for persisting per-item embedding status.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def mark_embedded(
        self,
        item_id: str,
        embedding_count: int,
        embedded_at: datetime,
    ) -> ItemEmbeddingStatus:
        """Record that *item_id* now has *embedding_count* stored chunks."""

    @abstractmethod
    async def mark_not_embedded(self, item_id: str) -> ItemEmbeddingStatus:
        """Reset *item_id* after its chunks were deleted."""

    @abstractmethod
    async def get_status(self, item_id: str) -> ItemEmbeddingStatus | None:
        """Return the stored status, or ``None`` for an unknown item."""
