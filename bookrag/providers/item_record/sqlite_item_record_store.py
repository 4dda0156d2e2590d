"""SQLite-backed item record store.

Persists each item's embedding status to a local SQLite database at
``data/item_records.db``.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from bookrag.interfaces.item_record_store import IItemRecordStore
from bookrag.models.knowledge import ItemEmbeddingStatus

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/item_records.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS item_records (
    item_id          TEXT    PRIMARY KEY,
    is_embedded      INTEGER NOT NULL DEFAULT 0,
    embedding_count  INTEGER NOT NULL DEFAULT 0,
    embedded_at      TEXT,
    updated_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO item_records (item_id, is_embedded, embedding_count, embedded_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(item_id)
DO UPDATE SET is_embedded     = excluded.is_embedded,
              embedding_count = excluded.embedding_count,
              embedded_at     = excluded.embedded_at,
              updated_at      = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = """\
SELECT item_id, is_embedded, embedding_count, embedded_at
FROM item_records
WHERE item_id = ?;
"""


class SQLiteItemRecordStore(IItemRecordStore):
    """SQLite-backed item embedding status."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the item_records table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        self._initialized = True
        logger.info("item_record_db_initialized", path=str(self._db_path))

    async def mark_embedded(
        self,
        item_id: str,
        embedding_count: int,
        embedded_at: datetime,
    ) -> ItemEmbeddingStatus:
        status = ItemEmbeddingStatus(
            item_id=item_id,
            is_embedded=embedding_count > 0,
            embedding_count=embedding_count,
            embedded_at=embedded_at,
        )
        await self._upsert(status)
        logger.info(
            "item_marked_embedded",
            item_id=item_id,
            embedding_count=embedding_count,
        )
        return status

    async def mark_not_embedded(self, item_id: str) -> ItemEmbeddingStatus:
        status = ItemEmbeddingStatus(item_id=item_id)
        await self._upsert(status)
        logger.info("item_marked_not_embedded", item_id=item_id)
        return status

    async def get_status(self, item_id: str) -> ItemEmbeddingStatus | None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL, (item_id,))
            row = await cursor.fetchone()

        if row is None:
            return None
        record = dict(row)
        return ItemEmbeddingStatus(
            item_id=record["item_id"],
            is_embedded=bool(record["is_embedded"]),
            embedding_count=record["embedding_count"],
            embedded_at=datetime.fromisoformat(record["embedded_at"])
            if record["embedded_at"]
            else None,
        )

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_item_record"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def _upsert(self, status: ItemEmbeddingStatus) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_SQL,
                (
                    status.item_id,
                    int(status.is_embedded),
                    status.embedding_count,
                    status.embedded_at.isoformat() if status.embedded_at else None,
                ),
            )
            await db.commit()
