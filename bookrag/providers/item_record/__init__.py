"""Parent item record providers.

SQLiteItemRecordStore mirrors each uploaded item's embedding status
(is_embedded, embedding_count, embedded_at) into data/item_records.db.
"""

from bookrag.providers.item_record.sqlite_item_record_store import SQLiteItemRecordStore

__all__ = ["SQLiteItemRecordStore"]
