"""Shared concurrency primitives for the ingestion pipeline.

Provides :class:`KeyedLock`, a registry of ``asyncio.Lock`` objects keyed by
an arbitrary hashable value.  The orchestrator holds the lock for a
``(book_id, file_name, owner_id)`` key across its existence check and its
insert so two concurrent first-time ingestions of the same file cannot both
pass the check.  Different keys never contend.

Locks are reference-counted and dropped once no coroutine holds or waits on
them, so the registry does not grow with the number of files ever seen.
The guarantee is per process; separate processes sharing one vector store
are not serialized.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

import structlog

from bookrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class KeyedLock:
    """Per-key mutual exclusion for coroutines on one event loop."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Acquire the lock for *key* for the duration of the ``async with`` block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        if lock.locked():
            _logger.debug("keyed_lock_contended", key=str(key))
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        """Return ``True`` if some coroutine currently holds *key*."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
