"""Per-request stage tracking with timing and listener notification.

Every ingestion or query request gets a ``task_id``.  The orchestrator
calls :meth:`ProgressTracker.advance` at each stage transition; the tracker
records when each stage started, logs the transition, measures how long
the previous stage took, and notifies any listeners registered for that
task (the CLI uses one to print stage progress).

    KnowledgeBasePipeline ──advance()──→ ProgressTracker ──callback()──→ listener

Listener errors are caught and logged so a faulty listener cannot stall a
pipeline.  Both sync and async callbacks are supported.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from bookrag.models.knowledge import IngestionStage, QueryStage
from bookrag.utils.logging import get_logger

Stage = IngestionStage | QueryStage

_FAILED = (IngestionStage.FAILED, QueryStage.FAILED)


@dataclass
class _TaskStatus:
    """Internal snapshot of one task's progress."""

    stage: Stage
    message: str = ""
    stage_started: float = field(default_factory=time.monotonic)
    task_started: float = field(default_factory=time.monotonic)
    durations_ms: dict[str, int] = field(default_factory=dict)


class ProgressTracker:
    """Tracks stage transitions and stage durations per task."""

    def __init__(self) -> None:
        self._statuses: dict[str, _TaskStatus] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def advance(self, task_id: str, stage: Stage, message: str = "") -> None:
        """Move *task_id* to *stage*, closing the timer of its previous stage."""
        now = time.monotonic()
        status = self._statuses.get(task_id)
        if status is None:
            status = _TaskStatus(stage=stage, message=message, stage_started=now, task_started=now)
            self._statuses[task_id] = status
        else:
            elapsed = round((now - status.stage_started) * 1000)
            status.durations_ms[status.stage.value] = (
                status.durations_ms.get(status.stage.value, 0) + elapsed
            )
            status.stage = stage
            status.message = message
            status.stage_started = now

        log = self._logger.warning if stage in _FAILED else self._logger.info
        log("stage_transition", task_id=task_id, stage=stage.value, message=message)

        await self._notify_listeners(task_id, stage, message)

    def duration_ms(self, task_id: str, stage: Stage) -> int:
        """Return milliseconds spent in *stage* (0 if never entered or still open)."""
        status = self._statuses.get(task_id)
        if status is None:
            return 0
        return status.durations_ms.get(stage.value, 0)

    def total_ms(self, task_id: str) -> int:
        """Return milliseconds since the task's first stage."""
        status = self._statuses.get(task_id)
        if status is None:
            return 0
        return round((time.monotonic() - status.task_started) * 1000)

    def get_stage(self, task_id: str) -> Stage | None:
        status = self._statuses.get(task_id)
        return status.stage if status else None

    def finish(self, task_id: str) -> None:
        """Forget *task_id* and its listeners once its result has been built."""
        self._statuses.pop(task_id, None)
        self._listeners.pop(task_id, None)

    def register_listener(self, task_id: str, callback: Callable) -> None:
        """Register an async or sync ``callback(task_id, stage, message)``."""
        listeners = self._listeners.setdefault(task_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def register_global_listener(self, callback: Callable) -> None:
        """Register *callback* for every task (keyed under ``"*"``)."""
        self.register_listener("*", callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, task_id: str, stage: Stage, message: str) -> None:
        callbacks = [*self._listeners.get(task_id, []), *self._listeners.get("*", [])]
        for callback in callbacks:
            try:
                result = callback(task_id, stage, message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.error(
                    "listener_callback_failed",
                    task_id=task_id,
                    stage=stage.value,
                    error=str(exc),
                )
