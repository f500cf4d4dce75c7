from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import timedelta

from workout_batch.exceptions import ProgressFrozenError
from workout_batch.models import (
    BatchOperationError,
    BatchOperationProgress,
    BatchOperationType,
    ProgressStatus,
)
from workout_batch.models.utils import utcnow

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Live progress for every run, keyed by ``operation_id``.

    Only the owning run writes to its entry; every reader gets a copy.
    Once a run reaches a terminal status its entry is frozen and further
    writes raise :class:`ProgressFrozenError`.
    """

    def __init__(self) -> None:
        self._runs: dict[str, BatchOperationProgress] = {}
        self._cancel: dict[str, asyncio.Event] = {}
        self._signals: dict[str, asyncio.Event] = {}

    # ── Writers ──────────────────────────────────────────────────────

    def start(
        self,
        operation_id: str,
        operation_type: BatchOperationType,
        total: int = 0,
    ) -> BatchOperationProgress:
        progress = BatchOperationProgress(
            operation_id=operation_id,
            type=operation_type,
            total=total,
        )
        self._runs[operation_id] = progress
        self._cancel[operation_id] = asyncio.Event()
        self._touch(operation_id)
        return progress.copy()

    def set_total(self, operation_id: str, total: int) -> None:
        progress = self._writable(operation_id)
        progress.total = total
        progress.current = min(progress.current, total)
        self._touch(operation_id)

    def mark_processing(self, operation_id: str) -> None:
        progress = self._writable(operation_id)
        progress.status = ProgressStatus.PROCESSING
        self._touch(operation_id)

    def item_started(self, operation_id: str, item_id: str) -> None:
        progress = self._writable(operation_id)
        progress.current_item = item_id
        self._touch(operation_id)

    def item_finished(
        self,
        operation_id: str,
        item_id: str,
        error: BatchOperationError | None = None,
    ) -> None:
        progress = self._writable(operation_id)
        progress.current = min(progress.current + 1, progress.total)
        if error is not None:
            progress.errors.append(error)
        if progress.current_item == item_id:
            progress.current_item = None

        elapsed = (utcnow() - progress.start_time).total_seconds()
        remaining = progress.total - progress.current
        if progress.current:
            progress.estimated_time_remaining = elapsed / progress.current * remaining
        self._touch(operation_id)

    def mark_rolling_back(self, operation_id: str) -> None:
        progress = self._writable(operation_id)
        progress.status = ProgressStatus.ROLLING_BACK
        progress.cancellable = False
        progress.current_item = None
        self._touch(operation_id)

    def finish(self, operation_id: str, status: ProgressStatus) -> None:
        if not status.is_terminal:
            raise ValueError(f"finish() needs a terminal status, got {status}")
        progress = self._writable(operation_id)
        progress.status = status
        progress.cancellable = False
        progress.current_item = None
        progress.estimated_time_remaining = 0.0
        progress.finished_at = utcnow()
        logger.info(
            "[%s] %s %s (%d/%d, %d error(s))",
            operation_id,
            progress.type,
            status,
            progress.current,
            progress.total,
            len(progress.errors),
        )
        self._touch(operation_id)

    # ── Cancellation ─────────────────────────────────────────────────

    def request_cancel(self, operation_id: str) -> bool:
        """Signal cancellation; False if the run is unknown or not cancellable."""
        progress = self._runs.get(operation_id)
        if progress is None or not progress.cancellable:
            return False
        self._cancel[operation_id].set()
        logger.info("[%s] cancellation requested", operation_id)
        return True

    def is_cancel_requested(self, operation_id: str) -> bool:
        event = self._cancel.get(operation_id)
        return event is not None and event.is_set()

    # ── Readers ──────────────────────────────────────────────────────

    def get(self, operation_id: str) -> BatchOperationProgress | None:
        progress = self._runs.get(operation_id)
        return progress.copy() if progress is not None else None

    async def watch(self, operation_id: str) -> AsyncIterator[BatchOperationProgress]:
        """Yield a copy after every change until the run is terminal.

        Rapid successive changes may be coalesced into one update.
        """
        if operation_id not in self._runs:
            raise KeyError(operation_id)
        while True:
            signal = self._signals.setdefault(operation_id, asyncio.Event())
            progress = self._runs[operation_id]
            yield progress.copy()
            if progress.status.is_terminal:
                return
            await signal.wait()

    def prune(self, older_than: timedelta) -> int:
        """Forget terminal runs that finished more than *older_than* ago."""
        cutoff = utcnow() - older_than
        stale = [
            op_id
            for op_id, p in self._runs.items()
            if p.finished_at is not None and p.finished_at < cutoff
        ]
        for op_id in stale:
            del self._runs[op_id]
            self._cancel.pop(op_id, None)
            self._signals.pop(op_id, None)
        return len(stale)

    # ── Internals ────────────────────────────────────────────────────

    def _writable(self, operation_id: str) -> BatchOperationProgress:
        progress = self._runs.get(operation_id)
        if progress is None:
            raise KeyError(f"No progress recorded for operation {operation_id}")
        if progress.status.is_terminal:
            raise ProgressFrozenError(
                f"Progress for operation {operation_id} is frozen ({progress.status})"
            )
        return progress

    def _touch(self, operation_id: str) -> None:
        signal = self._signals.pop(operation_id, None)
        if signal is not None:
            signal.set()
