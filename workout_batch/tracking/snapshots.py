from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from workout_batch.exceptions import SnapshotExpiredError, SnapshotNotFoundError
from workout_batch.models import (
    AffectedItem,
    BatchOperationSnapshot,
    BatchRollbackRequest,
    ItemStatus,
    RetryPolicy,
    RollbackFailure,
    RollbackOutcome,
)
from workout_batch.models.options import DEFAULT_SNAPSHOT_RETENTION_HOURS
from workout_batch.models.utils import utcnow

logger = logging.getLogger(__name__)

Reverter = Callable[[AffectedItem], Awaitable[None]]


class SnapshotManager:
    """Per-operation prior/new state capture and rollback.

    Snapshots are created lazily on the first recorded item and are keyed
    by ``operation_id``, so runs never contend.  A snapshot stays usable
    for its retention window and is then discarded.
    """

    def __init__(
        self,
        retention: timedelta = timedelta(hours=DEFAULT_SNAPSHOT_RETENTION_HOURS),
    ) -> None:
        self._retention = retention
        self._snapshots: dict[str, BatchOperationSnapshot] = {}
        self._reverters: dict[str, Reverter] = {}
        self._policies: dict[str, RetryPolicy] = {}
        self._retentions: dict[str, timedelta] = {}

    @property
    def retention(self) -> timedelta:
        """Default retention for operations attached without their own."""
        return self._retention

    def attach(
        self,
        operation_id: str,
        reverter: Reverter,
        retry_policy: RetryPolicy | None = None,
        retention: timedelta | None = None,
    ) -> None:
        """Register how items of *operation_id* are reverted."""
        self._reverters[operation_id] = reverter
        self._policies[operation_id] = retry_policy or RetryPolicy()
        if retention is not None:
            self._retentions[operation_id] = retention

    # ── Recording ────────────────────────────────────────────────────

    def record_before(self, operation_id: str, entry: AffectedItem) -> None:
        snapshot = self._snapshots.get(operation_id)
        if snapshot is None:
            snapshot = BatchOperationSnapshot(operation_id=operation_id)
            self._snapshots[operation_id] = snapshot
            logger.debug("[%s] snapshot created", operation_id)
        snapshot.affected_items.append(entry)

    def record_after(
        self, operation_id: str, item_id: str, new_state: dict[str, Any] | None
    ) -> None:
        entry = self._entry(operation_id, item_id)
        entry.new_state = new_state
        entry.status = ItemStatus.SUCCESS
        entry.applied = True

    def mark_failed(
        self, operation_id: str, item_id: str, error: str, *, applied: bool = True
    ) -> None:
        """Record a failure; pass ``applied=False`` when nothing was written."""
        entry = self._entry(operation_id, item_id)
        entry.status = ItemStatus.FAILED
        entry.error = error
        entry.applied = applied

    def _entry(self, operation_id: str, item_id: str) -> AffectedItem:
        snapshot = self._snapshots.get(operation_id)
        entry = snapshot.get(item_id) if snapshot is not None else None
        if entry is None:
            raise SnapshotNotFoundError(
                f"No snapshot entry for item {item_id} of operation {operation_id}"
            )
        return entry

    # ── Reading ──────────────────────────────────────────────────────

    def has_snapshot(self, operation_id: str) -> bool:
        return operation_id in self._snapshots

    def snapshot(self, operation_id: str) -> BatchOperationSnapshot:
        """Return the live snapshot; raises if unknown or past retention."""
        snapshot = self._snapshots.get(operation_id)
        if snapshot is None:
            raise SnapshotNotFoundError(f"No snapshot for operation {operation_id}")
        if utcnow() > self._expires_at(operation_id, snapshot):
            raise SnapshotExpiredError(
                f"Snapshot for operation {operation_id} expired"
            )
        return snapshot

    def _expires_at(self, operation_id: str, snapshot: BatchOperationSnapshot) -> datetime:
        return snapshot.timestamp + self._retentions.get(operation_id, self._retention)

    def prune_expired(self) -> int:
        now = utcnow()
        expired = [
            op_id
            for op_id, snap in self._snapshots.items()
            if now > self._expires_at(op_id, snap)
        ]
        for op_id in expired:
            del self._snapshots[op_id]
            self._reverters.pop(op_id, None)
            self._policies.pop(op_id, None)
            self._retentions.pop(op_id, None)
        if expired:
            logger.info("Discarded %d expired snapshot(s)", len(expired))
        return len(expired)

    # ── Rollback ─────────────────────────────────────────────────────

    async def rollback(self, request: BatchRollbackRequest) -> RollbackOutcome:
        """Revert the recorded items of an operation, newest first.

        ``partial`` only reverts failed items; ``preserve_successful`` never
        reverts successful ones.  Items that cannot be reverted are reported
        as :class:`RollbackFailure` and do not stop the rollback.
        Failed items that never wrote anything are skipped.
        """
        op_id = request.operation_id
        snapshot = self.snapshot(op_id)
        reverter = self._reverters.get(op_id)
        if reverter is None:
            raise SnapshotNotFoundError(f"No reverter attached for operation {op_id}")
        policy = self._policies.get(op_id, RetryPolicy())
        wanted = set(request.item_ids) if request.item_ids is not None else None

        logger.info(
            "[%s] rolling back %d item(s)%s",
            op_id,
            len(snapshot.affected_items),
            f" ({request.reason})" if request.reason else "",
        )
        outcome = RollbackOutcome(operation_id=op_id)
        for entry in reversed(snapshot.affected_items):
            if entry.reverted or (wanted is not None and entry.id not in wanted):
                continue
            if request.partial and entry.status is not ItemStatus.FAILED:
                outcome.skipped.append(entry.id)
                continue
            if request.preserve_successful and entry.status is ItemStatus.SUCCESS:
                outcome.skipped.append(entry.id)
                continue
            if not entry.applied:
                outcome.skipped.append(entry.id)
                continue

            try:
                await self._revert(entry, reverter, policy)
            except Exception as exc:
                logger.error("[%s] could not revert %s: %s", op_id, entry.id, exc)
                outcome.failures.append(
                    RollbackFailure(
                        item_id=entry.id,
                        error=str(exc),
                        original_error=entry.error,
                    )
                )
                continue
            entry.reverted = True
            outcome.reverted.append(entry.id)

        return outcome

    @staticmethod
    async def _revert(
        entry: AffectedItem, reverter: Reverter, policy: RetryPolicy
    ) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception(policy.matches),
            stop=stop_after_attempt(policy.max_retries + 1),
            wait=wait_fixed(policy.retry_delay),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await reverter(entry)
