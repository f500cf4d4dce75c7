from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, NoReturn, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from workout_batch.exceptions import (
    BatchAbortedError,
    CollaboratorUnavailableError,
    EntityExistsError,
    EntityNotFoundError,
    ItemOperationError,
    ItemTimeoutError,
)
from workout_batch.execution.handlers import OperationHandler
from workout_batch.models import (
    BatchOperationError,
    BatchOperationItem,
    BatchOperationOptions,
    BatchOperationResult,
    BatchOperationType,
    BatchRollbackRequest,
    ErrorCode,
    ItemStatus,
    OnErrorPolicy,
    RetryPolicy,
    RollbackFailure,
)
from workout_batch.models.batch import SKIPPED_MESSAGE
from workout_batch.tracking.progress import ProgressTracker
from workout_batch.tracking.snapshots import SnapshotManager

T = TypeVar("T")

logger = logging.getLogger(__name__)

RollbackHook = Callable[[], Awaitable[None]]

# Raised by the store before anything is written.
_REJECTED_UNWRITTEN = (EntityExistsError, EntityNotFoundError)


@dataclass
class _RunState:
    """Per-run bookkeeping owned by one ``execute`` call."""

    errors: dict[str, BatchOperationError] = field(default_factory=dict)
    halted: bool = False
    cancelled: bool = False


def _retryable(policy: RetryPolicy) -> Callable[[BaseException], bool]:
    def predicate(exc: BaseException) -> bool:
        if isinstance(exc, CollaboratorUnavailableError):
            return False
        return policy.matches(exc)

    return predicate


class BatchExecutor:
    """Applies one operation to a list of items.

    Items run one at a time, or in chunks of ``chunk_size`` fanned out with
    ``asyncio.gather`` when ``parallel`` is set.  Item failures are recorded,
    never raised.  A :class:`CollaboratorUnavailableError` (or any other
    error outside item handling) lets the current chunk settle, reverts
    what was applied when the run takes snapshots, and escapes as
    :class:`BatchAbortedError`.
    """

    def __init__(self, tracker: ProgressTracker, snapshots: SnapshotManager) -> None:
        self._tracker = tracker
        self._snapshots = snapshots

    async def execute(
        self,
        items: Sequence[BatchOperationItem[T]],
        handler: OperationHandler[T],
        options: BatchOperationOptions,
        *,
        operation_id: str,
        operation_type: BatchOperationType,
        rejected: dict[str, BatchOperationError] | None = None,
        on_rollback: RollbackHook | None = None,
    ) -> BatchOperationResult[Any]:
        """Run *items* and return the terminal result.

        Items listed in *rejected* (item-level validation or blocked
        sessions) are failed up front with the given error and never
        reach the handler.
        """
        started = time.monotonic()
        policy = options.effective_on_error
        state = _RunState()
        rejected = rejected or {}

        if options.takes_snapshots and handler.mutating:
            self._snapshots.attach(
                operation_id,
                handler.revert,
                options.retry_policy,
                retention=timedelta(hours=options.snapshot_retention_hours),
            )

        runnable: list[BatchOperationItem[T]] = []
        for item in items:
            error = rejected.get(item.id)
            if error is None:
                runnable.append(item)
                continue
            item.start()
            item.fail(error.error, retryable=error.retryable)
            state.errors[item.id] = error
            self._tracker.item_finished(operation_id, item.id, error)

        # Conflict-blocked sessions only ever fail themselves.
        halting = [e for e in rejected.values() if e.code is not ErrorCode.CONFLICT]
        if halting and policy is not OnErrorPolicy.CONTINUE:
            state.halted = True

        size = options.effective_chunk_size if options.parallel else 1
        for offset in range(0, len(runnable), size):
            if state.halted:
                break
            if self._tracker.is_cancel_requested(operation_id):
                state.cancelled = True
                logger.info(
                    "[%s] cancellation observed, stopping dispatch", operation_id
                )
                break

            chunk = runnable[offset : offset + size]
            outcomes = await asyncio.gather(
                *(
                    self._run_item(operation_id, item, handler, options)
                    for item in chunk
                ),
                return_exceptions=True,
            )
            fatal: BaseException | None = None
            for item, outcome in zip(chunk, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    fatal = fatal or outcome
                elif outcome is not None:
                    state.errors[item.id] = outcome
            if fatal is not None:
                await self._abort(operation_id, handler, options, on_rollback, fatal)
            if any(outcomes) and policy is not OnErrorPolicy.CONTINUE:
                state.halted = True
                logger.info("[%s] halting after failure (%s)", operation_id, policy)

        rolled_back = False
        rollback_failures: list[RollbackFailure] = []
        rollback_needed = (policy is OnErrorPolicy.ROLLBACK and state.halted) or (
            options.atomic and state.cancelled
        )
        if rollback_needed:
            rolled_back = True
            rollback_failures = await self._rollback(operation_id, on_rollback)

        result = self._build_result(
            items,
            state,
            operation_type=operation_type,
            rolled_back=rolled_back,
            rollback_failures=rollback_failures,
            duration=time.monotonic() - started,
        )
        logger.info(
            "[%s] %s finished: %d ok, %d failed, %d pending",
            operation_id,
            operation_type,
            result.success_count,
            result.failure_count,
            len(result.pending_item_ids),
        )
        return result

    # -- Per item -------------------------------------------------------------

    async def _run_item(
        self,
        operation_id: str,
        item: BatchOperationItem[T],
        handler: OperationHandler[T],
        options: BatchOperationOptions,
    ) -> BatchOperationError | None:
        self._tracker.item_started(operation_id, item.id)
        item.start()
        snapshotting = options.takes_snapshots and handler.mutating
        entry_id: str | None = None

        try:
            if snapshotting:
                entry = await _with_timeout(
                    handler.capture(item.id, item.data), options.timeout_seconds
                )
                self._snapshots.record_before(operation_id, entry)
                entry_id = entry.id
            result = await self._attempt(item, handler, options)
        except CollaboratorUnavailableError as exc:
            if entry_id is not None:
                self._snapshots.mark_failed(operation_id, entry_id, str(exc))
            raise
        except Exception as exc:
            retryable = _retryable(options.retry_policy)(exc)
            code = (
                ErrorCode.TIMEOUT
                if isinstance(exc, ItemTimeoutError)
                else ErrorCode.ITEM_FAILED
            )
            item.fail(str(exc), retryable=retryable)
            error = BatchOperationError(
                item_id=item.id,
                error=str(exc),
                data=item.data,
                retryable=retryable,
                code=code,
            )
            if entry_id is not None:
                self._snapshots.mark_failed(
                    operation_id,
                    entry_id,
                    str(exc),
                    applied=bool(entry.related)
                    or not isinstance(exc, _REJECTED_UNWRITTEN),
                )
            logger.warning("[%s] item %s failed: %s", operation_id, item.id, exc)
            self._tracker.item_finished(operation_id, item.id, error)
            return error

        item.succeed(result)
        if entry_id is not None:
            self._snapshots.record_after(
                operation_id, entry_id, handler.new_state(result)
            )
        self._tracker.item_finished(operation_id, item.id)
        return None

    async def _attempt(
        self,
        item: BatchOperationItem[T],
        handler: OperationHandler[T],
        options: BatchOperationOptions,
    ) -> Any:
        policy = options.retry_policy

        def before_sleep(retry_state: RetryCallState) -> None:
            item.record_retry()
            logger.info(
                "Retrying item %s (attempt %d): %s",
                item.id,
                retry_state.attempt_number + 1,
                retry_state.outcome.exception() if retry_state.outcome else None,
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception(_retryable(policy)),
            stop=stop_after_attempt(policy.max_retries + 1),
            wait=wait_fixed(policy.retry_delay),
            before_sleep=before_sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await _with_timeout(
                    handler.apply(item.data), options.timeout_seconds
                )
        raise ItemOperationError(f"Item {item.id} was never attempted")

    # -- Rollback -------------------------------------------------------------

    async def _abort(
        self,
        operation_id: str,
        handler: OperationHandler[Any],
        options: BatchOperationOptions,
        on_rollback: RollbackHook | None,
        exc: BaseException,
    ) -> NoReturn:
        if isinstance(exc, asyncio.CancelledError):
            raise exc
        logger.error("[%s] aborting run: %s", operation_id, exc)
        rolled_back = options.takes_snapshots and handler.mutating
        failures: list[RollbackFailure] = []
        if rolled_back:
            failures = await self._rollback(
                operation_id, on_rollback, reason="run aborted"
            )
        raise BatchAbortedError(
            str(exc), rolled_back=rolled_back, rollback_failures=failures
        ) from exc

    async def _rollback(
        self,
        operation_id: str,
        on_rollback: RollbackHook | None,
        *,
        reason: str = "batch halted",
    ) -> list[RollbackFailure]:
        self._tracker.mark_rolling_back(operation_id)
        if on_rollback is not None:
            await on_rollback()
        if not self._snapshots.has_snapshot(operation_id):
            return []
        outcome = await self._snapshots.rollback(
            BatchRollbackRequest(operation_id=operation_id, reason=reason)
        )
        logger.info(
            "[%s] rolled back %d item(s), %d failure(s)",
            operation_id,
            len(outcome.reverted),
            len(outcome.failures),
        )
        return outcome.failures

    # -- Result ---------------------------------------------------------------

    @staticmethod
    def _build_result(
        items: Sequence[BatchOperationItem[Any]],
        state: _RunState,
        *,
        operation_type: BatchOperationType,
        rolled_back: bool,
        rollback_failures: list[RollbackFailure],
        duration: float,
    ) -> BatchOperationResult[Any]:
        successful: list[Any] = []
        failed: list[BatchOperationError] = []
        pending: list[str] = []

        for item in items:
            if item.status is ItemStatus.SUCCESS:
                if rolled_back:
                    failed.append(
                        BatchOperationError(
                            item_id=item.id,
                            error="Rolled back: batch did not complete",
                            data=item.data,
                            retryable=True,
                            code=ErrorCode.ROLLED_BACK,
                        )
                    )
                else:
                    successful.append(item.result)
            elif item.status is ItemStatus.FAILED:
                failed.append(state.errors[item.id])
            elif state.cancelled and not state.halted and not rolled_back:
                pending.append(item.id)
            else:
                # Never dispatched because the batch halted (stop/rollback).
                failed.append(
                    BatchOperationError(
                        item_id=item.id,
                        error=SKIPPED_MESSAGE,
                        data=item.data,
                        retryable=True,
                        code=ErrorCode.SKIPPED,
                    )
                )

        return BatchOperationResult.build(
            operation_type,
            successful=successful,
            failed=failed,
            duration=duration,
            pending_item_ids=pending,
            cancelled=state.cancelled,
            rolled_back=rolled_back,
            rollback_failures=rollback_failures,
        )


async def _with_timeout(call: Awaitable[Any], timeout: float) -> Any:
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except TimeoutError as exc:
        raise ItemTimeoutError(f"Operation timed out after {timeout:g}s") from exc
