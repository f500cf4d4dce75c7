"""Concrete run manager driving one batch request through the lifecycle."""

from __future__ import annotations

import logging
from typing import Any

from workout_batch.batch.manager import BaseRunManager
from workout_batch.batch.models import BatchRun
from workout_batch.batch.states import (
    CancelledState,
    CompletedState,
    FailedState,
    IdleState,
    ProcessingState,
    QueuedState,
    RollingBackState,
    State,
    ValidatingState,
)
from workout_batch.exceptions import BatchAbortedError, BatchValidationError
from workout_batch.execution.executor import BatchExecutor
from workout_batch.facade.operations import BatchOperation, PreparedBatch
from workout_batch.facade.types import BatchOperationResponse
from workout_batch.facade.validation import validate_operation
from workout_batch.models import (
    BatchOperationResult,
    BatchValidationResult,
    ProgressStatus,
)
from workout_batch.models.utils import generate_id
from workout_batch.tracking.progress import ProgressTracker

logger = logging.getLogger(__name__)

_TERMINAL_STATUS: dict[type[State], ProgressStatus] = {
    CompletedState: ProgressStatus.COMPLETED,
    CancelledState: ProgressStatus.CANCELLED,
    FailedState: ProgressStatus.FAILED,
}


class WorkoutBatchManager(BaseRunManager):
    """``idle → validating → queued → processing → completed|cancelled``.

    ``rolling_back`` is recorded from inside processing, when the executor
    starts reverting.  Errors outside item execution end the run in
    ``failed`` with a zero-item result; if the executor reverted applied
    items on the way out, the result says so.
    """

    def __init__(
        self,
        operation: BatchOperation,
        tracker: ProgressTracker,
        executor: BatchExecutor,
    ) -> None:
        super().__init__(BatchRun(operation_type=operation.operation_type), tracker)
        self.operation = operation
        self.executor = executor
        self.validation: BatchValidationResult | None = None
        self.prepared: PreparedBatch | None = None
        self.result: BatchOperationResult[Any] | None = None
        self.aborted: BatchAbortedError | None = None

    async def _transition(self, current_state: State) -> State | None:
        match current_state:
            case IdleState():
                return ValidatingState()

            case ValidatingState():
                return await self._validate()

            case QueuedState():
                return await self._prepare()

            case ProcessingState():
                return await self._process()

            case _:
                return None

    async def _validate(self) -> State:
        self.validation = await validate_operation(self.operation)
        if self.validation.structural_errors:
            raise BatchValidationError(self.validation)

        operation_id = generate_id()
        self.run.operation_id = operation_id
        self.tracker.start(
            operation_id,
            self.operation.operation_type,
            total=self.validation.item_count,
        )
        logger.info(
            "[%s] Queued %s (%d item(s), %d rejected by validation)",
            operation_id,
            self.operation.operation_type,
            self.validation.item_count,
            len(self.validation.item_errors),
        )
        return QueuedState(operation_id=operation_id)

    async def _prepare(self) -> State:
        operation_id = self._operation_id()
        if self.tracker.is_cancel_requested(operation_id):
            self.result = BatchOperationResult.build(
                self.operation.operation_type, cancelled=True
            )
            return CancelledState()

        await self.operation.ctx.store.ping()
        assert self.validation is not None
        self.prepared = await self.operation.prepare(self.validation)
        self.tracker.set_total(operation_id, len(self.prepared.items))
        return ProcessingState(item_count=len(self.prepared.items))

    async def _process(self) -> State:
        assert self.prepared is not None
        operation = self.operation
        try:
            result = await self.executor.execute(
                self.prepared.items,
                operation.handler,
                operation.options,
                operation_id=self._operation_id(),
                operation_type=operation.operation_type,
                rejected=self.prepared.rejected,
                on_rollback=self._entering_rollback,
            )
        except BatchAbortedError as exc:
            self.aborted = exc
            raise
        self.result = result
        if result.cancelled:
            return CancelledState(
                success_count=result.success_count,
                pending_count=len(result.pending_item_ids),
            )
        return CompletedState(
            success_count=result.success_count,
            failure_count=result.failure_count,
        )

    async def _entering_rollback(self) -> None:
        self.record_state(RollingBackState())

    def _operation_id(self) -> str:
        if self.run.operation_id is None:
            raise RuntimeError("Run has no operation_id before it is queued")
        return self.run.operation_id

    # -- Outcome --------------------------------------------------------------

    @property
    def status(self) -> ProgressStatus | None:
        return _TERMINAL_STATUS.get(type(self.run.current_state))

    @property
    def failure(self) -> str | None:
        state = self.run.current_state
        if isinstance(state, FailedState):
            return state.error_message
        return None

    def response(self) -> BatchOperationResponse:
        """Typed response for a run that reached a terminal state."""
        result = self.result
        if result is None or self.failure is not None:
            aborted = self.aborted
            result = BatchOperationResult.build(
                self.operation.operation_type,
                rolled_back=aborted is not None and aborted.rolled_back,
                rollback_failures=aborted.rollback_failures if aborted else (),
            )
        return self.operation.respond(
            result,
            operation_id=self.run.operation_id,
            status=self.status,
            validation=self.validation,
            warnings=list(self.operation.warnings),
            history=self.run.history,
        )
