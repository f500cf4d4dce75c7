"""Main facade for the workout_batch library."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from workout_batch.batch.runner import run_batch, run_until
from workout_batch.batch.states import FailedState
from workout_batch.collaborators.notifications import LoggingNotificationSink
from workout_batch.collaborators.schedule import ScheduleLookup, StoreScheduleLookup
from workout_batch.distribution.planner import DistributionPlan, DistributionPlanner
from workout_batch.exceptions import BatchOrchestrationError
from workout_batch.execution.executor import BatchExecutor
from workout_batch.facade.manager import WorkoutBatchManager
from workout_batch.facade.operations import (
    BatchOperation,
    OperationContext,
    build_operation,
)
from workout_batch.facade.types import (
    BatchAssignWorkoutRequest,
    BatchCreateWorkoutRequest,
    BatchDeleteWorkoutRequest,
    BatchDeleteWorkoutResponse,
    BatchDuplicateTemplateRequest,
    BatchExportRequest,
    BatchExportResponse,
    BatchImportRequest,
    BatchOperationResponse,
    BatchRequest,
    BatchScheduleWorkoutRequest,
    BatchSessionResponse,
    BatchUpdateWorkoutRequest,
)
from workout_batch.facade.validation import validate_operation
from workout_batch.models import (
    BatchAssignmentTarget,
    BatchOperationOptions,
    BatchOperationProgress,
    BatchOperationResult,
    BatchOperationSnapshot,
    BatchRollbackRequest,
    BatchSchedulePattern,
    BatchValidationResult,
    BulkModeConfig,
    RollbackOutcome,
    WorkoutTemplate,
    WorkoutUpdate,
)
from workout_batch.tracking.progress import ProgressTracker
from workout_batch.tracking.snapshots import SnapshotManager

if TYPE_CHECKING:
    from workout_batch.collaborators.directory import PlayerDirectory
    from workout_batch.collaborators.notifications import NotificationSink
    from workout_batch.collaborators.skills import SkillProvider
    from workout_batch.store.base import Store

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Main entry point for the workout_batch library.

    Accepts typed batch requests, runs each one as its own asyncio task
    through the validate → queue → process state machine, and exposes
    progress, cancellation and rollback by ``operation_id``.

    Usage::

        from workout_batch.collaborators import StaticDirectory
        from workout_batch.store import InMemoryStore

        orchestrator = BatchOrchestrator(
            store=InMemoryStore(),
            directory=StaticDirectory(teams={"u18": ["p1", "p2"]}),
        )
        await orchestrator.init()
        response = await orchestrator.create_workouts([template_a, template_b])
    """

    def __init__(
        self,
        store: Store,
        directory: PlayerDirectory,
        *,
        schedule: ScheduleLookup | None = None,
        skills: SkillProvider | None = None,
        notifier: NotificationSink | None = None,
        tracker: ProgressTracker | None = None,
        snapshots: SnapshotManager | None = None,
    ) -> None:
        self._store = store
        self._ctx = OperationContext(
            store=store,
            directory=directory,
            schedule=schedule or StoreScheduleLookup(store),
            skills=skills,
            notifier=notifier or LoggingNotificationSink(),
        )
        self._tracker = tracker or ProgressTracker()
        self._snapshots = snapshots or SnapshotManager()
        self._executor = BatchExecutor(self._tracker, self._snapshots)
        self._runs: dict[str, tuple[WorkoutBatchManager, asyncio.Task[None]]] = {}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> BatchOrchestrator:
        """Build an orchestrator from a config dict (see :func:`parse_config`)."""
        from workout_batch.config import parse_config

        store, directory, skills = parse_config(config)
        retention = (config.get("snapshots") or {}).get("retention_hours")
        snapshots = (
            SnapshotManager(timedelta(hours=float(retention)))
            if retention is not None
            else None
        )
        return cls(store=store, directory=directory, skills=skills, snapshots=snapshots)

    @property
    def store(self) -> Store:
        return self._store

    async def init(self) -> None:
        """Create missing tables (non-destructive)."""
        await self._store.init()

    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        await self._store.reset()

    async def close(self) -> None:
        await self._store.close()

    # ── Requests ─────────────────────────────────────────────────────

    def _operation(self, request: BatchRequest) -> BatchOperation:
        return build_operation(request, self._ctx)

    async def validate(self, request: BatchRequest) -> BatchValidationResult:
        """Validate *request* without creating a run or touching state."""
        return await validate_operation(self._operation(request))

    async def start(self, request: BatchRequest) -> str:
        """Validate and queue *request*; return its ``operation_id``.

        The rest of the run proceeds in a background task; use
        :meth:`wait`, :meth:`get_progress` or :meth:`watch_progress`.
        Raises :class:`BatchValidationError` for structurally invalid
        requests.
        """
        manager = WorkoutBatchManager(
            self._operation(request), self._tracker, self._executor
        )
        await run_until(manager, "QUEUED")
        if isinstance(manager.run.current_state, FailedState):
            raise BatchOrchestrationError(
                manager.failure or "Run failed before it was queued",
                manager.response(),
            )

        operation_id = manager.run.operation_id
        assert operation_id is not None
        task = asyncio.create_task(run_batch(manager), name=f"batch-{operation_id}")
        self._runs[operation_id] = (manager, task)
        return operation_id

    async def wait(self, operation_id: str) -> BatchOperationResponse:
        """Wait for a started run and return its response.

        Raises :class:`BatchOrchestrationError` when the run ended
        ``failed``; the zero-item response is attached to the error, and
        so is any applied item that could not be reverted on the way out.
        """
        if operation_id not in self._runs:
            raise KeyError(f"Unknown operation {operation_id}")
        manager, task = self._runs[operation_id]
        await task

        response = manager.response()
        if manager.failure is not None:
            raise BatchOrchestrationError(
                manager.failure, response, response.result.rollback_failures
            )
        return response

    async def submit(self, request: BatchRequest) -> BatchOperationResponse:
        """Run *request* to completion.

        With ``validate_only`` the request is only validated: no run is
        created, nothing is mutated, and the response carries the
        validation result (structural issues included) and an empty result.
        """
        if request.options.validate_only:
            operation = self._operation(request)
            validation = await validate_operation(operation)
            return operation.respond(
                BatchOperationResult.empty(request.operation_type),
                validation=validation,
            )
        return await self.wait(await self.start(request))

    # ── Progress, cancellation, rollback ─────────────────────────────

    def get_progress(self, operation_id: str) -> BatchOperationProgress | None:
        return self._tracker.get(operation_id)

    def watch_progress(self, operation_id: str) -> AsyncIterator[BatchOperationProgress]:
        """Stream progress copies until the run is terminal."""
        return self._tracker.watch(operation_id)

    def cancel(self, operation_id: str) -> bool:
        """Request cooperative cancellation; False if no longer cancellable."""
        return self._tracker.request_cancel(operation_id)

    async def rollback(self, request: BatchRollbackRequest) -> RollbackOutcome:
        """Revert a finished run's recorded items (see ``SnapshotManager``)."""
        return await self._snapshots.rollback(request)

    def get_snapshot(self, operation_id: str) -> BatchOperationSnapshot:
        return self._snapshots.snapshot(operation_id)

    async def plan_distribution(
        self, targets: list[BatchAssignmentTarget], config: BulkModeConfig
    ) -> DistributionPlan:
        """Preview how *targets* would be split, without creating anything."""
        planner = DistributionPlanner(self._ctx.directory, self._ctx.skills)
        return await planner.plan(targets, config)

    def prune(self) -> int:
        """Drop expired snapshots and forget finished runs past retention."""
        removed = self._snapshots.prune_expired()
        self._tracker.prune(self._snapshots.retention)
        done = [op for op, (_, task) in self._runs.items() if task.done()]
        for op in done:
            if self._tracker.get(op) is None:
                del self._runs[op]
        return removed

    # ── Convenience ──────────────────────────────────────────────────

    async def create_workouts(
        self,
        templates: list[WorkoutTemplate],
        options: BatchOperationOptions | None = None,
    ) -> BatchOperationResponse:
        return await self.submit(
            BatchCreateWorkoutRequest(
                templates=templates, options=options or BatchOperationOptions()
            )
        )

    async def update_workouts(
        self,
        updates: list[WorkoutUpdate],
        options: BatchOperationOptions | None = None,
    ) -> BatchOperationResponse:
        return await self.submit(
            BatchUpdateWorkoutRequest(
                updates=updates, options=options or BatchOperationOptions()
            )
        )

    async def delete_workouts(
        self,
        workout_ids: list[str],
        *,
        cascade: bool = False,
        options: BatchOperationOptions | None = None,
    ) -> BatchDeleteWorkoutResponse:
        response = await self.submit(
            BatchDeleteWorkoutRequest(
                workout_ids=workout_ids,
                cascade=cascade,
                options=options or BatchOperationOptions(),
            )
        )
        assert isinstance(response, BatchDeleteWorkoutResponse)
        return response

    async def assign_workouts(
        self,
        workout_ids: list[str],
        targets: list[BatchAssignmentTarget],
        bulk: BulkModeConfig | None = None,
        options: BatchOperationOptions | None = None,
    ) -> BatchSessionResponse:
        response = await self.submit(
            BatchAssignWorkoutRequest(
                workout_ids=workout_ids,
                targets=targets,
                bulk=bulk or BulkModeConfig(),
                options=options or BatchOperationOptions(),
            )
        )
        assert isinstance(response, BatchSessionResponse)
        return response

    async def schedule_workouts(
        self,
        workout_ids: list[str],
        targets: list[BatchAssignmentTarget],
        pattern: BatchSchedulePattern,
        bulk: BulkModeConfig | None = None,
        options: BatchOperationOptions | None = None,
    ) -> BatchSessionResponse:
        response = await self.submit(
            BatchScheduleWorkoutRequest(
                workout_ids=workout_ids,
                targets=targets,
                pattern=pattern,
                bulk=bulk or BulkModeConfig(),
                options=options or BatchOperationOptions(),
            )
        )
        assert isinstance(response, BatchSessionResponse)
        return response

    async def duplicate_templates(
        self,
        template_ids: list[str],
        *,
        copies: int = 1,
        modifications: dict[str, Any] | None = None,
        options: BatchOperationOptions | None = None,
    ) -> BatchOperationResponse:
        return await self.submit(
            BatchDuplicateTemplateRequest(
                template_ids=template_ids,
                copies=copies,
                modifications=modifications or {},
                options=options or BatchOperationOptions(),
            )
        )

    async def import_templates(
        self,
        payload: bytes | str,
        *,
        format: str = "json",
        update_existing: bool = False,
        options: BatchOperationOptions | None = None,
    ) -> BatchOperationResponse:
        return await self.submit(
            BatchImportRequest(
                payload=payload,
                format=format,
                update_existing=update_existing,
                options=options or BatchOperationOptions(),
            )
        )

    async def export_templates(
        self,
        template_ids: list[str],
        *,
        format: str = "json",
        include_sessions: bool = False,
        options: BatchOperationOptions | None = None,
    ) -> BatchExportResponse:
        response = await self.submit(
            BatchExportRequest(
                template_ids=template_ids,
                format=format,
                include_sessions=include_sessions,
                options=options or BatchOperationOptions(),
            )
        )
        assert isinstance(response, BatchExportResponse)
        return response

