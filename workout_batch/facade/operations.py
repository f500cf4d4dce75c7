"""Per-request-type batch operations.

A ``BatchOperation`` turns one typed request into executor items: it owns
the request's structural checks, how items are keyed for item-level
validation, any planning needed before execution, and the typed response.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, ClassVar, Generic, TypeVar

from workout_batch.collaborators.directory import PlayerDirectory
from workout_batch.collaborators.notifications import NotificationSink
from workout_batch.collaborators.schedule import ScheduleLookup
from workout_batch.collaborators.skills import SkillProvider
from workout_batch.conflicts.detector import ConflictDetector, ConflictReport
from workout_batch.distribution.planner import DistributionPlan, DistributionPlanner
from workout_batch.distribution.schedule import on_date
from workout_batch.exceptions import UnsupportedFormatError
from workout_batch.execution.handlers import OperationHandler, build_handler
from workout_batch.execution.payloads import (
    DeleteOutcome,
    DeleteTarget,
    DuplicateJob,
    ExportTarget,
    ImportRecord,
    SessionPlanItem,
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
    CascadedDeletions,
)
from workout_batch.facade.validation import (
    check_bulk_config,
    check_pattern,
    check_unique,
    require_items,
)
from workout_batch.formats import FormatAdapter, get_format
from workout_batch.models import (
    BatchOperationError,
    BatchOperationItem,
    BatchOperationOptions,
    BatchOperationResult,
    BatchOperationType,
    BatchValidationResult,
    DistributionStrategy,
    ErrorCode,
    SessionDistributionSummary,
    WorkoutSession,
)
from workout_batch.models.utils import generate_id
from workout_batch.store.base import Store

R = TypeVar("R", bound="BatchRequest")

logger = logging.getLogger(__name__)


@dataclass
class OperationContext:
    """Collaborators an operation may consume."""

    store: Store
    directory: PlayerDirectory
    schedule: ScheduleLookup
    skills: SkillProvider | None = None
    notifier: NotificationSink | None = None


@dataclass
class PreparedBatch:
    items: list[BatchOperationItem[Any]]
    rejected: dict[str, BatchOperationError] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Operation registry (operation type → operation class)
# ---------------------------------------------------------------------------

_operation_registry: dict[BatchOperationType, type[BatchOperation]] = {}


def register_operation(*operation_types: BatchOperationType):
    """Decorator: register an operation class for one or more operation types."""

    def decorator(cls: type[BatchOperation]) -> type[BatchOperation]:
        for op in operation_types:
            _operation_registry[op] = cls
        return cls

    return decorator


def get_operation_class(operation_type: BatchOperationType) -> type[BatchOperation]:
    cls = _operation_registry.get(operation_type)
    if cls is None:
        raise ValueError(f"No operation registered for type: {operation_type}")
    return cls


def build_operation(request: BatchRequest, ctx: OperationContext) -> BatchOperation:
    return get_operation_class(request.operation_type)(request, ctx)


# ---------------------------------------------------------------------------
# Base operation
# ---------------------------------------------------------------------------


class BatchOperation(ABC, Generic[R]):
    response_cls: ClassVar[type[BatchOperationResponse]] = BatchOperationResponse

    def __init__(self, request: R, ctx: OperationContext) -> None:
        self.request = request
        self.ctx = ctx
        self.handler: OperationHandler[Any] = build_handler(
            request.operation_type, ctx.store, ctx.notifier
        )
        self.warnings: list[str] = []
        self._items: list[BatchOperationItem[Any]] | None = None

    @property
    def operation_type(self) -> BatchOperationType:
        return self.request.operation_type

    @property
    def options(self) -> BatchOperationOptions:
        return self.request.options

    # -- Sub-class hooks ------------------------------------------------------

    @abstractmethod
    def check_structure(self, result: BatchValidationResult) -> None:
        """Add every issue that rejects the whole request."""

    @abstractmethod
    def _build_items(self) -> list[BatchOperationItem[Any]]:
        """Items for a structurally valid request."""

    def item_key(self, item: BatchOperationItem[Any]) -> str:
        """The entity id item-level validation results are keyed by."""
        return item.id

    # -- Validation -----------------------------------------------------------

    def items(self) -> list[BatchOperationItem[Any]]:
        if self._items is None:
            self._items = self._build_items()
        return self._items

    def item_count(self) -> int:
        return len(self.items())

    async def check_items(self) -> list[tuple[str, str]]:
        """``(key, message)`` for every entity that fails item validation."""
        issues: list[tuple[str, str]] = []
        seen: set[str] = set()
        for item in self.items():
            key = self.item_key(item)
            if key in seen:
                continue
            seen.add(key)
            message = await self.handler.validate_item(item.data)
            if message is not None:
                issues.append((key, message))
        return issues

    def rejected(
        self,
        items: list[BatchOperationItem[Any]],
        validation: BatchValidationResult,
    ) -> dict[str, BatchOperationError]:
        errors = validation.item_errors
        rejected: dict[str, BatchOperationError] = {}
        for item in items:
            message = errors.get(self.item_key(item))
            if message is not None:
                rejected[item.id] = BatchOperationError(
                    item_id=item.id,
                    error=message,
                    data=item.data,
                    retryable=False,
                    code=ErrorCode.VALIDATION,
                )
        return rejected

    # -- Execution ------------------------------------------------------------

    async def prepare(self, validation: BatchValidationResult) -> PreparedBatch:
        """Items to hand to the executor, with the ones failed up front."""
        items = self.items()
        return PreparedBatch(items=items, rejected=self.rejected(items, validation))

    def respond(self, result: BatchOperationResult[Any], **fields: Any) -> BatchOperationResponse:
        return self.response_cls(request=self.request, result=result, **fields)


# ---------------------------------------------------------------------------
# Template operations
# ---------------------------------------------------------------------------


@register_operation(BatchOperationType.CREATE)
class CreateOperation(BatchOperation[BatchCreateWorkoutRequest]):
    def check_structure(self, result: BatchValidationResult) -> None:
        templates = self.request.templates
        if require_items(result, templates, "templates"):
            check_unique(result, (t.id for t in templates), "template id")

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return [BatchOperationItem(data=t, id=t.id) for t in self.request.templates]


@register_operation(BatchOperationType.UPDATE)
class UpdateOperation(BatchOperation[BatchUpdateWorkoutRequest]):
    def check_structure(self, result: BatchValidationResult) -> None:
        updates = self.request.updates
        if require_items(result, updates, "updates"):
            check_unique(result, (u.workout_id for u in updates), "workout id")

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return [
            BatchOperationItem(data=u, id=u.workout_id) for u in self.request.updates
        ]


@register_operation(BatchOperationType.DELETE)
class DeleteOperation(BatchOperation[BatchDeleteWorkoutRequest]):
    response_cls = BatchDeleteWorkoutResponse

    def check_structure(self, result: BatchValidationResult) -> None:
        ids = self.request.workout_ids
        if require_items(result, ids, "workout_ids"):
            check_unique(result, ids, "workout id")

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return [
            BatchOperationItem(
                data=DeleteTarget(workout_id=wid, cascade=self.request.cascade),
                id=wid,
            )
            for wid in self.request.workout_ids
        ]

    def respond(self, result: BatchOperationResult[Any], **fields: Any) -> BatchOperationResponse:
        sessions = sum(
            outcome.cascaded_sessions
            for outcome in result.successful
            if isinstance(outcome, DeleteOutcome)
        )
        return super().respond(
            result, cascaded_deletions=CascadedDeletions(sessions=sessions), **fields
        )


@register_operation(BatchOperationType.DUPLICATE)
class DuplicateOperation(BatchOperation[BatchDuplicateTemplateRequest]):
    def check_structure(self, result: BatchValidationResult) -> None:
        ids = self.request.template_ids
        if require_items(result, ids, "template_ids"):
            check_unique(result, ids, "template id")
        if self.request.copies < 1:
            result.add(
                f"copies must be >= 1, got {self.request.copies}",
                "INVALID_COPIES",
                field="copies",
            )

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        r = self.request
        items: list[BatchOperationItem[Any]] = []
        for source_id in r.template_ids:
            for n in range(1, r.copies + 1):
                job = DuplicateJob(
                    source_id=source_id,
                    new_id=generate_id(),
                    copy_number=n,
                    copies=r.copies,
                    name_suffix=r.name_suffix,
                    modifications=dict(r.modifications),
                )
                items.append(BatchOperationItem(data=job, id=job.new_id))
        return items

    def item_key(self, item: BatchOperationItem[Any]) -> str:
        return item.data.source_id


# ---------------------------------------------------------------------------
# Import / export
# ---------------------------------------------------------------------------


def _load_adapter(result: BatchValidationResult, name: str) -> FormatAdapter | None:
    try:
        return get_format(name)
    except UnsupportedFormatError as exc:
        result.add(str(exc), "UNSUPPORTED_FORMAT", field="format")
        return None


@register_operation(BatchOperationType.IMPORT)
class ImportOperation(BatchOperation[BatchImportRequest]):
    """Records without an ``id`` get a generated one so items can be keyed."""

    def __init__(self, request: BatchImportRequest, ctx: OperationContext) -> None:
        super().__init__(request, ctx)
        self._records: list[dict[str, Any]] = []

    def check_structure(self, result: BatchValidationResult) -> None:
        adapter = _load_adapter(result, self.request.format)
        if adapter is None:
            return
        try:
            records = adapter.load(self.request.payload)
        except ValueError as exc:
            result.add(
                f"Could not parse {adapter.name} payload: {exc}",
                "UNPARSABLE_PAYLOAD",
                field="payload",
            )
            return
        if not require_items(result, records, "records"):
            return

        self._records = []
        for record in records:
            record = dict(record)
            if not record.get("id"):
                record["id"] = generate_id()
            record["id"] = str(record["id"])
            self._records.append(record)
        check_unique(result, (r["id"] for r in self._records), "record id")

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return [
            BatchOperationItem(
                data=ImportRecord(
                    record=record, update_existing=self.request.update_existing
                ),
                id=record["id"],
            )
            for record in self._records
        ]


@register_operation(BatchOperationType.EXPORT)
class ExportOperation(BatchOperation[BatchExportRequest]):
    response_cls = BatchExportResponse

    def __init__(self, request: BatchExportRequest, ctx: OperationContext) -> None:
        super().__init__(request, ctx)
        self._adapter: FormatAdapter | None = None

    def check_structure(self, result: BatchValidationResult) -> None:
        ids = self.request.template_ids
        if require_items(result, ids, "template_ids"):
            check_unique(result, ids, "template id")
        self._adapter = _load_adapter(result, self.request.format)

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return [
            BatchOperationItem(
                data=ExportTarget(
                    template_id=tid, include_sessions=self.request.include_sessions
                ),
                id=tid,
            )
            for tid in self.request.template_ids
        ]

    def respond(self, result: BatchOperationResult[Any], **fields: Any) -> BatchOperationResponse:
        adapter = self._adapter
        if adapter is None:
            return super().respond(result, **fields)
        return super().respond(
            result,
            payload=adapter.dump(list(result.successful)),
            content_type=adapter.content_type,
            format=adapter.name,
            **fields,
        )


# ---------------------------------------------------------------------------
# Session distribution (assign / schedule)
# ---------------------------------------------------------------------------


@register_operation(BatchOperationType.ASSIGN)
class AssignOperation(BatchOperation[BatchAssignWorkoutRequest]):
    """Plans the target pool into sessions, checks them for conflicts, then
    creates one session per bucket for every workout.

    Items are only known after planning, so item-level validation is keyed
    by workout id and applied to every session of that workout.
    """

    response_cls = BatchSessionResponse

    def __init__(self, request: BatchAssignWorkoutRequest, ctx: OperationContext) -> None:
        super().__init__(request, ctx)
        self.planner = DistributionPlanner(ctx.directory, ctx.skills)
        self.detector = ConflictDetector(ctx.schedule, ctx.directory)
        self.plan: DistributionPlan | None = None
        self.report: ConflictReport | None = None
        self.sessions: list[SessionDistributionSummary] = []

    def dates(self) -> list[date | None]:
        return [None]

    def check_structure(self, result: BatchValidationResult) -> None:
        r = self.request
        if require_items(result, r.workout_ids, "workout_ids"):
            check_unique(result, r.workout_ids, "workout id")
        if not r.targets:
            result.add("Target pool is empty", "EMPTY_POOL", field="targets")
        check_bulk_config(result, r.bulk, has_skills=self.ctx.skills is not None)

    def _build_items(self) -> list[BatchOperationItem[Any]]:
        return []

    def item_count(self) -> int:
        bulk = self.request.bulk
        per_workout = (
            len(bulk.session_configurations)
            if bulk.distribution_strategy is DistributionStrategy.MANUAL
            else bulk.number_of_sessions
        )
        return len(self.request.workout_ids) * len(self.dates()) * per_workout

    def item_key(self, item: BatchOperationItem[Any]) -> str:
        return item.data.session.template_id

    async def check_items(self) -> list[tuple[str, str]]:
        issues: list[tuple[str, str]] = []
        for workout_id in self.request.workout_ids:
            message = await self.handler.missing_template(workout_id)
            if message is not None:
                issues.append((workout_id, message))
        return issues

    async def prepare(self, validation: BatchValidationResult) -> PreparedBatch:
        bulk = self.request.bulk
        plan = await self.planner.plan(self.request.targets, bulk)
        plan.raise_for_errors()
        self.plan = plan
        self.warnings.extend(plan.warnings)

        pairs = self._expand(plan)
        self.sessions = [summary for _, summary in pairs]
        report = await self.detector.detect(self.sessions, bulk)
        self.report = report
        self.warnings.extend(report.messages())
        self.warnings.extend(
            f"{sid}: conflicts could not be resolved" for sid in report.unresolved
        )

        items: list[BatchOperationItem[Any]] = []
        rejected: dict[str, BatchOperationError] = {}
        for workout_id, summary in pairs:
            session = WorkoutSession(
                id=summary.session_id,
                template_id=workout_id,
                name=summary.session_name,
                start_time=summary.start_time,
                duration=summary.estimated_duration or bulk.session_duration,
                facility_id=summary.facility,
                equipment=list(summary.equipment),
                player_ids=list(summary.player_ids),
                team_ids=list(summary.team_ids),
                staff_ids=list(summary.staff_ids),
            )
            item = BatchOperationItem(
                data=SessionPlanItem(session=session, notify=self.options.notify_players),
                id=session.id,
            )
            items.append(item)
            if report.is_blocked(session.id):
                rejected[item.id] = BatchOperationError(
                    item_id=item.id,
                    error="; ".join(str(c) for c in summary.conflicts),
                    data=item.data,
                    retryable=False,
                    code=ErrorCode.CONFLICT,
                )

        rejected.update(self.rejected(items, validation))
        logger.info(
            "%s: %d session(s) planned, %d blocked",
            self.operation_type,
            len(items),
            len(report.blocked_session_ids),
        )
        return PreparedBatch(items=items, rejected=rejected)

    def _expand(
        self, plan: DistributionPlan
    ) -> list[tuple[str, SessionDistributionSummary]]:
        """One summary per (date, workout, bucket); the first use of a bucket
        keeps the planner's session id."""
        pairs: list[tuple[str, SessionDistributionSummary]] = []
        used: set[str] = set()
        for day in self.dates():
            for workout_id in self.request.workout_ids:
                for bucket in plan.sessions:
                    summary = replace(
                        bucket,
                        player_ids=list(bucket.player_ids),
                        team_ids=list(bucket.team_ids),
                        equipment=list(bucket.equipment),
                        staff_ids=list(bucket.staff_ids),
                        conflicts=[],
                    )
                    if summary.session_id in used:
                        summary.session_id = generate_id()
                    used.add(summary.session_id)
                    if day is not None:
                        summary.start_time = on_date(bucket.start_time, day)
                        summary.session_name = f"{bucket.session_name} ({day.isoformat()})"
                    pairs.append((workout_id, summary))
        return pairs

    def respond(self, result: BatchOperationResult[Any], **fields: Any) -> BatchOperationResponse:
        return super().respond(
            result,
            distribution=self.sessions,
            conflicts=self.report,
            unassigned=list(self.plan.unassigned) if self.plan else [],
            **fields,
        )


@register_operation(BatchOperationType.SCHEDULE)
class ScheduleOperation(AssignOperation):
    """Assign repeated on each date of the request's schedule pattern."""

    request: BatchScheduleWorkoutRequest  # type: ignore[assignment]

    def dates(self) -> list[date | None]:
        return list(self.request.pattern.expand())

    def check_structure(self, result: BatchValidationResult) -> None:
        super().check_structure(result)
        check_pattern(result, self.request.pattern)
