"""Public request and response types for the workout_batch API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import TypeAdapter, ValidationError

from workout_batch.conflicts.detector import ConflictReport
from workout_batch.exceptions import BatchValidationError
from workout_batch.models import (
    BatchAssignmentTarget,
    BatchOperationOptions,
    BatchOperationResult,
    BatchOperationType,
    BatchSchedulePattern,
    BatchValidationResult,
    BulkModeConfig,
    ProgressStatus,
    SessionDistributionSummary,
    WorkoutTemplate,
    WorkoutUpdate,
)

# ── Requests ─────────────────────────────────────────────────────────


@dataclass(kw_only=True)
class BatchRequest:
    operation_type: ClassVar[BatchOperationType]

    options: BatchOperationOptions = field(default_factory=BatchOperationOptions)


@dataclass(kw_only=True)
class BatchCreateWorkoutRequest(BatchRequest):
    operation_type = BatchOperationType.CREATE

    templates: list[WorkoutTemplate]


@dataclass(kw_only=True)
class BatchUpdateWorkoutRequest(BatchRequest):
    operation_type = BatchOperationType.UPDATE

    updates: list[WorkoutUpdate]


@dataclass(kw_only=True)
class BatchDeleteWorkoutRequest(BatchRequest):
    operation_type = BatchOperationType.DELETE

    workout_ids: list[str]
    cascade: bool = False


@dataclass(kw_only=True)
class BatchAssignWorkoutRequest(BatchRequest):
    """Distribute *targets* into sessions of every workout in ``workout_ids``."""

    operation_type = BatchOperationType.ASSIGN

    workout_ids: list[str]
    targets: list[BatchAssignmentTarget]
    bulk: BulkModeConfig = field(default_factory=BulkModeConfig)


@dataclass(kw_only=True)
class BatchScheduleWorkoutRequest(BatchRequest):
    """Like assign, repeated on every date the pattern expands to."""

    operation_type = BatchOperationType.SCHEDULE

    workout_ids: list[str]
    targets: list[BatchAssignmentTarget]
    pattern: BatchSchedulePattern
    bulk: BulkModeConfig = field(default_factory=BulkModeConfig)


@dataclass(kw_only=True)
class BatchDuplicateTemplateRequest(BatchRequest):
    operation_type = BatchOperationType.DUPLICATE

    template_ids: list[str]
    copies: int = 1
    name_suffix: str = " (Copy)"
    modifications: dict[str, Any] = field(default_factory=dict)


@dataclass(kw_only=True)
class BatchImportRequest(BatchRequest):
    """``payload`` is opaque to the core and decoded by the format adapter."""

    operation_type = BatchOperationType.IMPORT

    payload: bytes | str
    format: str = "json"
    update_existing: bool = False


@dataclass(kw_only=True)
class BatchExportRequest(BatchRequest):
    operation_type = BatchOperationType.EXPORT

    template_ids: list[str]
    format: str = "json"
    include_sessions: bool = False


REQUEST_TYPES: dict[BatchOperationType, type[BatchRequest]] = {
    cls.operation_type: cls
    for cls in (
        BatchCreateWorkoutRequest,
        BatchUpdateWorkoutRequest,
        BatchDeleteWorkoutRequest,
        BatchAssignWorkoutRequest,
        BatchScheduleWorkoutRequest,
        BatchDuplicateTemplateRequest,
        BatchImportRequest,
        BatchExportRequest,
    )
}


def request_from_dict(document: dict[str, Any]) -> BatchRequest:
    """Build a typed request from a plain document.

    The document names its operation under ``"operation"``; every other key
    is a field of the matching request type.  Unknown operations and
    malformed bodies raise :class:`BatchValidationError`.
    """
    body = dict(document)
    operation = body.pop("operation", None)
    result = BatchValidationResult()
    try:
        cls = REQUEST_TYPES[BatchOperationType(operation)]
    except ValueError:
        result.add(f"Unknown operation type: {operation!r}", "UNKNOWN_OPERATION")
        raise BatchValidationError(result) from None

    try:
        return TypeAdapter(cls).validate_python(body)
    except ValidationError as exc:
        for error in exc.errors():
            where = ".".join(str(p) for p in error["loc"])
            result.add(f"{where}: {error['msg']}", "INVALID_REQUEST", field=where)
        raise BatchValidationError(result) from exc


# ── Responses ────────────────────────────────────────────────────────


@dataclass
class BatchOperationResponse:
    """Result from :meth:`BatchOrchestrator.submit`.

    ``operation_id`` and ``status`` are ``None`` for ``validate_only``
    requests, which never create a run.
    """

    request: BatchRequest
    result: BatchOperationResult[Any]
    operation_id: str | None = None
    status: ProgressStatus | None = None
    validation: BatchValidationResult | None = None
    warnings: list[str] = field(default_factory=list)
    history: list[str] = field(default_factory=list)


@dataclass
class CascadedDeletions:
    sessions: int = 0


@dataclass
class BatchDeleteWorkoutResponse(BatchOperationResponse):
    cascaded_deletions: CascadedDeletions = field(default_factory=CascadedDeletions)


@dataclass
class BatchSessionResponse(BatchOperationResponse):
    """Response for assign and schedule requests.

    ``distribution`` lists every concrete session the batch tried to
    create, with conflicts and any shifted start time applied.
    """

    distribution: list[SessionDistributionSummary] = field(default_factory=list)
    conflicts: ConflictReport | None = None
    unassigned: list[BatchAssignmentTarget] = field(default_factory=list)


@dataclass
class BatchExportResponse(BatchOperationResponse):
    payload: bytes = b""
    content_type: str = ""
    format: str = ""
