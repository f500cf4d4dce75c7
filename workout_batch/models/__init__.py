"""Domain models: dataclasses and pydantic schemas with no infrastructure
dependencies.

The SQLAlchemy ORM rows used by ``PostgresStore`` live separately in
``workout_batch.db.models`` and map to/from these models.
"""

from workout_batch.models.batch import (
    BatchOperationError,
    BatchOperationItem,
    BatchOperationResult,
    BatchOperationType,
    ErrorCode,
    ItemStatus,
    RollbackFailure,
)
from workout_batch.models.options import (
    BatchOperationOptions,
    BulkModeConfig,
    DistributionStrategy,
    OnErrorPolicy,
    RetryPolicy,
    SessionConfiguration,
)
from workout_batch.models.progress import (
    BatchOperationProgress,
    ProgressCounter,
    ProgressStatus,
)
from workout_batch.models.session import (
    ConflictCategory,
    SessionConflict,
    SessionDistributionSummary,
)
from workout_batch.models.snapshot import (
    AffectedItem,
    BatchOperationSnapshot,
    BatchRollbackRequest,
    RollbackOutcome,
)
from workout_batch.models.targets import (
    BatchAssignmentTarget,
    BatchSchedulePattern,
    PatternType,
    TargetType,
)
from workout_batch.models.validation import BatchValidationResult, ValidationIssue
from workout_batch.models.workout import (
    SessionStatus,
    WorkoutSession,
    WorkoutTemplate,
    WorkoutType,
    WorkoutUpdate,
)

__all__ = [
    "AffectedItem",
    "BatchAssignmentTarget",
    "BatchOperationError",
    "BatchOperationItem",
    "BatchOperationOptions",
    "BatchOperationProgress",
    "BatchOperationResult",
    "BatchOperationSnapshot",
    "BatchOperationType",
    "BatchRollbackRequest",
    "BatchSchedulePattern",
    "BatchValidationResult",
    "BulkModeConfig",
    "ConflictCategory",
    "DistributionStrategy",
    "ErrorCode",
    "ItemStatus",
    "OnErrorPolicy",
    "PatternType",
    "ProgressCounter",
    "ProgressStatus",
    "RetryPolicy",
    "RollbackFailure",
    "RollbackOutcome",
    "SessionConfiguration",
    "SessionConflict",
    "SessionDistributionSummary",
    "SessionStatus",
    "TargetType",
    "ValidationIssue",
    "WorkoutSession",
    "WorkoutTemplate",
    "WorkoutType",
    "WorkoutUpdate",
]
