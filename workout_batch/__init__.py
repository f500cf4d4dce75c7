from workout_batch.config import parse_config
from workout_batch.exceptions import (
    BatchOrchestrationError,
    BatchValidationError,
    WorkoutBatchError,
)
from workout_batch.facade import (
    BatchAssignWorkoutRequest,
    BatchCreateWorkoutRequest,
    BatchDeleteWorkoutRequest,
    BatchDuplicateTemplateRequest,
    BatchExportRequest,
    BatchImportRequest,
    BatchOperationResponse,
    BatchOrchestrator,
    BatchScheduleWorkoutRequest,
    BatchUpdateWorkoutRequest,
    request_from_dict,
)
from workout_batch.models import (
    BatchAssignmentTarget,
    BatchOperationOptions,
    BatchOperationResult,
    BatchOperationType,
    BatchRollbackRequest,
    BatchSchedulePattern,
    BulkModeConfig,
    WorkoutSession,
    WorkoutTemplate,
    WorkoutUpdate,
)

__all__ = [
    "BatchAssignWorkoutRequest",
    "BatchAssignmentTarget",
    "BatchCreateWorkoutRequest",
    "BatchDeleteWorkoutRequest",
    "BatchDuplicateTemplateRequest",
    "BatchExportRequest",
    "BatchImportRequest",
    "BatchOperationOptions",
    "BatchOperationResponse",
    "BatchOperationResult",
    "BatchOperationType",
    "BatchOrchestrationError",
    "BatchOrchestrator",
    "BatchRollbackRequest",
    "BatchSchedulePattern",
    "BatchScheduleWorkoutRequest",
    "BatchUpdateWorkoutRequest",
    "BatchValidationError",
    "BulkModeConfig",
    "WorkoutBatchError",
    "WorkoutSession",
    "WorkoutTemplate",
    "WorkoutUpdate",
    "parse_config",
    "request_from_dict",
]
