from workout_batch.facade.core import BatchOrchestrator
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
    request_from_dict,
)

__all__ = [
    "BatchAssignWorkoutRequest",
    "BatchCreateWorkoutRequest",
    "BatchDeleteWorkoutRequest",
    "BatchDeleteWorkoutResponse",
    "BatchDuplicateTemplateRequest",
    "BatchExportRequest",
    "BatchExportResponse",
    "BatchImportRequest",
    "BatchOperationResponse",
    "BatchOrchestrator",
    "BatchRequest",
    "BatchScheduleWorkoutRequest",
    "BatchSessionResponse",
    "BatchUpdateWorkoutRequest",
    "CascadedDeletions",
    "request_from_dict",
]
