from workout_batch.execution.executor import BatchExecutor
from workout_batch.execution.handlers import (
    OperationHandler,
    build_handler,
    get_handler_class,
    register_operation_handler,
)
from workout_batch.execution.payloads import (
    DeleteOutcome,
    DeleteTarget,
    DuplicateJob,
    ExportTarget,
    ImportRecord,
    SessionPlanItem,
)

__all__ = [
    "BatchExecutor",
    "DeleteOutcome",
    "DeleteTarget",
    "DuplicateJob",
    "ExportTarget",
    "ImportRecord",
    "OperationHandler",
    "SessionPlanItem",
    "build_handler",
    "get_handler_class",
    "register_operation_handler",
]
