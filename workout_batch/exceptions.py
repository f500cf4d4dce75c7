"""Custom exceptions for batch workout operations."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workout_batch.facade.types import BatchOperationResponse
    from workout_batch.models.batch import RollbackFailure
    from workout_batch.models.validation import BatchValidationResult


class WorkoutBatchError(Exception):
    """Base class for every error raised by workout_batch."""


class BatchValidationError(WorkoutBatchError):
    """Raised when a request fails structural validation.

    The run never reaches the executor; ``result`` carries every issue found.
    """

    def __init__(self, result: BatchValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(f"Batch validation failed: {messages}")


class BatchOrchestrationError(WorkoutBatchError):
    """A run could not proceed at all (e.g. persistence unreachable).

    ``response`` is the terminal, zero-item response recorded for the run.
    ``rollback_failures`` lists applied items that could not be reverted.
    """

    def __init__(
        self,
        message: str,
        response: BatchOperationResponse | None = None,
        rollback_failures: Sequence[RollbackFailure] = (),
    ):
        self.response = response
        self.rollback_failures = tuple(rollback_failures)
        super().__init__(message)


class CollaboratorUnavailableError(WorkoutBatchError):
    """A required external collaborator cannot be reached."""


class BatchAbortedError(WorkoutBatchError):
    """A run stopped part-way on a fatal error.

    When the run took snapshots its applied items were reverted first;
    ``rollback_failures`` lists the ones that could not be.
    """

    def __init__(
        self,
        message: str,
        *,
        rolled_back: bool = False,
        rollback_failures: Sequence[RollbackFailure] = (),
    ):
        self.rolled_back = rolled_back
        self.rollback_failures = tuple(rollback_failures)
        super().__init__(message)


class ItemOperationError(WorkoutBatchError):
    """Failure applying one unit of work."""

    def __init__(self, message: str, *, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class ItemTimeoutError(ItemOperationError):
    """A collaborator call exceeded its timeout. Always retryable."""

    def __init__(self, message: str):
        super().__init__(message, retryable=True)


class EntityNotFoundError(ItemOperationError):
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class EntityExistsError(ItemOperationError):
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} already exists")


class InvalidItemTransitionError(WorkoutBatchError):
    """An item status change would break the monotonic lifecycle."""


class ProgressFrozenError(WorkoutBatchError):
    """Progress for a terminal run cannot be changed."""


class SnapshotNotFoundError(WorkoutBatchError):
    pass


class SnapshotExpiredError(WorkoutBatchError):
    pass


class UnsupportedFormatError(WorkoutBatchError, ValueError):
    """Raised when no format adapter is registered for a format name."""


class DistributionConfigError(WorkoutBatchError, ValueError):
    """The distribution configuration cannot produce any session."""
