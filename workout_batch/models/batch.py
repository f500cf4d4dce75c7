from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from workout_batch.exceptions import InvalidItemTransitionError
from workout_batch.models.utils import generate_id

T = TypeVar("T")


class BatchOperationType(enum.StrEnum):
    """Which sub-pipeline the orchestrator drives."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    SCHEDULE = "schedule"
    DUPLICATE = "duplicate"
    EXPORT = "export"
    IMPORT = "import"


class ItemStatus(enum.StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCESS, ItemStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[ItemStatus, set[ItemStatus]] = {
    ItemStatus.PENDING: {ItemStatus.PROCESSING},
    ItemStatus.PROCESSING: {ItemStatus.SUCCESS, ItemStatus.FAILED},
    ItemStatus.SUCCESS: set(),
    ItemStatus.FAILED: set(),
}


class ErrorCode(enum.StrEnum):
    ITEM_FAILED = "ITEM_FAILED"
    TIMEOUT = "TIMEOUT"
    SKIPPED = "SKIPPED"
    ROLLED_BACK = "ROLLED_BACK"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"


SKIPPED_MESSAGE = "Skipped: batch halted before this item was processed"


@dataclass
class BatchOperationItem(Generic[T]):
    """One unit of work inside a batch.

    Owned by the run that created it and mutated only by the executor.
    Status moves ``pending → processing → success|failed`` and never back;
    a retry keeps the item in ``processing`` and bumps ``retry_count``.
    """

    data: T
    id: str = field(default_factory=generate_id)
    status: ItemStatus = ItemStatus.PENDING
    error: str | None = None
    retryable: bool = False
    retry_count: int = 0
    result: Any = None

    def _move(self, new_status: ItemStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidItemTransitionError(
                f"Item {self.id}: cannot move from {self.status} to {new_status}"
            )
        self.status = new_status

    def start(self) -> None:
        self._move(ItemStatus.PROCESSING)

    def record_retry(self) -> None:
        if self.status is not ItemStatus.PROCESSING:
            raise InvalidItemTransitionError(
                f"Item {self.id}: retries are only allowed while processing"
            )
        self.retry_count += 1

    def succeed(self, result: Any = None) -> None:
        self._move(ItemStatus.SUCCESS)
        self.result = result
        self.error = None

    def fail(self, error: str, *, retryable: bool = False) -> None:
        self._move(ItemStatus.FAILED)
        self.error = error
        self.retryable = retryable


@dataclass(frozen=True)
class BatchOperationError:
    """A failed (or skipped / rolled back) item in a result."""

    item_id: str
    error: str
    data: Any = None
    retryable: bool = False
    code: ErrorCode = ErrorCode.ITEM_FAILED


@dataclass(frozen=True)
class RollbackFailure:
    """An item that could not be reverted, distinct from its original failure."""

    item_id: str
    error: str
    original_error: str | None = None


@dataclass(frozen=True)
class BatchOperationResult(Generic[T]):
    """Immutable summary produced once, when a batch completes.

    ``success_count + failure_count == total`` always holds. Items left
    ``pending`` by a cancellation are not counted in ``total``; their ids are
    listed in ``pending_item_ids``.
    """

    operation_type: BatchOperationType
    successful: tuple[T, ...] = ()
    failed: tuple[BatchOperationError, ...] = ()
    total: int = 0
    success_count: int = 0
    failure_count: int = 0
    duration: float = 0.0
    pending_item_ids: tuple[str, ...] = ()
    cancelled: bool = False
    rolled_back: bool = False
    rollback_failures: tuple[RollbackFailure, ...] = ()

    def __post_init__(self) -> None:
        if self.success_count != len(self.successful):
            raise ValueError("success_count does not match successful items")
        if self.failure_count != len(self.failed):
            raise ValueError("failure_count does not match failed items")
        if self.success_count + self.failure_count != self.total:
            raise ValueError(
                f"success_count ({self.success_count}) + failure_count "
                f"({self.failure_count}) != total ({self.total})"
            )

    @classmethod
    def build(
        cls,
        operation_type: BatchOperationType,
        *,
        successful: Iterable[T] = (),
        failed: Iterable[BatchOperationError] = (),
        duration: float = 0.0,
        pending_item_ids: Iterable[str] = (),
        cancelled: bool = False,
        rolled_back: bool = False,
        rollback_failures: Iterable[RollbackFailure] = (),
    ) -> BatchOperationResult[T]:
        ok = tuple(successful)
        bad = tuple(failed)
        return cls(
            operation_type=operation_type,
            successful=ok,
            failed=bad,
            total=len(ok) + len(bad),
            success_count=len(ok),
            failure_count=len(bad),
            duration=duration,
            pending_item_ids=tuple(pending_item_ids),
            cancelled=cancelled,
            rolled_back=rolled_back,
            rollback_failures=tuple(rollback_failures),
        )

    @classmethod
    def empty(cls, operation_type: BatchOperationType) -> BatchOperationResult[T]:
        return cls(operation_type=operation_type)

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0
