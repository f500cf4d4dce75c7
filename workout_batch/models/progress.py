from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime

from workout_batch.models.batch import BatchOperationError, BatchOperationType
from workout_batch.models.utils import utcnow


class ProgressStatus(enum.StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    ROLLING_BACK = "rolling_back"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProgressStatus.COMPLETED,
            ProgressStatus.FAILED,
            ProgressStatus.CANCELLED,
        )


def percentage(current: int, total: int) -> int:
    """``round(current / total * 100)`` rounding halves up."""
    if total <= 0:
        return 0
    return (current * 200 + total) // (total * 2)


@dataclass(frozen=True)
class ProgressCounter:
    current: int
    total: int
    percentage: int


@dataclass
class BatchOperationProgress:
    """Live state of one run.

    Written only by the owning run; readers get copies from the tracker.
    """

    operation_id: str
    type: BatchOperationType
    total: int
    status: ProgressStatus = ProgressStatus.QUEUED
    current: int = 0
    start_time: datetime = field(default_factory=utcnow)
    estimated_time_remaining: float | None = None
    current_item: str | None = None
    errors: list[BatchOperationError] = field(default_factory=list)
    cancellable: bool = True
    finished_at: datetime | None = None

    @property
    def progress(self) -> ProgressCounter:
        return ProgressCounter(
            current=self.current,
            total=self.total,
            percentage=percentage(self.current, self.total),
        )

    def copy(self) -> BatchOperationProgress:
        return replace(self, errors=list(self.errors))
