from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from workout_batch.models.batch import ItemStatus, RollbackFailure
from workout_batch.models.utils import utcnow


@dataclass
class AffectedItem:
    """Prior/new state pair for one item (plus any cascaded children).

    ``applied`` is False while nothing has been written for the item; a
    failed item that never wrote anything is left alone by rollback.
    """

    id: str
    type: str
    previous_state: dict[str, Any] | None
    new_state: dict[str, Any] | None = None
    status: ItemStatus = ItemStatus.PROCESSING
    error: str | None = None
    applied: bool = False
    reverted: bool = False
    related: list[AffectedItem] = field(default_factory=list)


@dataclass
class BatchOperationSnapshot:
    operation_id: str
    timestamp: datetime = field(default_factory=utcnow)
    affected_items: list[AffectedItem] = field(default_factory=list)

    def get(self, item_id: str) -> AffectedItem | None:
        for entry in self.affected_items:
            if entry.id == item_id:
                return entry
        return None


class BatchRollbackRequest(BaseModel):
    operation_id: str
    partial: bool = False
    preserve_successful: bool = False
    item_ids: list[str] | None = None
    reason: str | None = None


@dataclass
class RollbackOutcome:
    operation_id: str
    reverted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[RollbackFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures
