"""Typed per-item payloads for the operations that don't carry a domain
model directly (create items are ``WorkoutTemplate``, update items are
``WorkoutUpdate``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from workout_batch.models import WorkoutSession


@dataclass(frozen=True)
class DeleteTarget:
    workout_id: str
    cascade: bool = False


@dataclass(frozen=True)
class DeleteOutcome:
    workout_id: str
    cascaded_sessions: int = 0


@dataclass(frozen=True)
class SessionPlanItem:
    """One session to create for an assign/schedule batch."""

    session: WorkoutSession
    notify: bool = False


@dataclass(frozen=True)
class DuplicateJob:
    source_id: str
    new_id: str
    copy_number: int = 1
    copies: int = 1
    name_suffix: str = " (Copy)"
    modifications: dict[str, Any] = field(default_factory=dict)

    def copy_name(self, source_name: str) -> str:
        name = f"{source_name}{self.name_suffix}"
        if self.copies > 1:
            name = f"{name} {self.copy_number}"
        return name


@dataclass(frozen=True)
class ImportRecord:
    record: dict[str, Any]
    update_existing: bool = False


@dataclass(frozen=True)
class ExportTarget:
    template_id: str
    include_sessions: bool = False
