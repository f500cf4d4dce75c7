"""Workout entities persisted through the Store.

Pydantic schemas so imported payloads and API bodies are validated at the
boundary; ``model_dump(mode="json")`` is the snapshot/export representation.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from workout_batch.models.utils import generate_id, utcnow


class WorkoutType(enum.StrEnum):
    STRENGTH = "strength"
    CONDITIONING = "conditioning"
    HYBRID = "hybrid"
    AGILITY = "agility"


class SessionStatus(enum.StrEnum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class WorkoutTemplate(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str = Field(min_length=1)
    type: WorkoutType = WorkoutType.STRENGTH
    description: str = ""
    duration: int = Field(default=60, gt=0, description="Minutes")
    exercises: list[dict[str, Any]] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    assigned_player_ids: list[str] = Field(default_factory=list)
    assigned_team_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def content_dump(self) -> dict[str, Any]:
        """Dump without timestamps, for comparing template content."""
        return self.model_dump(mode="json", exclude={"created_at", "updated_at"})


class WorkoutSession(BaseModel):
    id: str = Field(default_factory=generate_id)
    template_id: str
    name: str
    start_time: datetime | None = None
    duration: int = Field(default=60, gt=0, description="Minutes")
    facility_id: str | None = None
    equipment: list[str] = Field(default_factory=list)
    player_ids: list[str] = Field(default_factory=list)
    team_ids: list[str] = Field(default_factory=list)
    staff_ids: list[str] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.SCHEDULED
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def end_time(self) -> datetime | None:
        if self.start_time is None:
            return None
        return self.start_time + timedelta(minutes=self.duration)


class WorkoutUpdate(BaseModel):
    """Partial update for one template; ``changes`` maps field names to values."""

    workout_id: str
    changes: dict[str, Any] = Field(default_factory=dict)

    def apply_to(self, template: WorkoutTemplate) -> WorkoutTemplate:
        """Return *template* with ``changes`` applied and re-validated.

        ``id`` and ``created_at`` are never changed.
        """
        merged = {
            **template.model_dump(),
            **self.changes,
            "id": template.id,
            "created_at": template.created_at,
        }
        return WorkoutTemplate.model_validate(merged)
