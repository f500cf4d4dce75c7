"""Configuration objects accepted with every batch request.

Every field carries its default here so callers never rely on
"whatever happens to be passed".
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field

DEFAULT_PARALLEL_CHUNK_SIZE = 10
DEFAULT_SNAPSHOT_RETENTION_HOURS = 24


class OnErrorPolicy(enum.StrEnum):
    CONTINUE = "continue"
    STOP = "stop"
    ROLLBACK = "rollback"


class RetryPolicy(BaseModel):
    max_retries: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=1.0, ge=0, description="Seconds between attempts")
    retryable_errors: list[str] = Field(
        default_factory=list,
        description="Exception class names or message fragments that may be retried",
    )

    def matches(self, exc: BaseException) -> bool:
        """True if *exc* is listed in ``retryable_errors`` or flagged retryable."""
        if getattr(exc, "retryable", False):
            return True
        names = {cls.__name__ for cls in type(exc).__mro__}
        message = str(exc)
        return any(
            pattern in names or pattern in message for pattern in self.retryable_errors
        )


class BatchOperationOptions(BaseModel):
    parallel: bool = False
    chunk_size: int | None = Field(
        default=None,
        ge=1,
        description="Items dispatched together; defaults to 10 when parallel, else 1",
    )
    on_error: OnErrorPolicy = OnErrorPolicy.CONTINUE
    atomic: bool = False
    validate_only: bool = False
    enable_rollback: bool = False
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    timeout_seconds: float = Field(default=30.0, gt=0)
    notify_players: bool = False
    snapshot_retention_hours: float = Field(
        default=DEFAULT_SNAPSHOT_RETENTION_HOURS, gt=0
    )

    @property
    def effective_on_error(self) -> OnErrorPolicy:
        """``atomic`` batches always roll back on the first failure."""
        if self.atomic:
            return OnErrorPolicy.ROLLBACK
        return self.on_error

    @property
    def effective_chunk_size(self) -> int:
        if self.chunk_size is not None:
            return self.chunk_size
        return DEFAULT_PARALLEL_CHUNK_SIZE if self.parallel else 1

    @property
    def takes_snapshots(self) -> bool:
        return self.enable_rollback or self.effective_on_error is OnErrorPolicy.ROLLBACK


class DistributionStrategy(enum.StrEnum):
    EVEN = "even"
    MANUAL = "manual"
    TEAM_BASED = "team-based"
    SKILL_BASED = "skill-based"


class SessionConfiguration(BaseModel):
    """Caller-defined session for the ``manual`` strategy."""

    name: str
    id: str | None = None
    player_ids: list[str] = Field(default_factory=list)
    team_ids: list[str] = Field(default_factory=list)
    start_time: datetime | None = None
    duration: int | None = None
    equipment: list[str] | None = None
    facility_id: str | None = None
    staff_ids: list[str] = Field(default_factory=list)


class BulkModeConfig(BaseModel):
    number_of_sessions: int = 1
    distribution_strategy: DistributionStrategy = DistributionStrategy.EVEN
    allow_player_overlap: bool = False
    session_configurations: list[SessionConfiguration] = Field(default_factory=list)

    base_start_time: datetime | None = None
    session_duration: int = Field(default=60, description="Minutes")
    stagger_start_times: bool = False
    stagger_interval: int = Field(default=15, description="Minutes between starts")
    session_name_prefix: str = "Session"

    facility_id: str | None = None
    equipment: list[str] = Field(default_factory=list)
    staff_ids: list[str] = Field(default_factory=list)
    equipment_capacity: dict[str, int] = Field(default_factory=dict)

    auto_resolve_conflicts: bool = True
    max_resolution_attempts: int = Field(default=4, ge=0)
    resolution_step_minutes: int = Field(default=15, gt=0)
    default_skill_score: float = 0.0
