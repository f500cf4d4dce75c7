"""Run states for the batch orchestrator state machine.

The state hierarchy controls how the runner decides what to do after
each transition.

Hierarchy:
    State
    ├── NextState   → runner re-advances immediately
    └── StopState   → runner stops (terminal)

Lifecycle::

    IDLE → VALIDATING → QUEUED → PROCESSING ─┬─────────────────→ COMPLETED | FAILED | CANCELLED
                                             └→ ROLLING_BACK ──→ COMPLETED | FAILED | CANCELLED
"""
# pyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from workout_batch.models.utils import utcnow


class State:
    """Base marker for all states."""


class NextState(State):
    """Transition state; the runner should advance immediately."""


class StopState(State):
    """Terminal state; the runner does not reschedule."""


class IdleState(BaseModel, NextState):
    """Request received, nothing checked yet."""

    status: Literal["IDLE"] = "IDLE"
    timestamp: datetime = Field(default_factory=utcnow)


class ValidatingState(BaseModel, NextState):
    status: Literal["VALIDATING"] = "VALIDATING"
    started_at: datetime = Field(default_factory=utcnow)


class QueuedState(BaseModel, NextState):
    """Validation passed; the run owns an ``operation_id`` from here on."""

    status: Literal["QUEUED"] = "QUEUED"
    operation_id: str
    queued_at: datetime = Field(default_factory=utcnow)


class ProcessingState(BaseModel, NextState):
    status: Literal["PROCESSING"] = "PROCESSING"
    item_count: int = 0
    started_at: datetime = Field(default_factory=utcnow)


class RollingBackState(BaseModel, NextState):
    """Entered from processing when applied items are being reverted."""

    status: Literal["ROLLING_BACK"] = "ROLLING_BACK"
    started_at: datetime = Field(default_factory=utcnow)


class CompletedState(BaseModel, StopState):
    """The executor produced a terminal result (item failures included)."""

    status: Literal["COMPLETED"] = "COMPLETED"
    success_count: int = 0
    failure_count: int = 0
    completed_at: datetime = Field(default_factory=utcnow)


class CancelledState(BaseModel, StopState):
    status: Literal["CANCELLED"] = "CANCELLED"
    success_count: int = 0
    pending_count: int = 0
    cancelled_at: datetime = Field(default_factory=utcnow)


class FailedState(BaseModel, StopState):
    """The whole run could not proceed."""

    status: Literal["FAILED"] = "FAILED"
    error_message: str
    previous_status: str
    failed_at: datetime = Field(default_factory=utcnow)


RunState = (
    IdleState
    | ValidatingState
    | QueuedState
    | ProcessingState
    | RollingBackState
    | CompletedState
    | CancelledState
    | FailedState
)

_state_map: dict[str, type[BaseModel]] = {
    "IDLE": IdleState,
    "VALIDATING": ValidatingState,
    "QUEUED": QueuedState,
    "PROCESSING": ProcessingState,
    "ROLLING_BACK": RollingBackState,
    "COMPLETED": CompletedState,
    "CANCELLED": CancelledState,
    "FAILED": FailedState,
}


def parse_run_state(state_dict: dict) -> State:
    status = state_dict.get("status")
    if status is None:
        raise ValueError("State dict missing 'status' key")
    cls = _state_map.get(status)
    if cls is None:
        raise ValueError(f"Unknown run state: {status}")
    return cls.model_validate(state_dict)  # type: ignore[return-value]
