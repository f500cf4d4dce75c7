from workout_batch.batch.manager import BaseRunManager, ScheduleInstruction
from workout_batch.batch.models import BatchRun
from workout_batch.batch.runner import run_batch, run_until
from workout_batch.batch.states import (
    CancelledState,
    CompletedState,
    FailedState,
    IdleState,
    NextState,
    ProcessingState,
    QueuedState,
    RollingBackState,
    RunState,
    State,
    StopState,
    ValidatingState,
    parse_run_state,
)

__all__ = [
    "BaseRunManager",
    "BatchRun",
    "CancelledState",
    "CompletedState",
    "FailedState",
    "IdleState",
    "NextState",
    "ProcessingState",
    "QueuedState",
    "RollingBackState",
    "RunState",
    "ScheduleInstruction",
    "State",
    "StopState",
    "ValidatingState",
    "parse_run_state",
    "run_batch",
    "run_until",
]
