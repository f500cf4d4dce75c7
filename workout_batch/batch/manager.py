"""Base run manager: the state-machine orchestrator for one batch run.

The manager never schedules work directly; ``try_advance_state`` returns
a ``ScheduleInstruction`` that the runner interprets.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from workout_batch.batch.models import BatchRun
from workout_batch.batch.states import (
    CancelledState,
    CompletedState,
    FailedState,
    NextState,
    ProcessingState,
    QueuedState,
    RollingBackState,
    State,
    StopState,
)
from workout_batch.exceptions import BatchValidationError
from workout_batch.models import ProgressStatus
from workout_batch.tracking.progress import ProgressTracker

logger = logging.getLogger(__name__)

_PROGRESS_STATUS: dict[type[State], ProgressStatus] = {
    QueuedState: ProgressStatus.QUEUED,
    ProcessingState: ProgressStatus.PROCESSING,
    RollingBackState: ProgressStatus.ROLLING_BACK,
    CompletedState: ProgressStatus.COMPLETED,
    CancelledState: ProgressStatus.CANCELLED,
    FailedState: ProgressStatus.FAILED,
}


@dataclass
class ScheduleInstruction:
    """What the runner should do after a state transition.

    * ``stop=True``  → terminal, do not reschedule
    * ``stop=False`` → advance again immediately
    """

    stop: bool = False


class BaseRunManager(ABC):
    """State-machine orchestrator for a single run.

    Sub-classes implement ``_transition`` which maps
    ``current_state → new_state | None``.
    """

    def __init__(self, run: BatchRun, tracker: ProgressTracker) -> None:
        self.run = run
        self.tracker = tracker

    @property
    def label(self) -> str:
        return self.run.operation_id or self.run.operation_type.value

    # -- Sub-class hook -------------------------------------------------------

    @abstractmethod
    async def _transition(self, current_state: State) -> State | None:
        """Return the next state, or ``None`` to stop."""

    # -- Core loop step -------------------------------------------------------

    def record_state(self, state: State) -> None:
        """Persist *state* and mirror it into the progress tracker."""
        self.run.update_state(state)
        status = _PROGRESS_STATUS.get(type(state))
        op_id = self.run.operation_id
        if status is None or op_id is None:
            return
        progress = self.tracker.get(op_id)
        if progress is None or progress.status is status:
            return
        if status.is_terminal:
            self.tracker.finish(op_id, status)
        elif status is ProgressStatus.PROCESSING:
            self.tracker.mark_processing(op_id)
        elif status is ProgressStatus.ROLLING_BACK:
            self.tracker.mark_rolling_back(op_id)

    async def try_advance_state(self) -> ScheduleInstruction:
        """Advance one step and return what the runner should do next.

        Validation failures are recorded and re-raised to the caller; any
        other error moves the run to :class:`FailedState`.
        """
        current_state = self.run.current_state
        try:
            new_state = await self._transition(current_state)

            if new_state is None:
                return ScheduleInstruction(stop=True)

            self.record_state(new_state)

            if isinstance(new_state, StopState):
                logger.info("[%s] Terminal state: %s", self.label, self.run.current_status)
                return ScheduleInstruction(stop=True)

            if isinstance(new_state, NextState):
                logger.debug("[%s] Advancing to %s", self.label, self.run.current_status)
                return ScheduleInstruction(stop=False)

            raise ValueError(f"Unknown state base class for {new_state}")

        except BatchValidationError as exc:
            logger.info("[%s] Validation failed: %s", self.label, exc)
            self.record_state(
                FailedState(
                    error_message=str(exc),
                    previous_status=self.run.current_status,
                )
            )
            raise

        except Exception as exc:
            logger.error(
                "[%s] Error advancing state: %s", self.label, exc, exc_info=True
            )
            self.record_state(
                FailedState(
                    error_message=str(exc),
                    previous_status=self.run.current_status,
                )
            )
            return ScheduleInstruction(stop=True)
