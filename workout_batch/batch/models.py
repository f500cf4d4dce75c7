from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from workout_batch.batch.states import IdleState, State, parse_run_state
from workout_batch.models import BatchOperationType


@dataclass
class BatchRun:
    """One orchestrated request and its state history.

    ``states`` holds JSON dumps with index 0 as the *current* state; new
    states are prepended so the full path through the machine is kept.
    ``operation_id`` stays ``None`` until the run is queued.
    """

    operation_type: BatchOperationType
    operation_id: str | None = None
    states: list[dict[str, Any]] = field(
        default_factory=lambda: [IdleState().model_dump(mode="json")]
    )

    @property
    def current_state(self) -> State:
        return parse_run_state(self.states[0])

    @property
    def current_status(self) -> str:
        return self.states[0]["status"]

    @property
    def history(self) -> list[str]:
        """Statuses visited, oldest first."""
        return [s["status"] for s in reversed(self.states)]

    def update_state(self, state: State) -> None:
        self.states.insert(0, state.model_dump(mode="json"))  # type: ignore[attr-defined]
