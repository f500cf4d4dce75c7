from __future__ import annotations

import logging

from workout_batch.batch.manager import BaseRunManager, ScheduleInstruction
from workout_batch.batch.states import StopState

logger = logging.getLogger(__name__)


async def run_batch(manager: BaseRunManager) -> None:
    """Drive a single run to a terminal state."""
    while True:
        instruction: ScheduleInstruction = await manager.try_advance_state()
        if instruction.stop:
            return


async def run_until(manager: BaseRunManager, status: str) -> None:
    """Advance *manager* until its current status is *status* (or terminal).

    Lets the caller run the synchronous prefix of the machine (validation,
    queueing) before handing the rest to a background task.
    """
    while manager.run.current_status != status:
        if isinstance(manager.run.current_state, StopState):
            return
        instruction = await manager.try_advance_state()
        if instruction.stop:
            return

