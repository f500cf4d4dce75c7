from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from workout_batch.models import WorkoutSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    player_ids: tuple[str, ...]
    message: str
    session_id: str | None = None


class NotificationSink(ABC):
    """Delivers player notifications when ``notify_players`` is set."""

    @abstractmethod
    async def notify(
        self,
        player_ids: list[str],
        message: str,
        *,
        session: WorkoutSession | None = None,
    ) -> None: ...


class LoggingNotificationSink(NotificationSink):
    """Logs every notification and keeps it in ``sent``."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(
        self,
        player_ids: list[str],
        message: str,
        *,
        session: WorkoutSession | None = None,
    ) -> None:
        note = Notification(
            player_ids=tuple(player_ids),
            message=message,
            session_id=session.id if session else None,
        )
        self.sent.append(note)
        logger.info("Notify %d player(s): %s", len(player_ids), message)
