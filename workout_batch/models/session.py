from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta


class ConflictCategory(enum.StrEnum):
    EQUIPMENT = "equipment"
    FACILITIES = "facilities"
    SCHEDULING = "scheduling"
    PLAYERS = "players"


@dataclass(frozen=True)
class SessionConflict:
    category: ConflictCategory
    message: str
    subject_id: str | None = None

    def __str__(self) -> str:
        return f"[{self.category}] {self.message}"


@dataclass
class SessionDistributionSummary:
    """One generated session bucket.

    ``total_players`` is ``len(player_ids)`` plus the size of every team in
    ``team_ids`` that was kept at team level (not expanded into
    ``player_ids``).
    """

    session_index: int
    session_id: str
    session_name: str
    player_ids: list[str] = field(default_factory=list)
    team_ids: list[str] = field(default_factory=list)
    total_players: int = 0
    start_time: datetime | None = None
    equipment: list[str] = field(default_factory=list)
    facility: str | None = None
    estimated_duration: int | None = None
    staff_ids: list[str] = field(default_factory=list)
    conflicts: list[SessionConflict] = field(default_factory=list)

    @property
    def player_count(self) -> int:
        return len(self.player_ids)

    @property
    def team_count(self) -> int:
        return len(self.team_ids)

    @property
    def end_time(self) -> datetime | None:
        if self.start_time is None:
            return None
        return self.start_time + timedelta(minutes=self.estimated_duration or 0)

    def conflicts_in(self, category: ConflictCategory) -> list[SessionConflict]:
        return [c for c in self.conflicts if c.category == category]
