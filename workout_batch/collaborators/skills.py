from __future__ import annotations

from abc import ABC, abstractmethod


class SkillProvider(ABC):
    """Supplies a skill/readiness score per player."""

    @abstractmethod
    async def get_scores(self, player_ids: list[str]) -> dict[str, float]:
        """Return scores for the players that have one; others are omitted."""
        ...


class StaticSkillProvider(SkillProvider):
    def __init__(self, scores: dict[str, float] | None = None) -> None:
        self._scores = dict(scores or {})

    async def get_scores(self, player_ids: list[str]) -> dict[str, float]:
        return {pid: self._scores[pid] for pid in player_ids if pid in self._scores}
