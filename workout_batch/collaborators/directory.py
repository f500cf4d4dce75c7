from __future__ import annotations

from abc import ABC, abstractmethod

from workout_batch.models import BatchAssignmentTarget, TargetType


class PlayerDirectory(ABC):
    """Resolves teams and groups to their member player ids."""

    @abstractmethod
    async def get_team_members(self, team_id: str) -> list[str]:
        """Return the player ids of *team_id* (empty if unknown)."""
        ...

    @abstractmethod
    async def get_group_members(self, group_id: str) -> list[str]:
        """Return the player ids of *group_id* (empty if unknown)."""
        ...

    async def resolve(self, target: BatchAssignmentTarget) -> list[str]:
        match target.type:
            case TargetType.PLAYER:
                return [target.id]
            case TargetType.TEAM:
                return await self.get_team_members(target.id)
            case TargetType.GROUP:
                return await self.get_group_members(target.id)
            case _:
                raise ValueError(f"Unknown target type: {target.type}")


class StaticDirectory(PlayerDirectory):
    """Directory built from plain ``{id: [player_id, ...]}`` mappings."""

    def __init__(
        self,
        teams: dict[str, list[str]] | None = None,
        groups: dict[str, list[str]] | None = None,
    ) -> None:
        self._teams = {k: list(v) for k, v in (teams or {}).items()}
        self._groups = {k: list(v) for k, v in (groups or {}).items()}

    async def get_team_members(self, team_id: str) -> list[str]:
        return list(self._teams.get(team_id, []))

    async def get_group_members(self, group_id: str) -> list[str]:
        return list(self._groups.get(group_id, []))
