from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field

from workout_batch.collaborators.directory import PlayerDirectory
from workout_batch.collaborators.skills import SkillProvider
from workout_batch.exceptions import DistributionConfigError
from workout_batch.models import (
    BatchAssignmentTarget,
    BulkModeConfig,
    SessionConfiguration,
)


@dataclass
class ResolvedTarget:
    """A pool target together with the player ids it stands for."""

    target: BatchAssignmentTarget
    members: list[str]

    @property
    def is_collective(self) -> bool:
        return self.target.is_collective


@dataclass
class Bucket:
    """Mutable working state for one session while distributing."""

    index: int
    player_ids: list[str] = field(default_factory=list)
    team_ids: list[str] = field(default_factory=list)
    kept_teams: dict[str, list[str]] = field(default_factory=dict)
    score_sum: float = 0.0
    configuration: SessionConfiguration | None = None

    @property
    def total_players(self) -> int:
        listed = set(self.player_ids)
        extra = {m for members in self.kept_teams.values() for m in members}
        return len(self.player_ids) + len(extra - listed)

    def covered_players(self) -> set[str]:
        covered = set(self.player_ids)
        for members in self.kept_teams.values():
            covered.update(members)
        return covered

    def add_player(self, player_id: str, score: float = 0.0) -> None:
        self.player_ids.append(player_id)
        self.score_sum += score

    def keep_team(self, team_id: str, members: list[str]) -> None:
        """Add a team as a single team-level entry."""
        if team_id not in self.team_ids:
            self.team_ids.append(team_id)
        self.kept_teams[team_id] = list(members)

    def expand_team(self, team_id: str, members: Iterable[str]) -> None:
        """Add a team with its members listed individually."""
        if team_id not in self.team_ids:
            self.team_ids.append(team_id)
        for pid in members:
            if pid not in self.player_ids:
                self.player_ids.append(pid)


@dataclass
class Distribution:
    buckets: list[Bucket]
    warnings: list[str] = field(default_factory=list)
    unassigned: list[BatchAssignmentTarget] = field(default_factory=list)


def unique_players(pool: Iterable[ResolvedTarget]) -> list[str]:
    """Member ids in pool order, first occurrence wins."""
    seen: dict[str, None] = {}
    for resolved in pool:
        for pid in resolved.members:
            seen.setdefault(pid, None)
    return list(seen)


def lightest(buckets: list[Bucket]) -> Bucket:
    return min(buckets, key=lambda b: (b.total_players, b.index))


class SessionDistributor(ABC):
    """Strategy for splitting a resolved pool into session buckets."""

    @abstractmethod
    async def distribute(
        self, pool: list[ResolvedTarget], config: BulkModeConfig
    ) -> Distribution:
        """Raise ``DistributionConfigError`` if *config* cannot be honoured."""
        ...


class EvenDistributor(SessionDistributor):
    """Round-robin players so bucket sizes differ by at most one.

    Teams are expanded to their members unless ``allow_player_overlap`` is
    set, in which case each team stays a team-level entry on the bucket
    with the fewest players.
    """

    async def distribute(
        self, pool: list[ResolvedTarget], config: BulkModeConfig
    ) -> Distribution:
        n = config.number_of_sessions
        buckets = [Bucket(index=i) for i in range(n)]

        if config.allow_player_overlap:
            individuals = [r for r in pool if not r.is_collective]
            for i, pid in enumerate(unique_players(individuals)):
                buckets[i % n].add_player(pid)
            for resolved in pool:
                if resolved.is_collective:
                    lightest(buckets).keep_team(resolved.target.id, resolved.members)
            return Distribution(buckets)

        owner: dict[str, int] = {}
        for i, pid in enumerate(unique_players(pool)):
            buckets[i % n].add_player(pid)
            owner[pid] = i % n
        for resolved in pool:
            if not resolved.is_collective:
                continue
            for index in sorted({owner[m] for m in resolved.members}):
                if resolved.target.id not in buckets[index].team_ids:
                    buckets[index].team_ids.append(resolved.target.id)
        return Distribution(buckets)


class ManualDistributor(SessionDistributor):
    """One bucket per caller-supplied :class:`SessionConfiguration`.

    Pool targets not covered by any configuration are reported as
    unassigned warnings.
    """

    def __init__(self, directory: PlayerDirectory) -> None:
        self._directory = directory

    async def distribute(
        self, pool: list[ResolvedTarget], config: BulkModeConfig
    ) -> Distribution:
        if not config.session_configurations:
            raise DistributionConfigError(
                "manual distribution requires session_configurations"
            )

        known = {r.target.id: r.members for r in pool if r.is_collective}
        buckets: list[Bucket] = []
        for i, sc in enumerate(config.session_configurations):
            bucket = Bucket(index=i, configuration=sc)
            for pid in dict.fromkeys(sc.player_ids):
                bucket.add_player(pid)
            for team_id in sc.team_ids:
                members = known.get(team_id)
                if members is None:
                    members = await self._directory.get_team_members(team_id)
                bucket.keep_team(team_id, members)
            buckets.append(bucket)

        covered_players: set[str] = set()
        covered_teams: set[str] = set()
        for bucket in buckets:
            covered_players |= bucket.covered_players()
            covered_teams.update(bucket.team_ids)

        result = Distribution(buckets)
        for resolved in pool:
            target = resolved.target
            if not resolved.is_collective:
                covered = target.id in covered_players
            else:
                covered = target.id in covered_teams or (
                    bool(resolved.members)
                    and all(m in covered_players for m in resolved.members)
                )
            if not covered:
                result.unassigned.append(target)
                result.warnings.append(
                    f"{target.type} {target.id} is not assigned to any session"
                )
        return result


class TeamBasedDistributor(SessionDistributor):
    """Each team lands whole in exactly one bucket.

    Teams are placed largest first onto the lightest bucket; individual
    players then fill the lightest buckets.  A team sharing players with
    an already placed team joins that team's bucket.  If the players it
    shares sit in different buckets the team cannot be kept whole; its new
    members join the first of them and a warning names the team.
    """

    async def distribute(
        self, pool: list[ResolvedTarget], config: BulkModeConfig
    ) -> Distribution:
        n = config.number_of_sessions
        buckets = [Bucket(index=i) for i in range(n)]
        result = Distribution(buckets)
        placed: dict[str, int] = {}

        teams = sorted(
            (r for r in pool if r.is_collective), key=lambda r: -len(r.members)
        )
        for resolved in teams:
            shared = list(
                dict.fromkeys(placed[m] for m in resolved.members if m in placed)
            )
            if not shared:
                bucket = lightest(buckets)
            elif len(shared) == 1:
                bucket = buckets[shared[0]]
                result.warnings.append(
                    f"team {resolved.target.id} shares players with a team in "
                    f"session {bucket.index + 1}; placed together"
                )
            else:
                bucket = buckets[shared[0]]
                sessions = ", ".join(str(i + 1) for i in shared)
                result.warnings.append(
                    f"team {resolved.target.id} shares players with teams in "
                    f"sessions {sessions} and cannot be kept whole; new members "
                    f"join session {bucket.index + 1}"
                )
            fresh = [m for m in resolved.members if m not in placed]
            bucket.expand_team(resolved.target.id, fresh)
            for pid in fresh:
                placed[pid] = bucket.index

        individuals = [r for r in pool if not r.is_collective]
        for pid in unique_players(individuals):
            if pid in placed:
                continue
            bucket = lightest(buckets)
            bucket.add_player(pid)
            placed[pid] = bucket.index
        return result


class SkillBasedDistributor(SessionDistributor):
    """Balance the summed skill score across equally sized buckets.

    Players are taken in descending score order (ties by player id), each
    going to the bucket with the lowest score sum that still has room;
    ties go to the bucket with fewer players, then the lower index.
    """

    def __init__(self, skills: SkillProvider | None) -> None:
        self._skills = skills

    async def distribute(
        self, pool: list[ResolvedTarget], config: BulkModeConfig
    ) -> Distribution:
        if self._skills is None:
            raise DistributionConfigError(
                "skill-based distribution requires a skill provider"
            )

        n = config.number_of_sessions
        buckets = [Bucket(index=i) for i in range(n)]
        result = Distribution(buckets)

        players = unique_players(pool)
        scores = await self._skills.get_scores(players)
        missing = [pid for pid in players if pid not in scores]
        if missing:
            result.warnings.append(
                f"{len(missing)} player(s) have no skill score; "
                f"using {config.default_skill_score}"
            )

        def score(pid: str) -> float:
            return scores.get(pid, config.default_skill_score)

        capacity = math.ceil(len(players) / n) if players else 0
        for pid in sorted(players, key=lambda p: (-score(p), p)):
            open_buckets = [b for b in buckets if len(b.player_ids) < capacity]
            target = min(
                open_buckets,
                key=lambda b: (b.score_sum, len(b.player_ids), b.index),
            )
            target.add_player(pid, score(pid))
        return result
