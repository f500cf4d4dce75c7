from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from workout_batch.collaborators.directory import PlayerDirectory
from workout_batch.collaborators.skills import SkillProvider
from workout_batch.distribution.schedule import session_start
from workout_batch.distribution.strategies import (
    Bucket,
    EvenDistributor,
    ManualDistributor,
    ResolvedTarget,
    SessionDistributor,
    SkillBasedDistributor,
    TeamBasedDistributor,
)
from workout_batch.exceptions import DistributionConfigError
from workout_batch.models import (
    BatchAssignmentTarget,
    BulkModeConfig,
    DistributionStrategy,
    SessionDistributionSummary,
)
from workout_batch.models.utils import generate_id

logger = logging.getLogger(__name__)


@dataclass
class DistributionPlan:
    """Planner output: one summary per session plus diagnostics.

    A plan with ``errors`` has no sessions.  ``warnings`` and
    ``unassigned`` never block execution.
    """

    strategy: DistributionStrategy
    sessions: list[SessionDistributionSummary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    unassigned: list[BatchAssignmentTarget] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_players(self) -> int:
        return sum(s.total_players for s in self.sessions)

    def player_ids(self) -> set[str]:
        return {pid for s in self.sessions for pid in s.player_ids}

    def raise_for_errors(self) -> None:
        if self.errors:
            raise DistributionConfigError("; ".join(self.errors))

    def __iter__(self) -> Iterator[SessionDistributionSummary]:
        return iter(self.sessions)

    def __len__(self) -> int:
        return len(self.sessions)


class DistributionPlanner:
    """Splits a pool of players/teams into session buckets."""

    def __init__(
        self,
        directory: PlayerDirectory,
        skills: SkillProvider | None = None,
    ) -> None:
        self._directory = directory
        self._skills = skills

    def _distributor(self, strategy: DistributionStrategy) -> SessionDistributor:
        match strategy:
            case DistributionStrategy.EVEN:
                return EvenDistributor()
            case DistributionStrategy.MANUAL:
                return ManualDistributor(self._directory)
            case DistributionStrategy.TEAM_BASED:
                return TeamBasedDistributor()
            case DistributionStrategy.SKILL_BASED:
                return SkillBasedDistributor(self._skills)
            case _:
                raise DistributionConfigError(
                    f"Unknown distribution strategy: {strategy}"
                )

    async def plan(
        self, pool: list[BatchAssignmentTarget], config: BulkModeConfig
    ) -> DistributionPlan:
        plan = DistributionPlan(strategy=config.distribution_strategy)
        if not pool:
            plan.errors.append("Target pool is empty")
        if config.number_of_sessions < 1:
            plan.errors.append(
                f"number_of_sessions must be >= 1, got {config.number_of_sessions}"
            )
        if plan.errors:
            logger.warning("Distribution rejected: %s", "; ".join(plan.errors))
            return plan

        resolved = await self._resolve(pool, plan)
        try:
            distributor = self._distributor(config.distribution_strategy)
            distribution = await distributor.distribute(resolved, config)
        except DistributionConfigError as exc:
            plan.errors.append(str(exc))
            logger.warning("Distribution rejected: %s", exc)
            return plan

        plan.warnings.extend(distribution.warnings)
        plan.unassigned = distribution.unassigned
        plan.sessions = [self._summarize(b, config) for b in distribution.buckets]
        logger.info(
            "Planned %d session(s) for %d player(s) with %s strategy",
            len(plan.sessions),
            plan.total_players,
            config.distribution_strategy,
        )
        return plan

    async def _resolve(
        self, pool: list[BatchAssignmentTarget], plan: DistributionPlan
    ) -> list[ResolvedTarget]:
        resolved: list[ResolvedTarget] = []
        seen: set[tuple[str, str]] = set()
        for target in pool:
            key = (target.type, target.id)
            if key in seen:
                continue
            seen.add(key)
            members = await self._directory.resolve(target)
            if target.is_collective and not members:
                plan.warnings.append(f"{target.type} {target.id} has no members")
            resolved.append(ResolvedTarget(target=target, members=members))
        return resolved

    @staticmethod
    def _summarize(bucket: Bucket, config: BulkModeConfig) -> SessionDistributionSummary:
        sc = bucket.configuration
        if sc is not None:
            name = sc.name
            session_id = sc.id or generate_id()
            start = sc.start_time or session_start(config, bucket.index)
            duration = sc.duration or config.session_duration
            equipment = sc.equipment if sc.equipment is not None else config.equipment
            facility = sc.facility_id or config.facility_id
            staff = sc.staff_ids or config.staff_ids
        else:
            name = f"{config.session_name_prefix} {bucket.index + 1}"
            session_id = generate_id()
            start = session_start(config, bucket.index)
            duration = config.session_duration
            equipment = config.equipment
            facility = config.facility_id
            staff = config.staff_ids

        return SessionDistributionSummary(
            session_index=bucket.index,
            session_id=session_id,
            session_name=name,
            player_ids=list(bucket.player_ids),
            team_ids=list(bucket.team_ids),
            total_players=bucket.total_players,
            start_time=start,
            equipment=list(equipment),
            facility=facility,
            estimated_duration=duration,
            staff_ids=list(staff),
        )
