from __future__ import annotations

from datetime import timedelta

import pytest

from tests.conftest import MONDAY_10AM, SOLO_PLAYERS, TEAM_A, TEAM_B, players
from workout_batch.collaborators import StaticDirectory, StaticSkillProvider
from workout_batch.distribution import DistributionPlanner
from workout_batch.exceptions import DistributionConfigError
from workout_batch.models import (
    BatchAssignmentTarget,
    BulkModeConfig,
    DistributionStrategy,
    SessionConfiguration,
)

TEAMS = [BatchAssignmentTarget.team("team-a"), BatchAssignmentTarget.team("team-b")]


@pytest.fixture()
def planner(directory: StaticDirectory) -> DistributionPlanner:
    return DistributionPlanner(
        directory,
        StaticSkillProvider({"s1": 10.0, "s2": 8.0, "s3": 6.0, "s4": 4.0}),
    )


# ── Even ─────────────────────────────────────────────────────────────


async def test_even_expands_teams_into_balanced_sessions(planner):
    plan = await planner.plan(
        players(*SOLO_PLAYERS) + TEAMS,
        BulkModeConfig(number_of_sessions=3),
    )

    assert plan.ok
    assert len(plan) == 3
    counts = [s.player_count for s in plan]
    assert max(counts) - min(counts) <= 1
    assert sum(counts) == 37
    assert plan.player_ids() == set(SOLO_PLAYERS) | set(TEAM_A) | set(TEAM_B)


async def test_even_with_overlap_keeps_teams_at_team_level(planner):
    plan = await planner.plan(
        players(*SOLO_PLAYERS) + TEAMS,
        BulkModeConfig(number_of_sessions=3, allow_player_overlap=True),
    )

    assert plan.player_ids() == set(SOLO_PLAYERS)
    assert plan.total_players == 37
    assert sorted(t for s in plan for t in s.team_ids) == ["team-a", "team-b"]
    counts = [s.player_count for s in plan]
    assert max(counts) - min(counts) <= 1


async def test_even_never_duplicates_players(planner):
    plan = await planner.plan(
        players("p01", "p02", "a1") + [BatchAssignmentTarget.team("team-a")],
        BulkModeConfig(number_of_sessions=2),
    )
    listed = [pid for s in plan for pid in s.player_ids]
    assert len(listed) == len(set(listed)) == 10


async def test_names_and_staggered_starts(planner):
    plan = await planner.plan(
        players("p01", "p02", "p03"),
        BulkModeConfig(
            number_of_sessions=3,
            base_start_time=MONDAY_10AM,
            stagger_start_times=True,
            stagger_interval=20,
            session_name_prefix="Group",
        ),
    )
    assert [s.session_name for s in plan] == ["Group 1", "Group 2", "Group 3"]
    assert [s.start_time for s in plan] == [
        MONDAY_10AM,
        MONDAY_10AM + timedelta(minutes=20),
        MONDAY_10AM + timedelta(minutes=40),
    ]


# ── Team-based ───────────────────────────────────────────────────────


async def test_team_based_never_splits_a_team(planner):
    plan = await planner.plan(
        players(*SOLO_PLAYERS[:5]) + TEAMS,
        BulkModeConfig(
            number_of_sessions=2, distribution_strategy=DistributionStrategy.TEAM_BASED
        ),
    )

    for team_id, members in (("team-a", TEAM_A), ("team-b", TEAM_B)):
        holders = [s for s in plan if team_id in s.team_ids]
        assert len(holders) == 1
        assert set(members) <= set(holders[0].player_ids)
    assert plan.total_players == 5 + 8 + 6


async def test_team_based_warns_on_shared_members():
    directory = StaticDirectory(teams={"x": ["p1", "p2"], "y": ["p2", "p3"]})
    plan = await DistributionPlanner(directory).plan(
        [BatchAssignmentTarget.team("x"), BatchAssignmentTarget.team("y")],
        BulkModeConfig(
            number_of_sessions=2, distribution_strategy=DistributionStrategy.TEAM_BASED
        ),
    )
    assert len([s for s in plan if s.team_ids]) == 1
    assert any("shares players" in w for w in plan.warnings)


async def test_team_based_warns_when_team_cannot_be_kept_whole():
    directory = StaticDirectory(
        teams={
            "x": ["p1", "p2", "p6"],
            "y": ["p3", "p4", "p7"],
            "z": ["p1", "p3"],
        }
    )
    plan = await DistributionPlanner(directory).plan(
        [BatchAssignmentTarget.team(t) for t in ("x", "y", "z")],
        BulkModeConfig(
            number_of_sessions=2, distribution_strategy=DistributionStrategy.TEAM_BASED
        ),
    )

    [warning] = [w for w in plan.warnings if "team z" in w]
    assert "cannot be kept whole" in warning
    assert "sessions 1, 2" in warning
    assert not any("placed together" in w for w in plan.warnings)


# ── Skill-based ──────────────────────────────────────────────────────


async def test_skill_based_balances_score_sums(planner):
    plan = await planner.plan(
        players("s1", "s2", "s3", "s4"),
        BulkModeConfig(
            number_of_sessions=2, distribution_strategy=DistributionStrategy.SKILL_BASED
        ),
    )
    assert [sorted(s.player_ids) for s in plan] == [["s1", "s4"], ["s2", "s3"]]


async def test_skill_based_uses_default_score_for_unknown_players(planner):
    plan = await planner.plan(
        players("s1", "nobody"),
        BulkModeConfig(
            number_of_sessions=2,
            distribution_strategy=DistributionStrategy.SKILL_BASED,
            default_skill_score=1.0,
        ),
    )
    assert plan.ok
    assert any("no skill score" in w for w in plan.warnings)


async def test_skill_based_without_provider_is_an_error(directory):
    plan = await DistributionPlanner(directory).plan(
        players("p01"),
        BulkModeConfig(distribution_strategy=DistributionStrategy.SKILL_BASED),
    )
    assert not plan.ok
    assert len(plan) == 0
    with pytest.raises(DistributionConfigError):
        plan.raise_for_errors()


# ── Manual ───────────────────────────────────────────────────────────


async def test_manual_reports_unassigned_targets(planner):
    plan = await planner.plan(
        players("p01", "p02", "p03") + [BatchAssignmentTarget.team("team-b")],
        BulkModeConfig(
            distribution_strategy=DistributionStrategy.MANUAL,
            session_configurations=[
                SessionConfiguration(name="Early", player_ids=["p01"], duration=45),
                SessionConfiguration(
                    name="Late", player_ids=["p02"], team_ids=["team-b"]
                ),
            ],
        ),
    )

    assert [s.session_name for s in plan] == ["Early", "Late"]
    assert plan.sessions[0].estimated_duration == 45
    assert plan.sessions[1].total_players == 1 + len(TEAM_B)
    assert plan.unassigned == [BatchAssignmentTarget.player("p03")]
    assert any("p03" in w for w in plan.warnings)


# ── Rejections ───────────────────────────────────────────────────────


async def test_empty_pool_and_bad_session_count(planner):
    plan = await planner.plan([], BulkModeConfig(number_of_sessions=0))
    assert len(plan.errors) == 2
    assert len(plan) == 0


async def test_empty_team_is_a_warning(planner):
    plan = await planner.plan(
        players("p01") + [BatchAssignmentTarget.team("ghost")],
        BulkModeConfig(),
    )
    assert plan.ok
    assert any("ghost" in w for w in plan.warnings)
