from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest

from workout_batch import BatchOrchestrator
from workout_batch.collaborators import (
    LoggingNotificationSink,
    StaticDirectory,
    StaticSkillProvider,
)
from workout_batch.models import (
    BatchAssignmentTarget,
    WorkoutSession,
    WorkoutTemplate,
)
from workout_batch.store.memory import InMemoryStore

TEAM_A = [f"a{i}" for i in range(1, 9)]
TEAM_B = [f"b{i}" for i in range(1, 7)]
SOLO_PLAYERS = [f"p{i:02d}" for i in range(1, 24)]

MONDAY_10AM = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)


def make_template(name: str = "Lower body", **kwargs) -> WorkoutTemplate:
    return WorkoutTemplate(name=name, **kwargs)


def make_session(template_id: str, **kwargs) -> WorkoutSession:
    kwargs.setdefault("name", "Session")
    return WorkoutSession(template_id=template_id, **kwargs)


def players(*ids: str) -> list[BatchAssignmentTarget]:
    return [BatchAssignmentTarget.player(pid) for pid in ids]


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def directory() -> StaticDirectory:
    return StaticDirectory(
        teams={"team-a": TEAM_A, "team-b": TEAM_B},
        groups={"rehab": ["p01", "p02"]},
    )


@pytest.fixture()
def notifier() -> LoggingNotificationSink:
    return LoggingNotificationSink()


@pytest.fixture()
async def orchestrator(
    store: InMemoryStore,
    directory: StaticDirectory,
    notifier: LoggingNotificationSink,
) -> AsyncGenerator[BatchOrchestrator]:
    orch = BatchOrchestrator(
        store=store,
        directory=directory,
        skills=StaticSkillProvider({"p01": 9.0, "p02": 7.0, "p03": 5.0}),
        notifier=notifier,
    )
    await orch.init()
    yield orch
    await orch.close()


async def seed_templates(store: InMemoryStore, *names: str) -> list[WorkoutTemplate]:
    created = []
    for name in names:
        created.append(await store.create_template(make_template(name)))
    return created
