from __future__ import annotations

from datetime import date, timedelta

from tests.conftest import MONDAY_10AM, make_session, make_template
from workout_batch.collaborators import (
    Booking,
    MedicalRestriction,
    StaticDirectory,
    StoreScheduleLookup,
)
from workout_batch.conflicts import ConflictDetector
from workout_batch.models import (
    BulkModeConfig,
    ConflictCategory,
    SessionDistributionSummary,
)
from workout_batch.store.memory import InMemoryStore

GAME = Booking(
    id="game-1",
    kind="game",
    start=MONDAY_10AM,
    end=MONDAY_10AM + timedelta(hours=1),
    player_ids=frozenset({"p1"}),
    label="Derby",
)


def summary(session_id: str, *player_ids: str, **kwargs) -> SessionDistributionSummary:
    kwargs.setdefault("start_time", MONDAY_10AM)
    kwargs.setdefault("estimated_duration", 60)
    return SessionDistributionSummary(
        session_index=0,
        session_id=session_id,
        session_name=session_id,
        player_ids=list(player_ids),
        total_players=len(player_ids),
        **kwargs,
    )


def detector(store: InMemoryStore, **kwargs) -> ConflictDetector:
    return ConflictDetector(StoreScheduleLookup(store, **kwargs), StaticDirectory())


async def test_no_conflicts_for_free_slot(store):
    s = summary("s1", "p1")
    report = await detector(store).detect([s], BulkModeConfig())
    assert not report.has_conflicts
    assert s.start_time == MONDAY_10AM


async def test_player_clash_is_shifted_until_free(store):
    s = summary("s1", "p1", "p2")
    report = await detector(store, extra_bookings=[GAME]).detect([s], BulkModeConfig())

    assert s.start_time == MONDAY_10AM + timedelta(hours=1)
    assert s.conflicts == []
    [resolution] = report.resolutions
    assert resolution.original_start == MONDAY_10AM
    assert resolution.attempts == 4
    assert report.unresolved == []


async def test_unresolved_clash_keeps_original_start(store):
    s = summary("s1", "p1")
    config = BulkModeConfig(max_resolution_attempts=2)
    report = await detector(store, extra_bookings=[GAME]).detect([s], config)

    assert s.start_time == MONDAY_10AM
    assert report.unresolved == ["s1"]
    assert s.conflicts_in(ConflictCategory.SCHEDULING)
    assert not report.is_blocked("s1")


async def test_conflicts_block_when_auto_resolve_disabled(store):
    s = summary("s1", "p1")
    config = BulkModeConfig(auto_resolve_conflicts=False)
    report = await detector(store, extra_bookings=[GAME]).detect([s], config)

    assert report.is_blocked("s1")
    assert "Derby" in report.messages()[0]


async def test_stored_sessions_count_as_bookings(store):
    template = await store.create_template(make_template())
    await store.create_session(
        make_session(
            template.id,
            start_time=MONDAY_10AM,
            duration=30,
            facility_id="gym",
        )
    )
    s = summary("s1", "p9", facility="gym")
    report = await detector(store).detect([s], BulkModeConfig())

    [conflict] = report.conflicts["s1"]
    assert conflict.category is ConflictCategory.FACILITIES
    # Facility clashes are reported, never shifted.
    assert s.start_time == MONDAY_10AM


async def test_equipment_capacity_within_batch(store):
    first = summary("s1", "p1", equipment=["rack"])
    second = summary("s2", "p2", equipment=["rack"])
    report = await detector(store).detect([first, second], BulkModeConfig())

    assert report.conflicts["s1"] == []
    assert second.conflicts_in(ConflictCategory.EQUIPMENT)

    first = summary("s1", "p1", equipment=["rack"])
    second = summary("s2", "p2", equipment=["rack"])
    report = await detector(store).detect(
        [first, second], BulkModeConfig(equipment_capacity={"rack": 2})
    )
    assert not report.has_conflicts


async def test_double_booking_within_batch_is_shifted(store):
    first = summary("s1", "p1")
    second = summary("s2", "p1", estimated_duration=30)
    await detector(store).detect([first, second], BulkModeConfig())

    assert first.start_time == MONDAY_10AM
    assert second.start_time == MONDAY_10AM + timedelta(hours=1)


async def test_medical_restriction_flags_players(store):
    restriction = MedicalRestriction(
        player_id="p2", start=date(2026, 1, 1), reason="hamstring"
    )
    s = summary("s1", "p1", "p2")
    report = await detector(store, medical=[restriction]).detect([s], BulkModeConfig())

    [conflict] = report.conflicts["s1"]
    assert conflict.category is ConflictCategory.PLAYERS
    assert "hamstring" in conflict.message


async def test_staff_double_booking_is_shifted(store):
    booking = Booking(
        id="meeting",
        kind="meeting",
        start=MONDAY_10AM,
        end=MONDAY_10AM + timedelta(minutes=30),
        staff_ids=frozenset({"coach"}),
    )
    s = summary("s1", "p1", staff_ids=["coach"])
    report = await detector(store, extra_bookings=[booking]).detect(
        [s], BulkModeConfig()
    )
    assert report.resolutions[0].new_start == MONDAY_10AM + timedelta(minutes=30)


async def test_unscheduled_sessions_are_skipped(store):
    s = summary("s1", "p1", start_time=None)
    report = await detector(store, extra_bookings=[GAME]).detect([s], BulkModeConfig())
    assert report.conflicts == {}
