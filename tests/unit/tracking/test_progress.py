from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from workout_batch.exceptions import ProgressFrozenError
from workout_batch.models import (
    BatchOperationError,
    BatchOperationType,
    ProgressStatus,
)
from workout_batch.tracking import ProgressTracker


@pytest.fixture()
def tracker() -> ProgressTracker:
    t = ProgressTracker()
    t.start("op", BatchOperationType.UPDATE, total=4)
    return t


def test_start_is_queued(tracker):
    progress = tracker.get("op")
    assert progress.status is ProgressStatus.QUEUED
    assert progress.progress.percentage == 0
    assert progress.cancellable


def test_item_counts_and_percentage(tracker):
    tracker.mark_processing("op")
    tracker.item_started("op", "a")
    assert tracker.get("op").current_item == "a"
    tracker.item_finished("op", "a")
    tracker.item_finished(
        "op", "b", BatchOperationError(item_id="b", error="nope")
    )
    tracker.item_finished("op", "c")

    progress = tracker.get("op")
    assert progress.current == 3
    assert progress.progress.percentage == 75
    assert progress.current_item is None
    assert [e.item_id for e in progress.errors] == ["b"]
    assert progress.estimated_time_remaining is not None


def test_current_never_exceeds_total(tracker):
    for i in range(6):
        tracker.item_finished("op", str(i))
    assert tracker.get("op").current == 4

    tracker.set_total("op", 2)
    assert tracker.get("op").current == 2


def test_readers_get_copies(tracker):
    copy = tracker.get("op")
    copy.current = 99
    copy.errors.append(BatchOperationError(item_id="x", error="x"))
    fresh = tracker.get("op")
    assert fresh.current == 0
    assert fresh.errors == []


def test_terminal_progress_is_frozen(tracker):
    tracker.finish("op", ProgressStatus.COMPLETED)
    progress = tracker.get("op")
    assert not progress.cancellable
    assert progress.finished_at is not None
    with pytest.raises(ProgressFrozenError):
        tracker.item_finished("op", "late")
    with pytest.raises(ValueError):
        ProgressTracker().finish("op", ProgressStatus.PROCESSING)


def test_cancel_only_while_cancellable(tracker):
    assert tracker.request_cancel("op")
    assert tracker.is_cancel_requested("op")

    tracker.mark_rolling_back("op")
    assert not tracker.request_cancel("op")
    assert not tracker.request_cancel("unknown")


async def test_watch_yields_until_terminal(tracker):
    seen: list[ProgressStatus] = []

    async def consume() -> None:
        async for progress in tracker.watch("op"):
            seen.append(progress.status)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    tracker.mark_processing("op")
    await asyncio.sleep(0)
    tracker.finish("op", ProgressStatus.COMPLETED)
    await asyncio.wait_for(task, timeout=1)

    assert seen[0] is ProgressStatus.QUEUED
    assert seen[-1] is ProgressStatus.COMPLETED


async def test_watch_unknown_operation():
    with pytest.raises(KeyError):
        async for _ in ProgressTracker().watch("missing"):
            pass


def test_prune_forgets_old_terminal_runs(tracker):
    tracker.start("live", BatchOperationType.CREATE, total=1)
    tracker.finish("op", ProgressStatus.FAILED)

    assert tracker.prune(timedelta(hours=1)) == 0
    assert tracker.prune(timedelta(seconds=-1)) == 1
    assert tracker.get("op") is None
    assert tracker.get("live") is not None
