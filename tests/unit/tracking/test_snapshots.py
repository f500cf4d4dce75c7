from __future__ import annotations

from datetime import timedelta

import pytest

from workout_batch.exceptions import SnapshotExpiredError, SnapshotNotFoundError
from workout_batch.models import (
    AffectedItem,
    BatchRollbackRequest,
    RetryPolicy,
)
from workout_batch.tracking import SnapshotManager


class Recorder:
    def __init__(self, fail: set[str] | None = None) -> None:
        self.reverted: list[str] = []
        self.fail = fail or set()

    async def __call__(self, entry: AffectedItem) -> None:
        if entry.id in self.fail:
            raise RuntimeError(f"cannot revert {entry.id}")
        self.reverted.append(entry.id)


def record(manager: SnapshotManager, item_id: str, *, ok: bool) -> None:
    manager.record_before(
        "op", AffectedItem(id=item_id, type="workout_template", previous_state={"v": 1})
    )
    if ok:
        manager.record_after("op", item_id, {"v": 2})
    else:
        manager.mark_failed("op", item_id, "boom")


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def manager(recorder) -> SnapshotManager:
    m = SnapshotManager()
    m.attach("op", recorder)
    record(m, "a", ok=True)
    record(m, "b", ok=True)
    record(m, "c", ok=False)
    return m


def test_snapshot_keeps_prior_and_new_state(manager):
    snap = manager.snapshot("op")
    entry = snap.get("a")
    assert entry.previous_state == {"v": 1}
    assert entry.new_state == {"v": 2}
    assert snap.get("c").error == "boom"
    assert snap.get("zzz") is None


async def test_full_rollback_newest_first(manager, recorder):
    outcome = await manager.rollback(BatchRollbackRequest(operation_id="op"))
    assert recorder.reverted == ["c", "b", "a"]
    assert outcome.success
    assert outcome.reverted == ["c", "b", "a"]

    # Already reverted entries are not reverted twice.
    again = await manager.rollback(BatchRollbackRequest(operation_id="op"))
    assert again.reverted == []


async def test_partial_rollback_only_reverts_failed(manager, recorder):
    outcome = await manager.rollback(
        BatchRollbackRequest(operation_id="op", partial=True)
    )
    assert recorder.reverted == ["c"]
    assert outcome.skipped == ["b", "a"]


async def test_preserve_successful(manager, recorder):
    await manager.rollback(
        BatchRollbackRequest(operation_id="op", preserve_successful=True)
    )
    assert recorder.reverted == ["c"]


async def test_rollback_selected_items(manager, recorder):
    await manager.rollback(BatchRollbackRequest(operation_id="op", item_ids=["a"]))
    assert recorder.reverted == ["a"]


async def test_failed_item_that_wrote_nothing_is_skipped(recorder):
    m = SnapshotManager()
    m.attach("op", recorder)
    record(m, "a", ok=True)
    m.record_before(
        "op", AffectedItem(id="b", type="workout_template", previous_state={"v": 1})
    )
    m.mark_failed("op", "b", "already exists", applied=False)

    outcome = await m.rollback(BatchRollbackRequest(operation_id="op"))
    assert recorder.reverted == ["a"]
    assert outcome.skipped == ["b"]
    assert not m.snapshot("op").get("b").reverted


async def test_revert_failures_do_not_stop_rollback():
    recorder = Recorder(fail={"b"})
    m = SnapshotManager()
    m.attach("op", recorder, RetryPolicy(max_retries=0))
    record(m, "a", ok=True)
    record(m, "b", ok=True)

    outcome = await m.rollback(BatchRollbackRequest(operation_id="op"))
    assert recorder.reverted == ["a"]
    [failure] = outcome.failures
    assert failure.item_id == "b"
    assert not outcome.success


async def test_revert_is_retried_per_policy():
    attempts: list[str] = []

    async def flaky(entry: AffectedItem) -> None:
        attempts.append(entry.id)
        if len(attempts) == 1:
            raise ConnectionError("blip")

    m = SnapshotManager()
    m.attach(
        "op",
        flaky,
        RetryPolicy(max_retries=1, retry_delay=0, retryable_errors=["ConnectionError"]),
    )
    record(m, "a", ok=True)
    outcome = await m.rollback(BatchRollbackRequest(operation_id="op"))
    assert attempts == ["a", "a"]
    assert outcome.reverted == ["a"]


async def test_unknown_and_expired_snapshots(recorder):
    m = SnapshotManager(retention=timedelta(hours=1))
    with pytest.raises(SnapshotNotFoundError):
        m.snapshot("op")

    m.attach("op", recorder, retention=timedelta(seconds=-1))
    record(m, "a", ok=True)
    with pytest.raises(SnapshotExpiredError):
        m.snapshot("op")
    with pytest.raises(SnapshotExpiredError):
        await m.rollback(BatchRollbackRequest(operation_id="op"))

    assert m.prune_expired() == 1
    assert not m.has_snapshot("op")


def test_recording_after_without_before_raises():
    m = SnapshotManager()
    with pytest.raises(SnapshotNotFoundError):
        m.record_after("op", "a", None)
