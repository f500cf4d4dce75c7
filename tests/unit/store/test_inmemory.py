from __future__ import annotations

from datetime import timedelta

import pytest

from tests.conftest import MONDAY_10AM, make_session, make_template
from workout_batch.exceptions import EntityExistsError, EntityNotFoundError
from workout_batch.store.memory import InMemoryStore

# ── Lifecycle ────────────────────────────────────────────────────────


async def test_reset_clears_all_data(store: InMemoryStore) -> None:
    template = await store.create_template(make_template())
    await store.create_session(make_session(template.id))

    await store.reset()

    assert await store.get_template(template.id) is None
    assert await store.list_sessions_for_template(template.id) == []


async def test_async_context_manager(store: InMemoryStore) -> None:
    async with store as s:
        assert s is store


# ── Templates ────────────────────────────────────────────────────────


async def test_template_crud(store: InMemoryStore) -> None:
    template = make_template("Push")
    created = await store.create_template(template)
    assert created.id == template.id

    fetched = await store.get_template(template.id)
    assert fetched is not None
    assert fetched.name == "Push"

    fetched.name = "Pull"
    updated = await store.update_template(fetched)
    assert updated.name == "Pull"
    assert updated.updated_at >= template.updated_at

    await store.delete_template(template.id)
    assert await store.get_template(template.id) is None


async def test_template_id_conflicts(store: InMemoryStore) -> None:
    template = await store.create_template(make_template())
    with pytest.raises(EntityExistsError):
        await store.create_template(template)
    with pytest.raises(EntityNotFoundError):
        await store.update_template(make_template())
    with pytest.raises(EntityNotFoundError):
        await store.delete_template("missing")


async def test_returned_templates_are_copies(store: InMemoryStore) -> None:
    template = await store.create_template(make_template(tags=["a"]))
    template.tags.append("mutated")
    fetched = await store.get_template(template.id)
    assert fetched.tags == ["a"]


async def test_list_templates_in_creation_order(store: InMemoryStore) -> None:
    second = await store.create_template(
        make_template("second", created_at=MONDAY_10AM + timedelta(minutes=1))
    )
    first = await store.create_template(make_template("first", created_at=MONDAY_10AM))

    assert [t.id for t in await store.list_templates()] == [first.id, second.id]
    assert [t.id for t in await store.list_templates([second.id, "nope"])] == [
        second.id
    ]


async def test_restore_template_upserts(store: InMemoryStore) -> None:
    template = make_template("gone")
    await store.restore_template(template)
    assert (await store.get_template(template.id)).name == "gone"


# ── Sessions ─────────────────────────────────────────────────────────


async def test_session_crud(store: InMemoryStore) -> None:
    template = await store.create_template(make_template())
    session = await store.create_session(make_session(template.id, player_ids=["p1"]))

    session.player_ids.append("p2")
    await store.update_session(session)
    assert (await store.get_session(session.id)).player_ids == ["p1", "p2"]

    await store.delete_session(session.id)
    assert await store.get_session(session.id) is None
    with pytest.raises(EntityNotFoundError):
        await store.delete_session(session.id)


async def test_sessions_for_template(store: InMemoryStore) -> None:
    a = await store.create_template(make_template("a"))
    b = await store.create_template(make_template("b"))
    s3 = await store.create_session(
        make_session(a.id, created_at=MONDAY_10AM + timedelta(minutes=2))
    )
    await store.create_session(make_session(b.id))
    s1 = await store.create_session(make_session(a.id, created_at=MONDAY_10AM))

    assert [s.id for s in await store.list_sessions_for_template(a.id)] == [
        s1.id,
        s3.id,
    ]


async def test_sessions_between_uses_half_open_windows(store: InMemoryStore) -> None:
    template = await store.create_template(make_template())
    morning = await store.create_session(
        make_session(template.id, start_time=MONDAY_10AM, duration=60)
    )
    await store.create_session(make_session(template.id))  # unscheduled

    hits = await store.list_sessions_between(
        MONDAY_10AM + timedelta(minutes=30), MONDAY_10AM + timedelta(hours=2)
    )
    assert [s.id for s in hits] == [morning.id]

    after = await store.list_sessions_between(
        MONDAY_10AM + timedelta(hours=1), MONDAY_10AM + timedelta(hours=2)
    )
    assert after == []
