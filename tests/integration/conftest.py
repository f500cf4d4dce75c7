from __future__ import annotations

import os
from pathlib import Path
from collections.abc import AsyncGenerator

import pytest

from workout_batch import BatchOrchestrator
from workout_batch.collaborators import StaticDirectory
from workout_batch.store.postgres import PostgresStore


def pytest_collection_modifyitems(items: list, config) -> None:  # noqa: ANN001
    """Auto-mark every test in the integration directory."""
    marker = pytest.mark.integration
    here = Path(__file__).parent
    for item in items:
        if here in Path(item.fspath).parents:
            item.add_marker(marker)


class Settings:
    def __init__(self) -> None:
        self.host = os.getenv("POSTGRES_HOST", "localhost")
        self.port = int(os.getenv("POSTGRES_PORT", "5432"))
        self.database = os.getenv("POSTGRES_DB", "workout_batch_test")
        self.user = os.getenv("POSTGRES_USER", "postgres")
        self.password = os.getenv("POSTGRES_PASSWORD", "postgres")


@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings()


@pytest.fixture()
async def pg_store(settings: Settings) -> AsyncGenerator[PostgresStore]:
    """A PostgresStore with a clean slate for each test."""
    store = PostgresStore(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
    )
    await store.init()
    await store.reset()

    yield store

    await store.reset()
    await store.close()


@pytest.fixture()
def pg_orchestrator(pg_store: PostgresStore) -> BatchOrchestrator:
    return BatchOrchestrator(
        store=pg_store,
        directory=StaticDirectory(teams={"u18": ["x1", "x2", "x3", "x4"]}),
    )
