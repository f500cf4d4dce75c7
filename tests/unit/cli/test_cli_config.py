from __future__ import annotations

import pytest

from workout_batch.cli.config import Config, config_exists, load_config, save_config


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "workout-batch" / "config.toml"
    monkeypatch.setenv("WORKOUT_BATCH_CONFIG", str(path))
    for var in (
        "WORKOUT_BATCH_STORE",
        "POSTGRES_HOST",
        "POSTGRES_PORT",
        "POSTGRES_DB",
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)
    return path


def test_defaults_without_file(config_file):
    assert not config_exists()
    cfg = load_config()
    assert cfg.store_provider == "memory"
    assert cfg.store_section() == {"provider": "memory", "config": {}}


def test_save_and_load_postgres(config_file):
    written = save_config(
        Config(
            store_provider="postgres",
            db_host="db.internal",
            db_port=6543,
            snapshot_retention_hours=6,
        )
    )
    assert written == config_file
    assert config_exists()

    cfg = load_config()
    assert cfg.uses_postgres
    assert cfg.db_host == "db.internal"
    assert cfg.db_port == 6543
    assert cfg.snapshot_retention_hours == 6
    assert cfg.store_section()["config"]["database"] == "workout_batch"


def test_environment_overrides_file(config_file, monkeypatch):
    save_config(Config(store_provider="postgres", db_host="from-file"))
    monkeypatch.setenv("POSTGRES_HOST", "from-env")
    monkeypatch.setenv("POSTGRES_PORT", "15432")

    cfg = load_config()
    assert cfg.db_host == "from-env"
    assert cfg.db_port == 15432
