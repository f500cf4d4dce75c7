"""Configuration management for the workout-batch CLI.

Reads/writes a TOML config file and provides a typed Config dataclass.
Default location: ``~/.config/workout-batch/config.toml``.
Override with the ``WORKOUT_BATCH_CONFIG`` environment variable.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_DEFAULT_CONFIG_DIR = Path("~/.config/workout-batch").expanduser()


def _config_path() -> Path:
    env = os.environ.get("WORKOUT_BATCH_CONFIG")
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    # Store backend: "memory" (default, no external deps) or "postgres"
    store_provider: str = "memory"

    # Postgres settings (only used when store_provider == "postgres")
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "workout_batch"
    db_user: str = "postgres"
    db_password: str = "postgres"

    snapshot_retention_hours: float = 24.0

    @property
    def uses_postgres(self) -> bool:
        return self.store_provider == "postgres"

    def store_section(self) -> dict[str, Any]:
        """The ``store`` section of the library config dict."""
        store_config: dict[str, Any] = {}
        if self.uses_postgres:
            store_config = {
                "host": self.db_host,
                "port": self.db_port,
                "database": self.db_name,
                "user": self.db_user,
                "password": self.db_password,
            }
        return {"provider": self.store_provider, "config": store_config}


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        store_section = data.get("store", {})
        db_section = data.get("database", {})
        snapshot_section = data.get("snapshots", {})

        cfg.store_provider = store_section.get("provider", cfg.store_provider)
        cfg.db_host = db_section.get("host", cfg.db_host)
        cfg.db_port = int(db_section.get("port", cfg.db_port))
        cfg.db_name = db_section.get("name", cfg.db_name)
        cfg.db_user = db_section.get("user", cfg.db_user)
        cfg.db_password = db_section.get("password", cfg.db_password)
        cfg.snapshot_retention_hours = float(
            snapshot_section.get("retention_hours", cfg.snapshot_retention_hours)
        )

    # Environment variables always take precedence
    cfg.store_provider = os.environ.get("WORKOUT_BATCH_STORE", cfg.store_provider)
    cfg.db_host = os.environ.get("POSTGRES_HOST", cfg.db_host)
    cfg.db_port = int(os.environ.get("POSTGRES_PORT", str(cfg.db_port)))
    cfg.db_name = os.environ.get("POSTGRES_DB", cfg.db_name)
    cfg.db_user = os.environ.get("POSTGRES_USER", cfg.db_user)
    cfg.db_password = os.environ.get("POSTGRES_PASSWORD", cfg.db_password)

    return cfg


def save_config(cfg: Config) -> Path:
    """Write config to the TOML file. Returns the path written."""
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "[store]",
        f'provider = "{cfg.store_provider}"',
        "",
    ]

    if cfg.uses_postgres:
        lines.extend(
            [
                "[database]",
                f'host = "{cfg.db_host}"',
                f"port = {cfg.db_port}",
                f'name = "{cfg.db_name}"',
                f'user = "{cfg.db_user}"',
                f'password = "{cfg.db_password}"',
                "",
            ]
        )

    lines.extend(
        [
            "[snapshots]",
            f"retention_hours = {cfg.snapshot_retention_hours:g}",
            "",
        ]
    )

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def config_exists() -> bool:
    return _config_path().exists()


def config_path_display() -> str:
    return str(_config_path())
