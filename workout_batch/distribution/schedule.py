"""Start-time helpers shared by the planner and the orchestrator."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

from workout_batch.models import BulkModeConfig

DEFAULT_SESSION_TIME = time(9, 0, tzinfo=UTC)


def stagger_offset(config: BulkModeConfig, index: int) -> timedelta:
    if not config.stagger_start_times:
        return timedelta(0)
    return timedelta(minutes=index * config.stagger_interval)


def session_start(config: BulkModeConfig, index: int) -> datetime | None:
    """Start time of bucket *index*, or None when no base time is set."""
    if config.base_start_time is None:
        return None
    return config.base_start_time + stagger_offset(config, index)


def on_date(start: datetime | None, day: date) -> datetime:
    """Move *start* onto *day*, keeping its time of day (09:00 UTC if unset)."""
    if start is None:
        return datetime.combine(day, DEFAULT_SESSION_TIME)
    return datetime.combine(day, start.timetz())
