from __future__ import annotations

import enum
from collections.abc import Iterator
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_OCCURRENCES = 52
_MAX_SCAN_DAYS = 3660


class TargetType(enum.StrEnum):
    PLAYER = "player"
    TEAM = "team"
    GROUP = "group"


class BatchAssignmentTarget(BaseModel):
    """A schedulable entity. Referenced, never owned, by distributions."""

    model_config = ConfigDict(frozen=True)

    type: TargetType
    id: str
    metadata: dict[str, Any] | None = None

    @classmethod
    def player(cls, player_id: str) -> BatchAssignmentTarget:
        return cls(type=TargetType.PLAYER, id=player_id)

    @classmethod
    def team(cls, team_id: str) -> BatchAssignmentTarget:
        return cls(type=TargetType.TEAM, id=team_id)

    @property
    def is_collective(self) -> bool:
        return self.type is not TargetType.PLAYER


class PatternType(enum.StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class BatchSchedulePattern(BaseModel):
    """Recurrence rule expanded into concrete session dates.

    ``days_of_week`` uses ``date.weekday()`` numbering (0 = Monday).
    Open-ended patterns (no ``end_date``) stop after ``max_occurrences``.
    """

    model_config = ConfigDict(frozen=True)

    type: PatternType
    start_date: date
    interval: int = Field(default=1, ge=1)
    days_of_week: list[int] = Field(default_factory=list)
    days_of_month: list[int] = Field(default_factory=list)
    end_date: date | None = None
    exclude_dates: list[date] = Field(default_factory=list)

    def expand(self, *, max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> list[date]:
        """Return the concrete dates matched by this pattern, in order."""
        if self.end_date is not None and self.end_date < self.start_date:
            return []

        excluded = set(self.exclude_dates)
        dates: list[date] = []
        for day in self._scan():
            if not self._matches(day) or day in excluded:
                continue
            dates.append(day)
            if len(dates) >= max_occurrences:
                break
        return dates

    def _scan(self) -> Iterator[date]:
        last = self.end_date or self.start_date + timedelta(days=_MAX_SCAN_DAYS)
        day = self.start_date
        while day <= last:
            yield day
            day += timedelta(days=1)

    def _matches(self, day: date) -> bool:
        offset = (day - self.start_date).days
        match self.type:
            case PatternType.DAILY:
                return offset % self.interval == 0

            case PatternType.WEEKLY:
                weekdays = self.days_of_week or [self.start_date.weekday()]
                week_start = self.start_date - timedelta(days=self.start_date.weekday())
                week_index = (day - week_start).days // 7
                return week_index % self.interval == 0 and day.weekday() in weekdays

            case PatternType.MONTHLY:
                month_days = self.days_of_month or [self.start_date.day]
                months = (day.year - self.start_date.year) * 12 + (
                    day.month - self.start_date.month
                )
                return months % self.interval == 0 and day.day in month_days

            case PatternType.CUSTOM:
                if not self.days_of_week and not self.days_of_month:
                    return offset % self.interval == 0
                return (
                    day.weekday() in self.days_of_week or day.day in self.days_of_month
                )

            case _:
                raise ValueError(f"Unknown schedule pattern type: {self.type}")
