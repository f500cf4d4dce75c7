"""Existing-schedule lookup used by conflict detection.

A ``Booking`` is anything that already occupies players, a facility,
equipment or staff for a time window: stored workout sessions, games,
meetings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime

from workout_batch.store.base import Store


@dataclass(frozen=True)
class Booking:
    id: str
    kind: str
    start: datetime
    end: datetime
    player_ids: frozenset[str] = frozenset()
    facility_id: str | None = None
    equipment: tuple[str, ...] = ()
    staff_ids: frozenset[str] = frozenset()
    label: str = ""

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class MedicalRestriction:
    player_id: str
    start: date
    end: date | None = None
    reason: str = "medical restriction"

    def active_on(self, day: date) -> bool:
        return self.start <= day and (self.end is None or day <= self.end)


class ScheduleLookup(ABC):
    @abstractmethod
    async def bookings_between(self, start: datetime, end: datetime) -> list[Booking]:
        """Every booking overlapping ``[start, end)``."""
        ...

    @abstractmethod
    async def medical_restrictions(
        self, player_ids: list[str], day: date
    ) -> list[MedicalRestriction]:
        """Restrictions active on *day* for any of *player_ids*."""
        ...


class StoreScheduleLookup(ScheduleLookup):
    """Reads stored sessions from the :class:`Store`, plus fixed extra
    bookings (games etc.) and medical restrictions supplied up front."""

    def __init__(
        self,
        store: Store,
        extra_bookings: list[Booking] | None = None,
        medical: list[MedicalRestriction] | None = None,
    ) -> None:
        self._store = store
        self._extra = list(extra_bookings or [])
        self._medical = list(medical or [])

    async def bookings_between(self, start: datetime, end: datetime) -> list[Booking]:
        sessions = await self._store.list_sessions_between(start, end)
        bookings = [
            Booking(
                id=s.id,
                kind="session",
                start=s.start_time,
                end=s.end_time,
                player_ids=frozenset(s.player_ids),
                facility_id=s.facility_id,
                equipment=tuple(s.equipment),
                staff_ids=frozenset(s.staff_ids),
                label=s.name,
            )
            for s in sessions
            if s.start_time is not None and s.end_time is not None
        ]
        bookings.extend(b for b in self._extra if b.overlaps(start, end))
        return bookings

    async def medical_restrictions(
        self, player_ids: list[str], day: date
    ) -> list[MedicalRestriction]:
        wanted = set(player_ids)
        return [
            r for r in self._medical if r.player_id in wanted and r.active_on(day)
        ]
