from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from workout_batch.collaborators.directory import PlayerDirectory
from workout_batch.collaborators.schedule import Booking, ScheduleLookup
from workout_batch.models import (
    BulkModeConfig,
    ConflictCategory,
    SessionConflict,
    SessionDistributionSummary,
)

logger = logging.getLogger(__name__)

# Only overlaps with already-booked players or staff are fixed by moving
# the session; facility, equipment and medical conflicts are reported as is.
_SHIFTABLE = frozenset({ConflictCategory.SCHEDULING})


@dataclass(frozen=True)
class ConflictResolution:
    session_id: str
    original_start: datetime
    new_start: datetime
    attempts: int


@dataclass
class ConflictReport:
    conflicts: dict[str, list[SessionConflict]] = field(default_factory=dict)
    blocked_session_ids: set[str] = field(default_factory=set)
    unresolved: list[str] = field(default_factory=list)
    resolutions: list[ConflictResolution] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return any(self.conflicts.values())

    def is_blocked(self, session_id: str) -> bool:
        return session_id in self.blocked_session_ids

    def messages(self) -> list[str]:
        return [
            f"{sid}: {conflict}"
            for sid, items in self.conflicts.items()
            for conflict in items
        ]


@dataclass
class _Window:
    """A settled session from earlier in the same batch."""

    start: datetime
    end: datetime
    players: set[str]
    facility: str | None
    equipment: list[str]
    staff: set[str]

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


class ConflictDetector:
    """Checks distributed sessions against the existing schedule and each
    other, shifting start times to resolve player clashes when allowed.

    Summaries are checked in order; a clash between two summaries of the
    same batch is reported on the later one.  Summaries are updated in
    place (``conflicts`` and, after a successful shift, ``start_time``).
    """

    def __init__(
        self,
        lookup: ScheduleLookup,
        directory: PlayerDirectory | None = None,
    ) -> None:
        self._lookup = lookup
        self._directory = directory

    async def detect(
        self,
        summaries: list[SessionDistributionSummary],
        config: BulkModeConfig,
    ) -> ConflictReport:
        report = ConflictReport()
        settled: list[_Window] = []

        for summary in summaries:
            if summary.start_time is None:
                summary.conflicts = []
                continue

            players = await self._players(summary)
            conflicts = await self._check(
                summary, summary.start_time, players, settled, config
            )

            if config.auto_resolve_conflicts and _shiftable(conflicts):
                conflicts = await self._resolve(
                    summary, players, settled, config, conflicts, report
                )

            summary.conflicts = conflicts
            report.conflicts[summary.session_id] = conflicts
            if conflicts and not config.auto_resolve_conflicts:
                report.blocked_session_ids.add(summary.session_id)

            start = summary.start_time
            settled.append(
                _Window(
                    start=start,
                    end=start + _duration(summary, config),
                    players=players,
                    facility=summary.facility,
                    equipment=list(summary.equipment),
                    staff=set(summary.staff_ids),
                )
            )

        if report.has_conflicts:
            logger.info(
                "Detected conflicts in %d of %d session(s) (%d blocked, %d unresolved)",
                sum(1 for c in report.conflicts.values() if c),
                len(summaries),
                len(report.blocked_session_ids),
                len(report.unresolved),
            )
        return report

    async def _resolve(
        self,
        summary: SessionDistributionSummary,
        players: set[str],
        settled: list[_Window],
        config: BulkModeConfig,
        conflicts: list[SessionConflict],
        report: ConflictReport,
    ) -> list[SessionConflict]:
        original = summary.start_time
        assert original is not None
        step = timedelta(minutes=config.resolution_step_minutes)

        for attempt in range(1, config.max_resolution_attempts + 1):
            candidate = original + step * attempt
            found = await self._check(summary, candidate, players, settled, config)
            if not _shiftable(found):
                summary.start_time = candidate
                report.resolutions.append(
                    ConflictResolution(
                        session_id=summary.session_id,
                        original_start=original,
                        new_start=candidate,
                        attempts=attempt,
                    )
                )
                logger.info(
                    "Shifted session %s by %d min to resolve conflicts",
                    summary.session_id,
                    config.resolution_step_minutes * attempt,
                )
                return found

        report.unresolved.append(summary.session_id)
        logger.warning(
            "Could not resolve conflicts for session %s after %d attempt(s)",
            summary.session_id,
            config.max_resolution_attempts,
        )
        return conflicts

    async def _players(self, summary: SessionDistributionSummary) -> set[str]:
        players = set(summary.player_ids)
        if self._directory is not None:
            for team_id in summary.team_ids:
                players.update(await self._directory.get_team_members(team_id))
        return players

    async def _check(
        self,
        summary: SessionDistributionSummary,
        start: datetime,
        players: set[str],
        settled: list[_Window],
        config: BulkModeConfig,
    ) -> list[SessionConflict]:
        end = start + _duration(summary, config)
        bookings = await self._lookup.bookings_between(start, end)
        peers = [w for w in settled if w.overlaps(start, end)]

        conflicts: list[SessionConflict] = []
        conflicts.extend(_player_conflicts(players, bookings, peers))
        conflicts.extend(await self._medical_conflicts(players, start))
        conflicts.extend(_staff_conflicts(set(summary.staff_ids), bookings, peers))
        conflicts.extend(_facility_conflicts(summary.facility, bookings, peers))
        conflicts.extend(
            _equipment_conflicts(
                summary.equipment, bookings, peers, config.equipment_capacity
            )
        )
        return conflicts

    async def _medical_conflicts(
        self, players: set[str], start: datetime
    ) -> list[SessionConflict]:
        if not players:
            return []
        restrictions = await self._lookup.medical_restrictions(
            sorted(players), start.date()
        )
        return [
            SessionConflict(
                category=ConflictCategory.PLAYERS,
                message=f"player {r.player_id} unavailable: {r.reason}",
                subject_id=r.player_id,
            )
            for r in restrictions
        ]


def _duration(summary: SessionDistributionSummary, config: BulkModeConfig) -> timedelta:
    return timedelta(minutes=summary.estimated_duration or config.session_duration)


def _shiftable(conflicts: list[SessionConflict]) -> bool:
    return any(c.category in _SHIFTABLE for c in conflicts)


def _player_conflicts(
    players: set[str], bookings: list[Booking], peers: list[_Window]
) -> list[SessionConflict]:
    conflicts: list[SessionConflict] = []
    for booking in bookings:
        clash = players & booking.player_ids
        if clash:
            conflicts.append(
                SessionConflict(
                    category=ConflictCategory.SCHEDULING,
                    message=(
                        f"{len(clash)} player(s) already booked in "
                        f"{booking.kind} '{booking.label or booking.id}'"
                    ),
                    subject_id=booking.id,
                )
            )
    for peer in peers:
        clash = players & peer.players
        if clash:
            conflicts.append(
                SessionConflict(
                    category=ConflictCategory.SCHEDULING,
                    message=f"{len(clash)} player(s) double-booked within this batch",
                )
            )
    return conflicts


def _staff_conflicts(
    staff: set[str], bookings: list[Booking], peers: list[_Window]
) -> list[SessionConflict]:
    busy: set[str] = set()
    for booking in bookings:
        busy |= staff & booking.staff_ids
    for peer in peers:
        busy |= staff & peer.staff
    return [
        SessionConflict(
            category=ConflictCategory.SCHEDULING,
            message=f"staff {sid} is double-booked",
            subject_id=sid,
        )
        for sid in sorted(busy)
    ]


def _facility_conflicts(
    facility: str | None, bookings: list[Booking], peers: list[_Window]
) -> list[SessionConflict]:
    if facility is None:
        return []
    taken = any(b.facility_id == facility for b in bookings) or any(
        p.facility == facility for p in peers
    )
    if not taken:
        return []
    return [
        SessionConflict(
            category=ConflictCategory.FACILITIES,
            message=f"facility {facility} is already booked",
            subject_id=facility,
        )
    ]


def _equipment_conflicts(
    equipment: list[str],
    bookings: list[Booking],
    peers: list[_Window],
    capacity: dict[str, int],
) -> list[SessionConflict]:
    conflicts: list[SessionConflict] = []
    for item in dict.fromkeys(equipment):
        in_use = sum(1 for b in bookings if item in b.equipment) + sum(
            1 for p in peers if item in p.equipment
        )
        limit = capacity.get(item, 1)
        if in_use + 1 > limit:
            conflicts.append(
                SessionConflict(
                    category=ConflictCategory.EQUIPMENT,
                    message=f"equipment {item} over capacity ({in_use + 1}/{limit})",
                    subject_id=item,
                )
            )
    return conflicts
