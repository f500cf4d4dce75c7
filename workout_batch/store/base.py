from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from types import TracebackType

from workout_batch.models import WorkoutSession, WorkoutTemplate


class Store(ABC):
    """Persistence adapter for workout templates and sessions.

    Implementations must override every ``@abstractmethod``.
    ``create_*`` raise ``EntityExistsError`` for a taken id; ``update_*`` and
    ``delete_*`` raise ``EntityNotFoundError`` for a missing one.
    ``restore_*`` upsert a previously captured state (used by rollback).
    """

    # ── Lifecycle ────────────────────────────────────────────────────

    @abstractmethod
    async def init(self) -> None:
        """Create tables / indices (idempotent)."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any held resources (connections, file handles)."""
        ...

    async def ping(self) -> None:
        """Raise ``CollaboratorUnavailableError`` if the store is unreachable."""

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Wrap multiple operations in a single commit.

        The default implementation is a no-op (each operation is
        auto-committed).  Database-backed stores override this to open
        a session, yield, then commit-or-rollback.
        """
        yield

    # ── Templates ────────────────────────────────────────────────────

    @abstractmethod
    async def create_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        ...

    @abstractmethod
    async def get_template(self, template_id: str) -> WorkoutTemplate | None:
        ...

    @abstractmethod
    async def update_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        ...

    @abstractmethod
    async def delete_template(self, template_id: str) -> None:
        ...

    @abstractmethod
    async def list_templates(
        self, ids: list[str] | None = None
    ) -> list[WorkoutTemplate]:
        """Return templates ordered by ``created_at``; all of them if *ids* is None."""
        ...

    @abstractmethod
    async def restore_template(self, template: WorkoutTemplate) -> None:
        ...

    # ── Sessions ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_session(self, session: WorkoutSession) -> WorkoutSession:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> WorkoutSession | None:
        ...

    @abstractmethod
    async def update_session(self, session: WorkoutSession) -> WorkoutSession:
        ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def list_sessions_for_template(
        self, template_id: str
    ) -> list[WorkoutSession]:
        ...

    @abstractmethod
    async def list_sessions_between(
        self, start: datetime, end: datetime
    ) -> list[WorkoutSession]:
        """Sessions whose ``[start_time, end_time)`` overlaps ``[start, end)``."""
        ...

    @abstractmethod
    async def restore_session(self, session: WorkoutSession) -> None:
        ...
