from __future__ import annotations

from datetime import datetime

from workout_batch.exceptions import EntityExistsError, EntityNotFoundError
from workout_batch.models import WorkoutSession, WorkoutTemplate
from workout_batch.models.utils import utcnow
from workout_batch.store.base import Store


class InMemoryStore(Store):
    """Store backed by plain Python dicts.

    Thread-safe within a single asyncio event loop (no concurrent
    mutation).  ``atomic()`` is inherited as a no-op from the base class.
    Entities are copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self) -> None:
        self._templates: dict[str, WorkoutTemplate] = {}
        self._sessions: dict[str, WorkoutSession] = {}

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        pass

    async def reset(self) -> None:
        self.__init__()  # type: ignore[misc]

    async def close(self) -> None:
        pass

    # ── Templates ────────────────────────────────────────────────────

    async def create_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        if template.id in self._templates:
            raise EntityExistsError("workout_template", template.id)
        self._templates[template.id] = template.model_copy(deep=True)
        return template.model_copy(deep=True)

    async def get_template(self, template_id: str) -> WorkoutTemplate | None:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def update_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        if template.id not in self._templates:
            raise EntityNotFoundError("workout_template", template.id)
        stored = template.model_copy(deep=True, update={"updated_at": utcnow()})
        self._templates[template.id] = stored
        return stored.model_copy(deep=True)

    async def delete_template(self, template_id: str) -> None:
        if self._templates.pop(template_id, None) is None:
            raise EntityNotFoundError("workout_template", template_id)

    async def list_templates(
        self, ids: list[str] | None = None
    ) -> list[WorkoutTemplate]:
        if ids is None:
            selected = list(self._templates.values())
        else:
            selected = [self._templates[i] for i in ids if i in self._templates]
        return [
            t.model_copy(deep=True)
            for t in sorted(selected, key=lambda t: (t.created_at, t.id))
        ]

    async def restore_template(self, template: WorkoutTemplate) -> None:
        self._templates[template.id] = template.model_copy(deep=True)

    # ── Sessions ─────────────────────────────────────────────────────

    async def create_session(self, session: WorkoutSession) -> WorkoutSession:
        if session.id in self._sessions:
            raise EntityExistsError("workout_session", session.id)
        self._sessions[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> WorkoutSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def update_session(self, session: WorkoutSession) -> WorkoutSession:
        if session.id not in self._sessions:
            raise EntityNotFoundError("workout_session", session.id)
        self._sessions[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def delete_session(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise EntityNotFoundError("workout_session", session_id)

    async def list_sessions_for_template(
        self, template_id: str
    ) -> list[WorkoutSession]:
        return [
            s.model_copy(deep=True)
            for s in sorted(self._sessions.values(), key=lambda s: (s.created_at, s.id))
            if s.template_id == template_id
        ]

    async def list_sessions_between(
        self, start: datetime, end: datetime
    ) -> list[WorkoutSession]:
        hits: list[WorkoutSession] = []
        for s in self._sessions.values():
            if s.start_time is None or s.end_time is None:
                continue
            if s.start_time < end and start < s.end_time:
                hits.append(s.model_copy(deep=True))
        return sorted(hits, key=lambda s: (s.start_time, s.id))

    async def restore_session(self, session: WorkoutSession) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)
