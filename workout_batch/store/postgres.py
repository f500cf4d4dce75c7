from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.sql import text

from workout_batch.db.models import Base, SessionRow, TemplateRow
from workout_batch.exceptions import (
    CollaboratorUnavailableError,
    EntityExistsError,
    EntityNotFoundError,
)
from workout_batch.models import (
    SessionStatus,
    WorkoutSession,
    WorkoutTemplate,
    WorkoutType,
)
from workout_batch.store.base import Store

logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = (
    "name",
    "type",
    "description",
    "duration",
    "exercises",
    "equipment",
    "tags",
    "assigned_player_ids",
    "assigned_team_ids",
)


class PostgresStore(Store):
    """Store backed by PostgreSQL via SQLAlchemy + asyncpg.

    Translates to/from the pydantic domain models at the boundary.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "workout_batch",
        user: str = "postgres",
        password: str = "postgres",
        *,
        pool_size: int = 10,
        max_overflow: int = 20,
    ) -> None:
        url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{database}"
        self._engine = create_async_engine(
            url,
            echo=False,
            pool_size=pool_size,
            max_overflow=max_overflow,
        )
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._scoped_session: AsyncSession | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PostgresStore:
        params = dict(config)
        if "port" in params:
            params["port"] = int(params["port"])
        return cls(**params)

    @asynccontextmanager
    async def _auto_session(self) -> AsyncIterator[AsyncSession]:
        """Yield the scoped session if inside ``atomic()``, else a fresh
        auto-committing session that is closed after use."""
        if self._scoped_session is not None:
            yield self._scoped_session
            return
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def reset(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await self.init()

    async def close(self) -> None:
        await self._engine.dispose()

    async def ping(self) -> None:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            logger.error("PostgreSQL unreachable: %s", exc)
            raise CollaboratorUnavailableError(f"PostgreSQL unreachable: {exc}") from exc

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        session = self._session_factory()
        self._scoped_session = session
        try:
            yield
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
            self._scoped_session = None

    # ── Templates ────────────────────────────────────────────────────

    async def create_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        async with self._auto_session() as s:
            if await s.get(TemplateRow, template.id) is not None:
                raise EntityExistsError("workout_template", template.id)
            row = TemplateRow(id=template.id, **_template_values(template))
            row.created_at = template.created_at
            row.updated_at = template.updated_at
            s.add(row)
            await s.flush()
            return _template_from_orm(row)

    async def get_template(self, template_id: str) -> WorkoutTemplate | None:
        async with self._auto_session() as s:
            row = await s.get(TemplateRow, template_id)
        if row is None:
            return None
        return _template_from_orm(row)

    async def update_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        async with self._auto_session() as s:
            row = await s.get(TemplateRow, template.id)
            if row is None:
                raise EntityNotFoundError("workout_template", template.id)
            for key, value in _template_values(template).items():
                setattr(row, key, value)
            await s.flush()
            return _template_from_orm(row)

    async def delete_template(self, template_id: str) -> None:
        async with self._auto_session() as s:
            row = await s.get(TemplateRow, template_id)
            if row is None:
                raise EntityNotFoundError("workout_template", template_id)
            await s.delete(row)

    async def list_templates(
        self, ids: list[str] | None = None
    ) -> list[WorkoutTemplate]:
        async with self._auto_session() as s:
            stmt = select(TemplateRow).order_by(TemplateRow.created_at, TemplateRow.id)
            if ids is not None:
                stmt = stmt.where(TemplateRow.id.in_(ids))
            rows = list((await s.execute(stmt)).scalars().all())
        return [_template_from_orm(r) for r in rows]

    async def restore_template(self, template: WorkoutTemplate) -> None:
        values = {
            "id": template.id,
            **_template_values(template),
            "created_at": template.created_at,
            "updated_at": template.updated_at,
        }
        stmt = insert(TemplateRow).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={k: stmt.excluded[k] for k in values if k != "id"},
        )
        async with self._auto_session() as s:
            await s.execute(stmt)

    # ── Sessions ─────────────────────────────────────────────────────

    async def create_session(self, session: WorkoutSession) -> WorkoutSession:
        async with self._auto_session() as s:
            if await s.get(SessionRow, session.id) is not None:
                raise EntityExistsError("workout_session", session.id)
            row = SessionRow(
                id=session.id,
                created_at=session.created_at,
                **_session_values(session),
            )
            s.add(row)
            await s.flush()
            return _session_from_orm(row)

    async def get_session(self, session_id: str) -> WorkoutSession | None:
        async with self._auto_session() as s:
            row = await s.get(SessionRow, session_id)
        if row is None:
            return None
        return _session_from_orm(row)

    async def update_session(self, session: WorkoutSession) -> WorkoutSession:
        async with self._auto_session() as s:
            row = await s.get(SessionRow, session.id)
            if row is None:
                raise EntityNotFoundError("workout_session", session.id)
            for key, value in _session_values(session).items():
                setattr(row, key, value)
            await s.flush()
            return _session_from_orm(row)

    async def delete_session(self, session_id: str) -> None:
        async with self._auto_session() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                raise EntityNotFoundError("workout_session", session_id)
            await s.delete(row)

    async def list_sessions_for_template(
        self, template_id: str
    ) -> list[WorkoutSession]:
        async with self._auto_session() as s:
            stmt = (
                select(SessionRow)
                .where(SessionRow.template_id == template_id)
                .order_by(SessionRow.created_at, SessionRow.id)
            )
            rows = list((await s.execute(stmt)).scalars().all())
        return [_session_from_orm(r) for r in rows]

    async def list_sessions_between(
        self, start: datetime, end: datetime
    ) -> list[WorkoutSession]:
        async with self._auto_session() as s:
            stmt = (
                select(SessionRow)
                .where(
                    and_(
                        SessionRow.start_time.is_not(None),
                        SessionRow.start_time < end,
                        SessionRow.end_time > start,
                    )
                )
                .order_by(SessionRow.start_time, SessionRow.id)
            )
            rows = list((await s.execute(stmt)).scalars().all())
        return [_session_from_orm(r) for r in rows]

    async def restore_session(self, session: WorkoutSession) -> None:
        values = {
            "id": session.id,
            **_session_values(session),
            "created_at": session.created_at,
        }
        stmt = insert(SessionRow).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={k: stmt.excluded[k] for k in values if k != "id"},
        )
        async with self._auto_session() as s:
            await s.execute(stmt)


# ── domain ↔ ORM converters ─────────────────────────────────────────


def _template_values(template: WorkoutTemplate) -> dict[str, Any]:
    dumped = template.model_dump(mode="json")
    return {key: dumped[key] for key in _TEMPLATE_FIELDS}


def _session_values(session: WorkoutSession) -> dict[str, Any]:
    return {
        "template_id": session.template_id,
        "name": session.name,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "duration": session.duration,
        "facility_id": session.facility_id,
        "equipment": list(session.equipment),
        "player_ids": list(session.player_ids),
        "team_ids": list(session.team_ids),
        "staff_ids": list(session.staff_ids),
        "status": session.status.value,
    }


def _template_from_orm(row: TemplateRow) -> WorkoutTemplate:
    return WorkoutTemplate(
        id=row.id,
        name=row.name,
        type=WorkoutType(row.type),
        description=row.description,
        duration=row.duration,
        exercises=row.exercises,
        equipment=row.equipment,
        tags=row.tags,
        assigned_player_ids=row.assigned_player_ids,
        assigned_team_ids=row.assigned_team_ids,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _session_from_orm(row: SessionRow) -> WorkoutSession:
    return WorkoutSession(
        id=row.id,
        template_id=row.template_id,
        name=row.name,
        start_time=row.start_time,
        duration=row.duration,
        facility_id=row.facility_id,
        equipment=row.equipment,
        player_ids=row.player_ids,
        team_ids=row.team_ids,
        staff_ids=row.staff_ids,
        status=SessionStatus(row.status),
        created_at=row.created_at,
    )
