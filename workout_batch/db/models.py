from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from workout_batch.models.utils import generate_id, utcnow


class Base(DeclarativeBase):
    """Declarative base for all workout_batch tables."""

    pass


class TimeStampMixin:
    """Mixin that adds created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class TemplateRow(TimeStampMixin, Base):
    __tablename__ = "workout_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    exercises: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    equipment: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assigned_player_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assigned_team_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (Index("idx_workout_templates_created_at", "created_at"),)


class SessionRow(Base):
    """A scheduled workout session.

    ``template_id`` is deliberately not a foreign key: deleting a template
    without ``cascade`` leaves its sessions in place.
    """

    __tablename__ = "workout_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    template_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    facility_id: Mapped[str | None] = mapped_column(String, nullable=True)
    equipment: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    player_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    team_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    staff_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_workout_sessions_template_id", "template_id"),
        Index("idx_workout_sessions_window", "start_time", "end_time"),
    )
