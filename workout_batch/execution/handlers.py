"""Operation handlers: what one item of each ``BatchOperationType`` does.

The executor drives every handler the same way::

    validate_item → capture → apply → new_state       (revert on rollback)

``capture`` returns the :class:`AffectedItem` recorded in the snapshot
immediately before the first mutating call; ``revert`` restores it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from workout_batch.collaborators.notifications import NotificationSink
from workout_batch.exceptions import EntityExistsError, EntityNotFoundError
from workout_batch.execution.payloads import (
    DeleteOutcome,
    DeleteTarget,
    DuplicateJob,
    ExportTarget,
    ImportRecord,
    SessionPlanItem,
)
from workout_batch.models import (
    AffectedItem,
    BatchOperationType,
    WorkoutSession,
    WorkoutTemplate,
    WorkoutUpdate,
)
from workout_batch.models.utils import utcnow
from workout_batch.store.base import Store

T = TypeVar("T")

logger = logging.getLogger(__name__)

TEMPLATE = "workout_template"
SESSION = "workout_session"


# ---------------------------------------------------------------------------
# Handler registry (operation type → handler class)
# ---------------------------------------------------------------------------

_handler_registry: dict[BatchOperationType, type[OperationHandler]] = {}


def register_operation_handler(*operation_types: BatchOperationType):
    """Decorator: register a handler class for one or more operation types."""

    def decorator(cls: type[OperationHandler]) -> type[OperationHandler]:
        for op in operation_types:
            _handler_registry[op] = cls
        return cls

    return decorator


def get_handler_class(operation_type: BatchOperationType) -> type[OperationHandler]:
    cls = _handler_registry.get(operation_type)
    if cls is None:
        raise ValueError(f"No handler registered for operation: {operation_type}")
    return cls


def build_handler(
    operation_type: BatchOperationType,
    store: Store,
    notifier: NotificationSink | None = None,
) -> OperationHandler:
    return get_handler_class(operation_type)(store, notifier)


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class OperationHandler(ABC, Generic[T]):
    entity_type: ClassVar[str] = TEMPLATE
    mutating: ClassVar[bool] = True

    def __init__(self, store: Store, notifier: NotificationSink | None = None) -> None:
        self.store = store
        self.notifier = notifier

    async def validate_item(self, data: T) -> str | None:
        """Return an item-level validation message, or None if valid."""
        return None

    @abstractmethod
    async def capture(self, item_id: str, data: T) -> AffectedItem:
        """Read the prior state of everything *apply* will touch."""

    @abstractmethod
    async def apply(self, data: T) -> Any:
        """Perform the operation; raise to fail the item."""

    def new_state(self, result: Any) -> dict[str, Any] | None:
        if isinstance(result, BaseModel):
            return result.model_dump(mode="json")
        return None

    async def revert(self, entry: AffectedItem) -> None:
        await _revert_template(self.store, entry)

    async def _require_template(self, template_id: str) -> WorkoutTemplate:
        template = await self.store.get_template(template_id)
        if template is None:
            raise EntityNotFoundError(TEMPLATE, template_id)
        return template

    async def missing_template(self, template_id: str) -> str | None:
        if await self.store.get_template(template_id) is None:
            return f"{TEMPLATE} {template_id} not found"
        return None


async def _revert_template(store: Store, entry: AffectedItem) -> None:
    if entry.previous_state is None:
        if await store.get_template(entry.id) is not None:
            await store.delete_template(entry.id)
        return
    await store.restore_template(WorkoutTemplate.model_validate(entry.previous_state))


async def _revert_session(store: Store, entry: AffectedItem) -> None:
    if entry.previous_state is None:
        if await store.get_session(entry.id) is not None:
            await store.delete_session(entry.id)
        return
    await store.restore_session(WorkoutSession.model_validate(entry.previous_state))


def _dump(model: BaseModel | None) -> dict[str, Any] | None:
    return model.model_dump(mode="json") if model is not None else None


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


@register_operation_handler(BatchOperationType.CREATE)
class CreateHandler(OperationHandler[WorkoutTemplate]):
    async def validate_item(self, data: WorkoutTemplate) -> str | None:
        if await self.store.get_template(data.id) is not None:
            return f"{TEMPLATE} {data.id} already exists"
        return None

    async def capture(self, item_id: str, data: WorkoutTemplate) -> AffectedItem:
        current = await self.store.get_template(data.id)
        return AffectedItem(id=data.id, type=TEMPLATE, previous_state=_dump(current))

    async def apply(self, data: WorkoutTemplate) -> WorkoutTemplate:
        return await self.store.create_template(data)


@register_operation_handler(BatchOperationType.UPDATE)
class UpdateHandler(OperationHandler[WorkoutUpdate]):
    async def validate_item(self, data: WorkoutUpdate) -> str | None:
        template = await self.store.get_template(data.workout_id)
        if template is None:
            return f"{TEMPLATE} {data.workout_id} not found"
        try:
            data.apply_to(template)
        except ValidationError as exc:
            return f"invalid changes for {data.workout_id}: {exc.errors()[0]['msg']}"
        return None

    async def capture(self, item_id: str, data: WorkoutUpdate) -> AffectedItem:
        current = await self.store.get_template(data.workout_id)
        return AffectedItem(id=data.workout_id, type=TEMPLATE, previous_state=_dump(current))

    async def apply(self, data: WorkoutUpdate) -> WorkoutTemplate:
        current = await self._require_template(data.workout_id)
        return await self.store.update_template(data.apply_to(current))


@register_operation_handler(BatchOperationType.DELETE)
class DeleteHandler(OperationHandler[DeleteTarget]):
    """Deletes a template; with ``cascade`` its sessions go first."""

    async def validate_item(self, data: DeleteTarget) -> str | None:
        return await self.missing_template(data.workout_id)

    async def capture(self, item_id: str, data: DeleteTarget) -> AffectedItem:
        current = await self.store.get_template(data.workout_id)
        related: list[AffectedItem] = []
        if data.cascade:
            sessions = await self.store.list_sessions_for_template(data.workout_id)
            related = [
                AffectedItem(id=s.id, type=SESSION, previous_state=_dump(s))
                for s in sessions
            ]
        return AffectedItem(
            id=data.workout_id,
            type=TEMPLATE,
            previous_state=_dump(current),
            related=related,
        )

    async def apply(self, data: DeleteTarget) -> DeleteOutcome:
        await self._require_template(data.workout_id)
        removed = 0
        if data.cascade:
            for session in await self.store.list_sessions_for_template(data.workout_id):
                await self.store.delete_session(session.id)
                removed += 1
        await self.store.delete_template(data.workout_id)
        return DeleteOutcome(workout_id=data.workout_id, cascaded_sessions=removed)

    async def revert(self, entry: AffectedItem) -> None:
        await _revert_template(self.store, entry)
        for child in entry.related:
            await _revert_session(self.store, child)


@register_operation_handler(BatchOperationType.ASSIGN, BatchOperationType.SCHEDULE)
class SessionCreateHandler(OperationHandler[SessionPlanItem]):
    """Creates one distributed session and optionally notifies its players."""

    entity_type = SESSION

    async def validate_item(self, data: SessionPlanItem) -> str | None:
        return await self.missing_template(data.session.template_id)

    async def capture(self, item_id: str, data: SessionPlanItem) -> AffectedItem:
        current = await self.store.get_session(data.session.id)
        return AffectedItem(
            id=data.session.id, type=SESSION, previous_state=_dump(current)
        )

    async def apply(self, data: SessionPlanItem) -> WorkoutSession:
        await self._require_template(data.session.template_id)
        created = await self.store.create_session(data.session)
        if data.notify and self.notifier is not None and created.player_ids:
            await self._notify(created)
        return created

    async def _notify(self, session: WorkoutSession) -> None:
        when = session.start_time.isoformat() if session.start_time else "unscheduled"
        try:
            await self.notifier.notify(  # type: ignore[union-attr]
                session.player_ids,
                f"You have been assigned to {session.name} ({when})",
                session=session,
            )
        except Exception as exc:
            logger.warning("Notification for session %s failed: %s", session.id, exc)

    async def revert(self, entry: AffectedItem) -> None:
        await _revert_session(self.store, entry)


@register_operation_handler(BatchOperationType.DUPLICATE)
class DuplicateHandler(OperationHandler[DuplicateJob]):
    async def validate_item(self, data: DuplicateJob) -> str | None:
        return await self.missing_template(data.source_id)

    async def capture(self, item_id: str, data: DuplicateJob) -> AffectedItem:
        current = await self.store.get_template(data.new_id)
        return AffectedItem(
            id=data.new_id, type=TEMPLATE, previous_state=_dump(current)
        )

    async def apply(self, data: DuplicateJob) -> WorkoutTemplate:
        source = await self._require_template(data.source_id)
        now = utcnow()
        copy = WorkoutTemplate.model_validate(
            {
                **source.model_dump(),
                "name": data.copy_name(source.name),
                **data.modifications,
                "id": data.new_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        return await self.store.create_template(copy)


@register_operation_handler(BatchOperationType.IMPORT)
class ImportHandler(OperationHandler[ImportRecord]):
    """Creates imported templates, or overwrites existing ones when
    ``update_existing`` is set."""

    async def validate_item(self, data: ImportRecord) -> str | None:
        try:
            template = WorkoutTemplate.model_validate(data.record)
        except ValidationError as exc:
            first = exc.errors()[0]
            where = ".".join(str(p) for p in first["loc"])
            return f"invalid record: {where}: {first['msg']}"
        if not data.update_existing and await self.store.get_template(template.id):
            return f"{TEMPLATE} {template.id} already exists"
        return None

    async def capture(self, item_id: str, data: ImportRecord) -> AffectedItem:
        current = await self.store.get_template(item_id)
        return AffectedItem(id=item_id, type=TEMPLATE, previous_state=_dump(current))

    async def apply(self, data: ImportRecord) -> WorkoutTemplate:
        template = WorkoutTemplate.model_validate(data.record)
        if await self.store.get_template(template.id) is None:
            return await self.store.create_template(template)
        if not data.update_existing:
            raise EntityExistsError(TEMPLATE, template.id)
        return await self.store.update_template(template)


@register_operation_handler(BatchOperationType.EXPORT)
class ExportHandler(OperationHandler[ExportTarget]):
    """Reads a template (and optionally its sessions) into a plain record."""

    mutating = False

    async def validate_item(self, data: ExportTarget) -> str | None:
        return await self.missing_template(data.template_id)

    async def capture(self, item_id: str, data: ExportTarget) -> AffectedItem:
        return AffectedItem(id=data.template_id, type=TEMPLATE, previous_state=None)

    async def apply(self, data: ExportTarget) -> dict[str, Any]:
        template = await self._require_template(data.template_id)
        record = template.model_dump(mode="json")
        if data.include_sessions:
            sessions = await self.store.list_sessions_for_template(data.template_id)
            record["sessions"] = [s.model_dump(mode="json") for s in sessions]
        return record

    async def revert(self, entry: AffectedItem) -> None:
        return None
