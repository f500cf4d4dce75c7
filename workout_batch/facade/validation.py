"""Request validation.

Structural issues (``item_id is None``) reject the whole request before a
run is queued.  Item-level issues only fail the items they name; they are
keyed by the entity the items act on (template id, or source template id
for duplicates and distributed sessions).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import TYPE_CHECKING

from workout_batch.models import (
    BatchSchedulePattern,
    BatchValidationResult,
    BulkModeConfig,
    DistributionStrategy,
)

if TYPE_CHECKING:
    from workout_batch.facade.operations import BatchOperation

logger = logging.getLogger(__name__)

MIN_SESSION_DURATION = 15
MAX_SESSION_DURATION = 180

ITEM_CODE = "VALIDATION"


def require_items(result: BatchValidationResult, items: list, label: str) -> bool:
    if not items:
        result.add(f"No {label} given", "EMPTY_REQUEST", field=label)
        return False
    return True


def check_unique(result: BatchValidationResult, ids: Iterable[str], label: str) -> None:
    for entity_id, count in Counter(ids).items():
        if count > 1:
            result.add(
                f"Duplicate {label} {entity_id} ({count} times)",
                "DUPLICATE_ID",
                field=label,
            )


def check_duration(result: BatchValidationResult, minutes: int, where: str) -> None:
    if not MIN_SESSION_DURATION <= minutes <= MAX_SESSION_DURATION:
        result.add(
            f"{where}: session duration must be between {MIN_SESSION_DURATION} "
            f"and {MAX_SESSION_DURATION} minutes, got {minutes}",
            "INVALID_DURATION",
            field="session_duration",
        )


def check_bulk_config(
    result: BatchValidationResult,
    config: BulkModeConfig,
    *,
    has_skills: bool,
) -> None:
    """Structural checks for the distribution settings of assign/schedule."""
    if config.number_of_sessions < 1:
        result.add(
            f"number_of_sessions must be >= 1, got {config.number_of_sessions}",
            "INVALID_SESSION_COUNT",
            field="number_of_sessions",
        )
    if config.stagger_interval < 0:
        result.add(
            f"stagger_interval must be >= 0, got {config.stagger_interval}",
            "INVALID_STAGGER",
            field="stagger_interval",
        )
    check_duration(result, config.session_duration, "bulk config")

    strategy = config.distribution_strategy
    if strategy is DistributionStrategy.SKILL_BASED and not has_skills:
        result.add(
            "skill-based distribution needs a skill provider",
            "MISSING_SKILLS",
            field="distribution_strategy",
        )
    if strategy is not DistributionStrategy.MANUAL:
        return

    configs = config.session_configurations
    if not configs:
        result.add(
            "manual distribution needs session_configurations",
            "MISSING_CONFIGURATIONS",
            field="session_configurations",
        )
        return
    names = [c.name.strip() for c in configs]
    if any(not name for name in names):
        result.add(
            "manual session names must not be blank",
            "INVALID_SESSION_NAME",
            field="session_configurations",
        )
    for name, count in Counter(n for n in names if n).items():
        if count > 1:
            result.add(
                f"Duplicate manual session name {name!r}",
                "INVALID_SESSION_NAME",
                field="session_configurations",
            )
    for sc in configs:
        if sc.duration is not None:
            check_duration(result, sc.duration, f"session {sc.name!r}")


def check_pattern(result: BatchValidationResult, pattern: BatchSchedulePattern) -> None:
    if pattern.end_date is not None and pattern.end_date < pattern.start_date:
        result.add(
            f"Schedule pattern ends ({pattern.end_date}) before it starts "
            f"({pattern.start_date})",
            "INVALID_PATTERN",
            field="pattern",
        )
    elif not pattern.expand():
        result.add(
            "Schedule pattern does not produce any date",
            "INVALID_PATTERN",
            field="pattern",
        )


async def validate_operation(operation: BatchOperation) -> BatchValidationResult:
    """Run structural then item-level validation; never mutates state.

    Item-level checks only run when the request is structurally sound.
    """
    result = BatchValidationResult()
    operation.check_structure(result)
    if result.errors:
        logger.info(
            "%s request rejected: %s",
            operation.operation_type,
            "; ".join(issue.message for issue in result.errors),
        )
        return result

    for key, message in await operation.check_items():
        result.add(message, ITEM_CODE, item_id=key)
    result.item_count = operation.item_count()
    return result
