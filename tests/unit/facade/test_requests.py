from __future__ import annotations

from datetime import date

import pytest

from workout_batch import (
    BatchCreateWorkoutRequest,
    BatchScheduleWorkoutRequest,
    BatchValidationError,
    request_from_dict,
)
from workout_batch.models import (
    DistributionStrategy,
    OnErrorPolicy,
    PatternType,
    TargetType,
)


def test_create_request_from_document():
    request = request_from_dict(
        {
            "operation": "create",
            "templates": [{"name": "Lower body", "duration": 45}],
            "options": {"on_error": "stop", "parallel": True},
        }
    )

    assert isinstance(request, BatchCreateWorkoutRequest)
    assert request.templates[0].duration == 45
    assert request.options.on_error is OnErrorPolicy.STOP
    assert request.options.effective_chunk_size == 10


def test_schedule_request_from_document():
    request = request_from_dict(
        {
            "operation": "schedule",
            "workout_ids": ["w1"],
            "targets": [{"type": "team", "id": "u18"}],
            "pattern": {
                "type": "weekly",
                "start_date": "2026-01-05",
                "days_of_week": [0, 3],
            },
            "bulk": {"number_of_sessions": 2, "distribution_strategy": "team-based"},
        }
    )

    assert isinstance(request, BatchScheduleWorkoutRequest)
    assert request.targets[0].type is TargetType.TEAM
    assert request.pattern.type is PatternType.WEEKLY
    assert request.pattern.start_date == date(2026, 1, 5)
    assert request.bulk.distribution_strategy is DistributionStrategy.TEAM_BASED


@pytest.mark.parametrize("operation", ["explode", None])
def test_unknown_operation(operation):
    with pytest.raises(BatchValidationError) as excinfo:
        request_from_dict({"operation": operation})
    assert excinfo.value.result.errors[0].code == "UNKNOWN_OPERATION"


def test_malformed_body_lists_every_field():
    with pytest.raises(BatchValidationError) as excinfo:
        request_from_dict(
            {"operation": "delete", "workout_ids": "w1", "cascade": "maybe"}
        )

    issues = excinfo.value.result.errors
    assert {i.code for i in issues} == {"INVALID_REQUEST"}
    assert {i.field for i in issues} == {"workout_ids", "cascade"}
