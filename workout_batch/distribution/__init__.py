from workout_batch.distribution.planner import DistributionPlan, DistributionPlanner
from workout_batch.distribution.schedule import on_date, session_start
from workout_batch.distribution.strategies import (
    EvenDistributor,
    ManualDistributor,
    SessionDistributor,
    SkillBasedDistributor,
    TeamBasedDistributor,
)

__all__ = [
    "DistributionPlan",
    "DistributionPlanner",
    "EvenDistributor",
    "ManualDistributor",
    "SessionDistributor",
    "SkillBasedDistributor",
    "TeamBasedDistributor",
    "on_date",
    "session_start",
]
