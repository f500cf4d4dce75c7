from workout_batch.collaborators.directory import PlayerDirectory, StaticDirectory
from workout_batch.collaborators.notifications import (
    LoggingNotificationSink,
    Notification,
    NotificationSink,
)
from workout_batch.collaborators.schedule import (
    Booking,
    MedicalRestriction,
    ScheduleLookup,
    StoreScheduleLookup,
)
from workout_batch.collaborators.skills import SkillProvider, StaticSkillProvider

__all__ = [
    "Booking",
    "LoggingNotificationSink",
    "MedicalRestriction",
    "Notification",
    "NotificationSink",
    "PlayerDirectory",
    "ScheduleLookup",
    "SkillProvider",
    "StaticDirectory",
    "StaticSkillProvider",
    "StoreScheduleLookup",
]
