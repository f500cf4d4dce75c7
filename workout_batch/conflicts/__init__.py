from workout_batch.conflicts.detector import (
    ConflictDetector,
    ConflictReport,
    ConflictResolution,
)

__all__ = [
    "ConflictDetector",
    "ConflictReport",
    "ConflictResolution",
]
