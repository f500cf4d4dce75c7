from workout_batch.tracking.progress import ProgressTracker
from workout_batch.tracking.snapshots import Reverter, SnapshotManager

__all__ = [
    "ProgressTracker",
    "Reverter",
    "SnapshotManager",
]
