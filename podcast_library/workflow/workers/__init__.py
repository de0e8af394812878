"""Maintenance workers for the library store.

- RetentionWorker: Prunes playback history to the retention policy
"""

from podcast_library.workflow.workers.base import WorkerInterface, WorkerResult
from podcast_library.workflow.workers.retention import (
    RetentionCutoff,
    RetentionWorker,
    prune_playback_history,
)

__all__ = [
    "RetentionCutoff",
    "RetentionWorker",
    "WorkerInterface",
    "WorkerResult",
    "prune_playback_history",
]
