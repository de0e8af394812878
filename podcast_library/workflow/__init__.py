"""Background maintenance for the library store.

This package provides environment-driven configuration and workers that keep
the store within its retention policy.
"""

from podcast_library.workflow.config import RetentionConfig
from podcast_library.workflow.workers.base import WorkerInterface, WorkerResult

__all__ = [
    "RetentionConfig",
    "WorkerInterface",
    "WorkerResult",
]
