"""Retention worker for pruning playback history.

Keeps at most `max_sessions` sessions and nothing older than the retention
window. Sessions are removed through the cascade deleter so their owned blobs
go with them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from podcast_library.db.repository import LibraryRepositoryInterface
from podcast_library.library.cascade import CascadeDeleter
from podcast_library.utils.time_utils import now_ms as current_time_ms
from podcast_library.workflow.config import RetentionConfig
from podcast_library.workflow.workers.base import WorkerInterface, WorkerResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionCutoff:
    """Cutoff timestamps (epoch ms); sessions played strictly before `effective` are pruned.

    Attributes:
        count_cutoff: last_played_at of the N-th most recent session, or 0 when
            fewer than N sessions exist.
        time_cutoff: Now minus the retention window.
        effective: The larger of the two, which prunes more.
    """

    count_cutoff: int
    time_cutoff: int
    effective: int


class RetentionWorker(WorkerInterface):
    """Worker that prunes playback sessions outside the retention policy."""

    def __init__(
        self,
        repository: LibraryRepositoryInterface,
        config: Optional[RetentionConfig] = None,
        cascade: Optional[CascadeDeleter] = None,
    ):
        """Initialize the retention worker.

        Args:
            repository: Library store holding the sessions.
            config: Retention policy; defaults to `RetentionConfig()`.
            cascade: Deleter used to remove sessions and their blobs.
        """
        self.repository = repository
        self.config = config or RetentionConfig()
        self.cascade = cascade or CascadeDeleter(repository)

    @property
    def name(self) -> str:
        """Human-readable name for this worker."""
        return "Retention"

    def compute_cutoff(self, now_ms: Optional[int] = None) -> RetentionCutoff:
        if now_ms is None:
            now_ms = current_time_ms()

        count_cutoff = (
            self.repository.get_nth_most_recent_played_at(self.config.max_sessions) or 0
        )
        time_cutoff = now_ms - self.config.retention_ms
        return RetentionCutoff(
            count_cutoff=count_cutoff,
            time_cutoff=time_cutoff,
            effective=max(count_cutoff, time_cutoff),
        )

    def get_pending_count(self) -> int:
        """Get the count of sessions the policy would prune now."""
        cutoff = self.compute_cutoff()
        return self.repository.count_sessions_played_before(cutoff.effective)

    def process_batch(self, limit: int) -> WorkerResult:
        """Prune up to `limit` of the oldest sessions under the cutoff.

        Args:
            limit: Maximum number of sessions to delete.

        Returns:
            WorkerResult with the number of sessions deleted.
        """
        result = WorkerResult()

        try:
            cutoff = self.compute_cutoff()
            session_ids = self.repository.list_session_ids_played_before(
                cutoff.effective, limit=limit
            )

            if not session_ids:
                logger.info("No sessions outside the retention policy")
                return result

            self.cascade.delete_sessions(session_ids)
            result.processed += len(session_ids)

        except Exception as e:
            logger.exception(f"Retention batch failed: {e}")
            result.failed += 1
            result.errors.append(str(e))

        return result

    async def prune(self, now_ms: Optional[int] = None) -> WorkerResult:
        """Prune every session under the cutoff, yielding between batches.

        The cutoff is computed once at the start. Failures are logged and
        reported in the result; they are never raised.

        Returns:
            WorkerResult with the number of sessions deleted.
        """
        result = WorkerResult()

        try:
            cutoff = self.compute_cutoff(now_ms)
            session_ids = self.repository.list_session_ids_played_before(cutoff.effective)

            if session_ids:
                logger.info(
                    f"Pruning {len(session_ids)} sessions played before {cutoff.effective} "
                    f"(count cutoff {cutoff.count_cutoff}, time cutoff {cutoff.time_cutoff})"
                )

            batch_size = self.config.batch_size
            for start in range(0, len(session_ids), batch_size):
                if start:
                    await asyncio.sleep(self.config.batch_delay_seconds)
                batch = session_ids[start:start + batch_size]
                await asyncio.to_thread(self.cascade.delete_sessions, batch)
                result.processed += len(batch)

        except Exception as e:
            logger.exception(f"Retention pruning failed: {e}")
            result.failed += 1
            result.errors.append(str(e))

        self.log_result(result)
        return result


async def prune_playback_history(
    repository: LibraryRepositoryInterface,
    config: Optional[RetentionConfig] = None,
) -> WorkerResult:
    """Run one full retention pass over the playback history."""
    return await RetentionWorker(repository, config=config).prune()
