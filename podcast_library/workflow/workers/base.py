"""Base classes for maintenance workers.

Defines the interface and common data structures used by all workers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class WorkerResult:
    """Result of a worker run.

    Attributes:
        processed: Number of items successfully processed.
        failed: Number of items (or whole runs) that failed.
        skipped: Number of items skipped.
        errors: List of error messages for failures.
    """

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Total number of items attempted."""
        return self.processed + self.failed + self.skipped


class WorkerInterface(ABC):
    """Abstract base class for maintenance workers.

    Workers query the store for items needing attention and handle them in
    batches.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this worker."""
        pass

    @abstractmethod
    def get_pending_count(self) -> int:
        """Get the count of items pending processing."""
        pass

    @abstractmethod
    def process_batch(self, limit: int) -> WorkerResult:
        """Process a batch of pending items.

        Args:
            limit: Maximum number of items to process in this batch.

        Returns:
            WorkerResult with counts of processed, failed, and skipped items.
        """
        pass

    def log_result(self, result: WorkerResult) -> None:
        """Log the result of a run.

        Args:
            result: The WorkerResult to log.
        """
        if result.total == 0:
            logger.info(f"[{self.name}] No items to process")
        else:
            logger.info(
                f"[{self.name}] Processed: {result.processed}, "
                f"Failed: {result.failed}, Skipped: {result.skipped}"
            )

        for error in result.errors:
            logger.error(f"[{self.name}] {error}")
