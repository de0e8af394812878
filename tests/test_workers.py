"""Tests for the worker base classes."""

import logging

from podcast_library.workflow.workers.base import WorkerInterface, WorkerResult


class _StubWorker(WorkerInterface):
    @property
    def name(self) -> str:
        return "Stub"

    def get_pending_count(self) -> int:
        return 0

    def process_batch(self, limit: int) -> WorkerResult:
        return WorkerResult()


class TestWorkerResult:
    """Tests for WorkerResult dataclass."""

    def test_default_values(self):
        """Test that WorkerResult has correct default values."""
        result = WorkerResult()
        assert result.processed == 0
        assert result.failed == 0
        assert result.skipped == 0
        assert result.errors == []

    def test_total_property(self):
        """Test that total is calculated correctly."""
        result = WorkerResult(processed=5, failed=2, skipped=3)
        assert result.total == 10

    def test_errors_list_independence(self):
        """Test that each WorkerResult has its own errors list."""
        first = WorkerResult()
        second = WorkerResult()
        first.errors.append("boom")
        assert second.errors == []


class TestWorkerInterface:
    """Tests for WorkerInterface logging."""

    def test_log_result_no_items(self, caplog):
        with caplog.at_level(logging.INFO):
            _StubWorker().log_result(WorkerResult())
        assert "[Stub] No items to process" in caplog.text

    def test_log_result_with_items(self, caplog):
        with caplog.at_level(logging.INFO):
            _StubWorker().log_result(WorkerResult(processed=4, failed=1))
        assert "[Stub] Processed: 4, Failed: 1, Skipped: 0" in caplog.text

    def test_log_result_with_errors(self, caplog):
        """Test that each error is logged at error level."""
        with caplog.at_level(logging.INFO):
            _StubWorker().log_result(WorkerResult(failed=1, errors=["disk full"]))
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "[Stub] disk full" in errors[0].getMessage()
