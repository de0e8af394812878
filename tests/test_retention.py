"""Tests for the playback history retention worker."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from podcast_library.db.models import PlaybackSession
from podcast_library.utils.time_utils import DAY_MS, now_ms
from podcast_library.workflow.config import RetentionConfig
from podcast_library.workflow.workers.retention import (
    RetentionWorker,
    prune_playback_history,
)

MINUTE_MS = 60 * 1000


def seed_sessions(repository, played_at):
    """Insert one session per timestamp; ids are ``session-<index>``."""
    with repository.transaction() as session:
        session.add_all(
            PlaybackSession(
                id=f"session-{index}",
                title=f"Episode {index}",
                created_at=timestamp,
                last_played_at=timestamp,
            )
            for index, timestamp in enumerate(played_at)
        )


@pytest.fixture
def config():
    return RetentionConfig(max_sessions=1000, retention_days=180, batch_delay_ms=0)


class TestComputeCutoff:
    """Tests for cutoff computation."""

    def test_time_cutoff_when_under_count(self, repository, config):
        now = now_ms()
        seed_sessions(repository, [now])
        worker = RetentionWorker(repository, config=config)

        cutoff = worker.compute_cutoff(now)

        assert cutoff.count_cutoff == 0
        assert cutoff.time_cutoff == now - 180 * DAY_MS
        assert cutoff.effective == cutoff.time_cutoff

    def test_count_cutoff_when_over_count(self, repository):
        now = now_ms()
        seed_sessions(repository, [now - i * MINUTE_MS for i in range(5)])
        worker = RetentionWorker(repository, config=RetentionConfig(max_sessions=3))

        cutoff = worker.compute_cutoff(now)

        assert cutoff.count_cutoff == now - 2 * MINUTE_MS
        assert cutoff.effective == cutoff.count_cutoff


class TestPrune:
    """Tests for full retention passes."""

    def test_count_limit(self, repository, config):
        """Test only the 1000 most recently played sessions are kept."""
        now = now_ms()
        seed_sessions(repository, [now - i * MINUTE_MS for i in range(1100)])

        result = asyncio.run(RetentionWorker(repository, config=config).prune(now))

        assert result.processed == 100
        assert result.failed == 0
        assert repository.count_playback_sessions() == 1000
        assert repository.get_playback_session("session-0") is not None
        assert repository.get_playback_session("session-999") is not None
        assert repository.get_playback_session("session-1000") is None
        assert repository.get_playback_session("session-1099") is None

    def test_age_limit(self, repository, config):
        """Test sessions older than the window go even under the count limit."""
        now = now_ms()
        seed_sessions(repository, [now, now - 10 * DAY_MS, now - 200 * DAY_MS])

        result = asyncio.run(RetentionWorker(repository, config=config).prune(now))

        assert result.processed == 1
        assert repository.count_playback_sessions() == 2
        assert repository.get_playback_session("session-2") is None

    def test_empty_history(self, repository, config):
        result = asyncio.run(RetentionWorker(repository, config=config).prune())

        assert result.total == 0

    def test_owned_audio_reclaimed(self, repository, config):
        """Test a pruned session's own audio blob is deleted with it."""
        now = now_ms()
        audio = repository.add_audio_blob(b"old audio", "old.mp3")
        old = repository.create_playback_session(
            title="Old upload",
            audio_id=audio.id,
            has_audio_blob=True,
            last_played_at=now - 365 * DAY_MS,
        )

        asyncio.run(RetentionWorker(repository, config=config).prune(now))

        assert repository.get_playback_session(old.id) is None
        assert repository.get_audio_blob(audio.id) is None

    def test_pauses_between_batches(self, repository, monkeypatch):
        """Test the worker sleeps between batches but not before the first."""
        now = now_ms()
        seed_sessions(repository, [now - 200 * DAY_MS - i for i in range(5)])
        sleep = AsyncMock()
        monkeypatch.setattr(
            "podcast_library.workflow.workers.retention.asyncio.sleep", sleep
        )
        config = RetentionConfig(batch_size=2, batch_delay_ms=16)

        result = asyncio.run(RetentionWorker(repository, config=config).prune(now))

        assert result.processed == 5
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.016)

    def test_failure_is_logged_not_raised(self, repository, config, caplog):
        """Test a deletion failure is reported in the result."""
        now = now_ms()
        seed_sessions(repository, [now - 200 * DAY_MS])
        cascade = Mock()
        cascade.delete_sessions.side_effect = RuntimeError("database is locked")
        worker = RetentionWorker(repository, config=config, cascade=cascade)

        with caplog.at_level(logging.ERROR):
            result = asyncio.run(worker.prune(now))

        assert result.failed == 1
        assert result.processed == 0
        assert "database is locked" in result.errors[0]
        assert "Retention pruning failed" in caplog.text
        assert repository.count_playback_sessions() == 1

    def test_prune_playback_history(self, repository, config):
        now = now_ms()
        seed_sessions(repository, [now - 400 * DAY_MS, now])

        result = asyncio.run(prune_playback_history(repository, config))

        assert result.processed == 1
        assert repository.get_playback_session("session-1") is not None


class TestRetentionBatches:
    """Tests for the synchronous worker interface."""

    def test_pending_count_and_batch(self, repository, config):
        now = now_ms()
        seed_sessions(repository, [now - 200 * DAY_MS - i for i in range(5)])
        worker = RetentionWorker(repository, config=config)

        assert worker.name == "Retention"
        assert worker.get_pending_count() == 5

        result = worker.process_batch(limit=2)

        assert result.processed == 2
        assert repository.count_playback_sessions() == 3
        # Oldest sessions go first
        assert repository.get_playback_session("session-4") is None
        assert repository.get_playback_session("session-3") is None

    def test_batch_with_nothing_to_do(self, repository, config):
        result = RetentionWorker(repository, config=config).process_batch(limit=10)

        assert result.total == 0
